"""Tests for analyzer discovery utilities."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from pipegen.analyzers import Analyzer, ProjectTypeAnalyzer, discover_analyzers


class DummyAnalyzer(Analyzer):
    """Test analyzer used for plugin discovery validation."""

    def supports(self, manifest):  # pragma: no cover - unused
        return False

    def analyze(self, manifest, provider):  # pragma: no cover - unused
        return None


def test_discover_analyzers_returns_builtin_analyzers() -> None:
    analyzers = discover_analyzers()
    names = [analyzer.name for analyzer in analyzers]
    assert names[:6] == [
        "project_type",
        "build",
        "dependencies",
        "existing_ci",
        "container",
        "deployment",
    ]


def test_discover_analyzers_respects_enabled_filter() -> None:
    analyzers = discover_analyzers(["Project_Type"])
    assert len(analyzers) == 1
    assert isinstance(analyzers[0], ProjectTypeAnalyzer)


def test_discover_analyzers_loads_entry_points(monkeypatch) -> None:
    dummy_entry = SimpleNamespace(
        name="dummy",
        load=lambda: DummyAnalyzer,
    )

    class DummyEntryPoints(list):
        def select(self, **kwargs):
            if kwargs.get("group") == "pipegen.analyzers":
                return self
            return []

    monkeypatch.setattr(
        "pipegen.analyzers.metadata.entry_points",
        lambda: DummyEntryPoints([dummy_entry]),
        raising=False,
    )

    analyzers = discover_analyzers(["dummy"])
    assert len(analyzers) == 1
    assert isinstance(analyzers[0], DummyAnalyzer)
    assert analyzers[0].name == "dummy"


def test_discover_analyzers_raises_for_unknown_name() -> None:
    with pytest.raises(ValueError):
        discover_analyzers(["does-not-exist"])
