"""Tests for pipegen.models value types."""

from __future__ import annotations

import pytest

from pipegen.models import (
    Confidence,
    DeploymentEnvironment,
    ManualConfiguration,
    MergeStrategy,
    Setting,
    Signal,
    UNSET,
    UnifiedPipelineSpec,
    to_plain,
)


def test_confidence_is_ordered() -> None:
    assert Confidence.LOW < Confidence.MEDIUM < Confidence.HIGH
    assert max([Confidence.MEDIUM, Confidence.HIGH, Confidence.LOW]) is Confidence.HIGH
    assert Confidence.parse("medium") is Confidence.MEDIUM
    assert Confidence.parse(3) is Confidence.HIGH
    with pytest.raises(ValueError):
        Confidence.parse("certain")


def test_setting_distinguishes_unset_from_falsy() -> None:
    assert Setting.of(False).is_set
    assert Setting.of(False) != UNSET
    assert Setting.unset() == UNSET
    assert UNSET.or_else("fallback") == "fallback"
    assert Setting.of(0).or_else(5) == 0
    with pytest.raises(ValueError):
        UNSET.get()
    assert repr(Setting.of(False)) == "Setting.of(False)"


def test_manual_configuration_defaults_to_unset() -> None:
    manual = ManualConfiguration(include_tests=Setting.of(False))
    assert manual.explicit_fields() == ["include_tests"]
    assert not manual.project_type.is_set


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("prefer-manual", MergeStrategy.PREFER_MANUAL),
        ("PreferAnalysis", MergeStrategy.PREFER_ANALYSIS),
        ("intelligent_merge", MergeStrategy.INTELLIGENT_MERGE),
        ("ANALYSIS-ONLY", MergeStrategy.ANALYSIS_ONLY),
        (MergeStrategy.MANUAL_ONLY, MergeStrategy.MANUAL_ONLY),
    ],
)
def test_merge_strategy_parse(raw, expected) -> None:
    assert MergeStrategy.parse(raw) is expected


def test_merge_strategy_parse_rejects_unknown() -> None:
    with pytest.raises(ValueError) as excinfo:
        MergeStrategy.parse("random")
    assert "intelligent-merge" in str(excinfo.value)


def test_signal_failure_carries_no_findings() -> None:
    signal = Signal.failure("build", "boom")
    assert signal.failed
    assert signal.confidence is Confidence.LOW
    assert signal.detected_type is None
    assert not Signal(source="build").failed


def test_environment_keys_are_case_insensitive() -> None:
    assert DeploymentEnvironment(name="Staging").key == DeploymentEnvironment(name="staging").key


def test_to_plain_serialises_nested_models() -> None:
    spec = UnifiedPipelineSpec(
        project_type="python",
        environments=(DeploymentEnvironment(name="staging", url="https://s.example.com"),),
        confidence=Confidence.MEDIUM,
    )

    plain = to_plain(spec)

    assert plain["project_type"] == "python"
    assert plain["stages"] == ["build", "test", "deploy"]
    assert plain["confidence"] == "medium"
    assert plain["strategy"] == "prefer-manual"
    assert plain["environments"][0]["url"] == "https://s.example.com"
    assert spec.to_dict() == plain
