"""Tests for the template registry and built-in templates."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from pipegen.errors import TemplateIncompatibleError
from pipegen.models import UnifiedPipelineSpec
from pipegen.templates import (
    DotNetTemplate,
    GenericTemplate,
    NodeTemplate,
    PipelineTemplate,
    PythonTemplate,
    TemplateRegistry,
    default_registry,
)


class GoTemplate(PipelineTemplate):
    name = "go"
    description = "Go modules pipeline"
    supported_project_types = ("go",)
    default_image = "golang:1.22"


def test_default_registry_selects_dedicated_templates() -> None:
    registry = default_registry()

    assert registry.names()[:4] == ["generic", "dotnet", "nodejs", "python"]
    assert isinstance(registry.select("dotnet"), DotNetTemplate)
    assert isinstance(registry.select("TypeScript"), NodeTemplate)
    assert isinstance(registry.select("python"), PythonTemplate)
    assert isinstance(registry.select("rust"), GenericTemplate)
    assert isinstance(registry.select("generic"), GenericTemplate)


def test_registry_rejects_duplicates_and_non_templates() -> None:
    registry = TemplateRegistry([NodeTemplate()])

    with pytest.raises(ValueError):
        registry.register(NodeTemplate())
    with pytest.raises(TypeError):
        registry.register(object())  # type: ignore[arg-type]


def test_registry_without_fallback_names_supported_types() -> None:
    registry = TemplateRegistry([PythonTemplate()], fallback=None)

    with pytest.raises(TemplateIncompatibleError) as excinfo:
        registry.select("dotnet")

    assert excinfo.value.supported_types == ["python"]
    assert "Supported types: python" in str(excinfo.value)


def test_new_project_type_only_needs_a_registered_template() -> None:
    registry = TemplateRegistry([GenericTemplate(), GoTemplate()])

    assert isinstance(registry.select("go"), GoTemplate)
    assert registry.supported_types() == ["generic", "go"]


def test_default_registry_loads_template_plugins(monkeypatch) -> None:
    entry = SimpleNamespace(name="go", load=lambda: GoTemplate)
    monkeypatch.setattr("pipegen.templates.registry._iter_entry_points", lambda: [entry])

    registry = default_registry()

    assert isinstance(registry.get("go"), GoTemplate)


@pytest.mark.parametrize(
    ("template", "version", "expected"),
    [
        (NodeTemplate(), "18.19.0", "18"),
        (NodeTemplate(), "v20", "20"),
        (DotNetTemplate(), "8", "8.0"),
        (PythonTemplate(), "3.12.1", "3.12"),
        (PythonTemplate(), None, None),
    ],
)
def test_normalize_version(template, version, expected) -> None:
    assert template.normalize_version(version) == expected


def test_resolve_image_prefers_spec_then_version_then_default() -> None:
    template = PythonTemplate()

    assert template.resolve_image(UnifiedPipelineSpec(project_type="python", image="custom:1")) == "custom:1"
    assert template.resolve_image(UnifiedPipelineSpec(project_type="python", runtime_version="3.12")) == (
        "python:3.12-slim"
    )
    assert template.resolve_image(UnifiedPipelineSpec(project_type="python")) == "python:3.11-slim"


def test_python_template_expands_bare_pytest() -> None:
    template = PythonTemplate()
    bare = UnifiedPipelineSpec(project_type="python", test_commands=("python -m pytest",))
    custom = UnifiedPipelineSpec(project_type="python", test_commands=("tox -e py312",))

    assert template.test_script(bare)[0].startswith("python -m pytest --junitxml=test-results.xml")
    assert template.test_script(custom) == ["tox -e py312"]


def test_describe_reports_versions_and_image() -> None:
    info = DotNetTemplate().describe()

    assert info["name"] == "dotnet"
    assert info["versions"] == ["6.0", "7.0", "8.0", "9.0"]
    assert info["default_image"] == "mcr.microsoft.com/dotnet/sdk:9.0"
