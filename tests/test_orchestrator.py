"""Tests for pipegen.orchestrator."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from pipegen.analyzers import Analyzer
from pipegen.errors import SpecValidationError
from pipegen.models import Confidence, ManualConfiguration, MergeStrategy, Setting, Signal, WarningKind
from pipegen.orchestrator import DEFAULT_STRATEGY, GenerationOutcome, Orchestrator


class FixedAnalyzer(Analyzer):
    """Analyzer double that always reports the same signal."""

    name = "fixed"

    def __init__(self, signal: Signal) -> None:
        self._signal = signal

    def supports(self, manifest) -> bool:
        return True

    def analyze(self, manifest, provider):
        return self._signal


def _node_repo(repo_builder) -> Path:
    repo_builder.write(
        {
            "package.json": """
            {"name": "web", "engines": {"node": ">=20"},
             "scripts": {"build": "tsc", "test": "jest"},
             "dependencies": {"fastify": "^4.0.0"}}
            """,
            "package-lock.json": "{}\n",
            "src/index.js": "console.log('hi');\n",
            "src/server.js": "export default {};\n",
        }
    )
    return repo_builder.path()


def test_run_analysis_detects_node_project(repo_builder) -> None:
    repo_path = _node_repo(repo_builder)

    analysis = Orchestrator().run_analysis(repo_path)

    assert analysis.detected_type == "nodejs"
    assert analysis.confidence is Confidence.HIGH
    assert analysis.framework.version == "20"
    assert analysis.build_commands == ("npm ci", "npm run build")
    assert {"project_type", "build", "dependencies"} <= set(analysis.contributors)


def test_run_generate_writes_pipeline(repo_builder) -> None:
    repo_path = _node_repo(repo_builder)

    outcome = Orchestrator().run_generate(repo_path)

    assert isinstance(outcome, GenerationOutcome)
    assert outcome.spec.strategy is DEFAULT_STRATEGY
    assert outcome.path == repo_path.resolve() / ".gitlab-ci.yml"
    assert outcome.path.read_text(encoding="utf-8") == outcome.content

    data = yaml.safe_load(outcome.content)
    assert data["stages"] == ["build", "test", "deploy"]
    assert data["default"]["image"] == "node:20-alpine"
    assert data["build"]["script"] == ["npm ci", "npm run build"]
    assert data["test"]["script"] == ["npm test"]
    assert WarningKind.MISSING_REQUIRED_FIELD in [w.kind for w in outcome.spec.warnings]


def test_run_generate_dry_run_does_not_write(repo_builder) -> None:
    repo_path = _node_repo(repo_builder)

    outcome = Orchestrator().run_generate(repo_path, dry_run=True)

    assert outcome.dry_run
    assert not outcome.path.exists()
    assert outcome.content.startswith("# Generated by pipegen")


def test_run_generate_uses_config_file_settings(repo_builder) -> None:
    repo_path = _node_repo(repo_builder)
    repo_builder.write(
        {
            ".pipegen.yml": """
            strategy: prefer-manual
            output: ci/pipeline.yml
            pipeline:
              include_deployment: false
              variables:
                APP_NAME: web
            """,
        }
    )

    outcome = Orchestrator().run_generate(repo_path)

    assert outcome.spec.strategy is MergeStrategy.PREFER_MANUAL
    assert outcome.path == repo_path.resolve() / "ci" / "pipeline.yml"
    assert outcome.path.exists()
    assert outcome.spec.include_deployment is False
    assert outcome.pipeline.variables["APP_NAME"] == "web"
    assert "deploy" not in outcome.pipeline.jobs


def test_run_generate_manual_argument_overrides_config(repo_builder) -> None:
    repo_path = _node_repo(repo_builder)
    manual = ManualConfiguration(project_type=Setting.of("python"), runtime_version=Setting.of("3.12"))

    outcome = Orchestrator().run_generate(
        repo_path, strategy="prefer-manual", manual=manual, dry_run=True
    )

    assert outcome.pipeline.template == "python"
    assert outcome.pipeline.defaults["image"] == "python:3.12-slim"


def test_run_generate_propagates_validation_errors(repo_builder) -> None:
    repo_path = _node_repo(repo_builder)
    manual = ManualConfiguration(runtime_version=Setting.of("12"))

    with pytest.raises(SpecValidationError):
        Orchestrator().run_generate(repo_path, strategy="prefer-manual", manual=manual, dry_run=True)

    assert not (repo_path / ".gitlab-ci.yml").exists()


def test_analyzer_overrides_replace_discovery(repo_builder) -> None:
    repo_builder.write({"README.md": "# Hello\n"})
    signal = Signal(
        source="fixed",
        confidence=Confidence.HIGH,
        detected_type="python",
        marker_files=("pyproject.toml",),
    )

    orchestrator = Orchestrator(analyzers=[FixedAnalyzer(signal)])
    analysis = orchestrator.run_analysis(repo_builder.path())

    assert analysis.detected_type == "python"
    assert analysis.contributors == ("fixed",)


def test_missing_repository_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        Orchestrator().run_analysis(tmp_path / "missing")


def test_list_templates_describes_builtins() -> None:
    names = [item["name"] for item in Orchestrator().list_templates()]

    assert names[:4] == ["generic", "dotnet", "nodejs", "python"]
