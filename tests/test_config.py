"""Tests for pipegen.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from pipegen.config import ConfigError, PipegenConfig, load_config, parse_manual_configuration
from pipegen.models import CustomJob, DeploymentEnvironment, MergeStrategy, Setting


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, PipegenConfig)
    assert config.root == tmp_path.resolve()
    assert config.strategy is None
    assert config.output is None
    assert config.analyzers.enabled == []
    assert config.analyzers.timeout is None
    assert config.exclude_paths == []
    assert config.manual.explicit_fields() == []


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".pipegen.yml"
    config_file.write_text(
        """
strategy: intelligent-merge
output: ci/.gitlab-ci.yml
exclude_paths:
  - "sandbox/"
analyzers:
  enabled: [project_type, build]
  exclude_paths:
    - "legacy/"
  timeout: 10
pipeline:
  project_type: dotnet
  stages: [build, test, deploy]
  runtime_version: "8.0"
  include_tests: false
  include_security: null
  variables:
    A: 1
    DEBUG: true
  environments:
    - staging
    - name: production
      url: https://example.com
      manual: true
  custom_jobs:
    - name: lint
      stage: test
      script: ["dotnet format --verify-no-changes"]
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.strategy is MergeStrategy.INTELLIGENT_MERGE
    assert config.output == "ci/.gitlab-ci.yml"
    assert config.exclude_paths == ["sandbox/"]
    assert config.analyzers.enabled == ["project_type", "build"]
    assert config.analyzers.exclude_paths == ["legacy/"]
    assert config.analyzers.timeout == 10.0

    manual = config.manual
    assert manual.project_type == Setting.of("dotnet")
    assert manual.stages == Setting.of(("build", "test", "deploy"))
    assert manual.runtime_version == Setting.of("8.0")
    assert manual.include_tests == Setting.of(False)
    assert not manual.include_security.is_set
    assert manual.variables.value == {"A": "1", "DEBUG": "true"}
    assert manual.environments.value == (
        DeploymentEnvironment(name="staging"),
        DeploymentEnvironment(name="production", url="https://example.com", manual=True),
    )
    assert manual.custom_jobs.value == (
        CustomJob(name="lint", stage="test", script=("dotnet format --verify-no-changes",)),
    )


def test_load_config_accepts_directory(tmp_path: Path) -> None:
    (tmp_path / ".pipegen.yml").write_text("strategy: prefer_analysis\n", encoding="utf-8")

    assert load_config(tmp_path).strategy is MergeStrategy.PREFER_ANALYSIS


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".pipegen.yml").write_text("pipeline: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_unknown_strategy(tmp_path: Path) -> None:
    (tmp_path / ".pipegen.yml").write_text("strategy: coin-flip\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(tmp_path)
    assert "prefer-manual" in str(excinfo.value)


def test_parse_manual_configuration_keeps_explicit_falsy_values() -> None:
    manual = parse_manual_configuration({"include_deployment": False, "stages": [], "variables": {}})

    assert manual.include_deployment == Setting.of(False)
    assert manual.stages == Setting.of(())
    assert manual.variables == Setting.of({})
    assert sorted(manual.explicit_fields()) == ["include_deployment", "stages", "variables"]


@pytest.mark.parametrize(
    "payload",
    [
        {"unknown_key": 1},
        {"include_tests": "maybe"},
        {"stages": "build"},
        {"environments": [{"url": "https://example.com"}]},
        {"custom_jobs": ["not-a-mapping"]},
    ],
)
def test_parse_manual_configuration_rejects_bad_payloads(payload) -> None:
    with pytest.raises(ConfigError):
        parse_manual_configuration(payload)


def test_unquoted_float_runtime_version_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / ".pipegen.yml"
    config_path.write_text("pipeline:\n  runtime_version: 3.10\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(config_path)

    assert "quoted" in str(excinfo.value)


def test_integer_runtime_version_is_accepted() -> None:
    manual = parse_manual_configuration({"runtime_version": 20})

    assert manual.runtime_version == Setting.of("20")
