"""Tests for dependency extraction and recommendations."""

from __future__ import annotations

import json

from pipegen.analyzers.dependencies import SECRET_DETECTION, DependencyAnalyzer
from pipegen.models import Confidence


def _package_json(count: int, extra: dict | None = None) -> str:
    deps = {f"pkg-{index}": "^1.0.0" for index in range(count)}
    deps.update(extra or {})
    return json.dumps({"dependencies": deps})


def test_large_node_project_gets_cache_and_scanning(repo_builder) -> None:
    repo_builder.write({"package.json": _package_json(11)})

    signal = DependencyAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal.confidence is Confidence.HIGH
    assert signal.package_manager == "npm"
    assert len(signal.dependencies) == 11
    assert signal.cache.key == "$CI_COMMIT_REF_SLUG-npm"
    assert signal.cache.paths == ("node_modules/", ".npm/")
    assert signal.security.recommended
    assert signal.security.scanners == ("npm-audit", "nodejsscan", SECRET_DETECTION)
    assert signal.security.sensitive_packages == ()
    assert len(signal.recommendations) == 2


def test_sensitive_packages_trigger_scanning_without_cache(repo_builder) -> None:
    repo_builder.write({"requirements.txt": "Django==5.0\nrequests\n"})

    signal = DependencyAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal.detected_type == "python"
    assert signal.cache is None
    assert signal.security.recommended
    assert signal.security.sensitive_packages == ("Django", "requests")
    assert signal.security.scanners == ("safety", "bandit", SECRET_DETECTION)


def test_small_project_is_not_flagged(repo_builder) -> None:
    repo_builder.write({"package.json": _package_json(2)})

    signal = DependencyAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal.cache is None
    assert not signal.security.recommended
    assert signal.security.reason == ""
    assert signal.recommendations == ()


def test_empty_manifest_reports_no_dependencies(repo_builder) -> None:
    repo_builder.write({"package.json": "{}\n", "pnpm-lock.yaml": ""})

    signal = DependencyAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal.dependencies == ()
    assert signal.package_manager == "pnpm"
    assert signal.confidence is Confidence.MEDIUM
    assert signal.security is None


def test_dotnet_packages_are_deduplicated(repo_builder) -> None:
    project = """
    <Project Sdk="Microsoft.NET.Sdk">
      <ItemGroup>
        <PackageReference Include="Newtonsoft.Json" Version="13.0.3" />
      </ItemGroup>
    </Project>
    """
    repo_builder.write({"A/A.csproj": project, "B/B.csproj": project})

    signal = DependencyAnalyzer().analyze(repo_builder.scan(), repo_builder.provider())

    assert signal.package_manager == "nuget"
    assert [dep.name for dep in signal.dependencies] == ["Newtonsoft.Json"]
    assert signal.dependencies[0].version == "13.0.3"
    assert signal.security.sensitive_packages == ("Newtonsoft.Json",)


def test_supports_requires_manifest_file(repo_builder) -> None:
    repo_builder.write({"README.md": "# Hi\n"})

    assert not DependencyAnalyzer().supports(repo_builder.scan())
