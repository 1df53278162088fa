"""Template for .NET projects."""

from __future__ import annotations

from typing import Any, Dict, List, MutableMapping, Optional

from ..models import DeploymentEnvironment, UnifiedPipelineSpec
from .base import Job, PipelineTemplate

_TEST_COMMAND = (
    'dotnet test --configuration Release --no-build --collect:"XPlat Code Coverage" '
    "--logger trx --results-directory ./TestResults/"
)


class DotNetTemplate(PipelineTemplate):
    """Restore/build/publish pipeline with TRX and Cobertura test reports."""

    name = "dotnet"
    description = "Standard .NET pipeline supporting .NET 6.0 to 9.0"
    supported_project_types = ("dotnet",)
    supported_versions = ("6.0", "7.0", "8.0", "9.0")
    version_parts = 2
    default_version = "9.0"
    default_image = "mcr.microsoft.com/dotnet/sdk:9.0"
    image_pattern = "mcr.microsoft.com/dotnet/sdk:{version}"
    default_variables = {
        "DOTNET_CLI_TELEMETRY_OPTOUT": "true",
        "DOTNET_SKIP_FIRST_TIME_EXPERIENCE": "true",
        "NUGET_PACKAGES": "$CI_PROJECT_DIR/.nuget/packages",
        "DOTNET_RESTORE_DISABLE_PARALLEL": "true",
    }
    default_cache_key = "$CI_COMMIT_REF_SLUG-dotnet"
    default_cache_paths = (".nuget/packages/",)
    default_artifact_paths = ("bin/", "obj/")
    deploy_variables = {
        "ASPNETCORE_ENVIRONMENT": "Production",
        "DOTNET_ENVIRONMENT": "Production",
    }

    def build_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.build_commands:
            return list(spec.build_commands)
        return [
            "dotnet restore --verbosity minimal",
            "dotnet build --configuration Release --no-restore --verbosity minimal",
            "dotnet publish --configuration Release --no-build --output ./publish",
        ]

    def test_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        # Coverage and TRX output feed the report paths below.
        return [_TEST_COMMAND]

    def lint_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.lint_commands:
            return list(spec.lint_commands)
        return ["dotnet format --verify-no-changes"]

    def deploy_script(
        self, spec: UnifiedPipelineSpec, environment: Optional[DeploymentEnvironment]
    ) -> List[str]:
        script = super().deploy_script(spec, environment)
        script.append("echo 'Deployment completed successfully'")
        return script

    def test_reports(self, spec: UnifiedPipelineSpec) -> Dict[str, Any]:
        return {
            "junit": ["TestResults/*.trx"],
            "coverage_report": {
                "coverage_format": "cobertura",
                "path": "TestResults/*/coverage.cobertura.xml",
            },
        }

    def build_artifact_paths(self, spec: UnifiedPipelineSpec) -> List[str]:
        paths = list(self.default_artifact_paths)
        if not spec.build_commands:
            paths.append("publish/")
        return paths

    def post_process(self, jobs: MutableMapping[str, Job], spec: UnifiedPipelineSpec) -> None:
        super().post_process(jobs, spec)
        if "test" in jobs:
            artifacts = jobs["test"].setdefault("artifacts", {})
            paths = artifacts.setdefault("paths", [])
            if "TestResults/" not in paths:
                paths.append("TestResults/")


__all__ = ["DotNetTemplate"]
