"""Base pipeline template with shared validation and job hooks."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence, Tuple
from urllib.parse import urlparse

from ..errors import ValidationIssue
from ..models import DeploymentEnvironment, UnifiedPipelineSpec

_VARIABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_VERSION_PART = re.compile(r"\d+")

Job = Dict[str, Any]


class PipelineTemplate:
    """Describes how one family of project types is built, tested and deployed.

    Subclasses override class attributes for their defaults and the
    ``*_script`` hooks for commands. When the merged spec already carries
    detected commands those take precedence over the template's own.
    """

    name: str = ""
    description: str = ""
    supported_project_types: Tuple[str, ...] = ()
    supported_versions: Tuple[str, ...] = ()
    version_parts: int = 2
    accepts_any_type: bool = False
    default_version: Optional[str] = None
    default_image: str = "ubuntu:latest"
    image_pattern: Optional[str] = None
    default_variables: Mapping[str, str] = {}
    default_cache_key: str = "$CI_COMMIT_REF_SLUG"
    default_cache_paths: Tuple[str, ...] = ()
    default_artifact_paths: Tuple[str, ...] = ()
    deploy_variables: Mapping[str, str] = {}

    def supports(self, project_type: str) -> bool:
        if self.accepts_any_type:
            return True
        return project_type.lower() in {item.lower() for item in self.supported_project_types}

    def normalize_version(self, version: Optional[str]) -> Optional[str]:
        """Trim ``version`` to the number of components the template tracks."""
        if not version:
            return None
        parts = _VERSION_PART.findall(version)
        if not parts:
            return version.strip()
        parts = parts[: self.version_parts]
        while len(parts) < self.version_parts:
            parts.append("0")
        return ".".join(parts)

    # Validation

    def validate(self, spec: UnifiedPipelineSpec) -> List[ValidationIssue]:
        """Return every reason ``spec`` cannot be rendered by this template."""
        issues: List[ValidationIssue] = []
        if not self.supports(spec.project_type):
            supported = ", ".join(self.supported_project_types)
            issues.append(
                ValidationIssue(
                    "project_type",
                    f"'{spec.project_type}' is not supported by template '{self.name}' (supported: {supported})",
                )
            )
        issues.extend(self.validate_version(spec.runtime_version))
        issues.extend(_validate_stages(spec.stages))
        issues.extend(_validate_variables(spec.variables, "variables"))
        issues.extend(_validate_environments(spec.environments))
        issues.extend(_validate_custom_jobs(spec))
        return issues

    def validate_version(self, version: Optional[str]) -> List[ValidationIssue]:
        if not version or not self.supported_versions:
            return []
        normalized = self.normalize_version(version)
        if normalized in self.supported_versions:
            return []
        return [
            ValidationIssue(
                "runtime_version",
                f"Invalid {self.name} version '{version}'. Valid versions are: "
                + ", ".join(self.supported_versions),
            )
        ]

    # Defaults

    def resolve_image(self, spec: UnifiedPipelineSpec) -> str:
        if spec.image:
            return spec.image
        version = self.normalize_version(spec.runtime_version) or self.default_version
        if self.image_pattern and version:
            return self.image_pattern.format(version=version)
        return self.default_image

    def cache_key(self, spec: UnifiedPipelineSpec) -> str:
        if spec.cache is not None and spec.cache.key:
            return spec.cache.key
        return self.default_cache_key

    # Job hooks

    def build_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.build_commands:
            return list(spec.build_commands)
        return ["echo 'Starting build process'", "echo 'Add your build commands here'"]

    def test_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.test_commands:
            return list(spec.test_commands)
        return ["echo 'Running tests'", "echo 'Add your test commands here'"]

    def lint_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.lint_commands:
            return list(spec.lint_commands)
        return ["echo 'Running code quality checks'"]

    def deploy_script(
        self, spec: UnifiedPipelineSpec, environment: Optional[DeploymentEnvironment]
    ) -> List[str]:
        target = environment.name if environment else "default"
        script = [f"echo 'Deploying to {target}'"]
        script.extend(spec.deploy_commands)
        return script

    def test_reports(self, spec: UnifiedPipelineSpec) -> Dict[str, Any]:
        return {}

    def build_artifact_paths(self, spec: UnifiedPipelineSpec) -> List[str]:
        return list(self.default_artifact_paths)

    def post_process(self, jobs: MutableMapping[str, Job], spec: UnifiedPipelineSpec) -> None:
        """Apply template-specific changes to the generated jobs in place."""
        reports = self.test_reports(spec)
        if reports and "test" in jobs:
            artifacts = jobs["test"].setdefault("artifacts", {})
            artifacts["reports"] = reports
            artifacts.setdefault("when", "always")
        if self.deploy_variables:
            for job in jobs.values():
                if _is_deploy_job(job):
                    variables = job.setdefault("variables", {})
                    for key, value in self.deploy_variables.items():
                        variables.setdefault(key, value)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "project_types": list(self.supported_project_types),
            "versions": list(self.supported_versions),
            "default_image": self.resolve_image(UnifiedPipelineSpec(project_type=self.name)),
        }


# Top-level pipeline keys a job name would collide with.
RESERVED_JOB_NAMES = frozenset(
    {
        "after_script",
        "before_script",
        "cache",
        "default",
        "image",
        "include",
        "services",
        "stages",
        "variables",
        "workflow",
    }
)


def _is_deploy_job(job: Mapping[str, Any]) -> bool:
    return "environment" in job or str(job.get("stage", "")).lower() == "deploy"


def _validate_stages(stages: Sequence[str]) -> List[ValidationIssue]:
    issues = []
    if not stages:
        issues.append(ValidationIssue("stages", "at least one stage is required"))
    for stage in stages:
        if not stage or not stage.strip():
            issues.append(ValidationIssue("stages", "stage names cannot be blank"))
    return issues


def _validate_variables(variables: Mapping[str, str], field_name: str) -> List[ValidationIssue]:
    return [
        ValidationIssue(field_name, f"invalid variable name '{name}'")
        for name in variables
        if not _VARIABLE_NAME.match(name)
    ]


def _validate_environments(environments: Sequence[DeploymentEnvironment]) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    seen = set()
    for env in environments:
        if not env.name.strip():
            issues.append(ValidationIssue("environments", "environment names cannot be blank"))
            continue
        if env.key in seen:
            issues.append(ValidationIssue("environments", f"duplicate environment '{env.name}'"))
        seen.add(env.key)
        if env.url:
            parsed = urlparse(env.url)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                issues.append(
                    ValidationIssue(f"environments.{env.name}.url", f"'{env.url}' is not an http(s) URL")
                )
        issues.extend(_validate_variables(env.variables, f"environments.{env.name}.variables"))
    return issues


def _validate_custom_jobs(spec: UnifiedPipelineSpec) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    seen = set()
    for job in spec.custom_jobs:
        label = f"custom_jobs.{job.name or '?'}"
        if not job.name.strip():
            issues.append(ValidationIssue("custom_jobs", "custom jobs need a name"))
        elif job.name.strip() in RESERVED_JOB_NAMES:
            issues.append(ValidationIssue(label, f"'{job.name}' is a reserved top-level keyword"))
        elif job.key in seen:
            issues.append(ValidationIssue("custom_jobs", f"duplicate custom job '{job.name}'"))
        seen.add(job.key)
        if not job.stage.strip():
            issues.append(ValidationIssue(label, "a stage is required"))
        if not job.script:
            issues.append(ValidationIssue(label, "a script is required"))
        issues.extend(_validate_variables(job.variables, f"{label}.variables"))
    return issues


__all__ = ["Job", "PipelineTemplate", "RESERVED_JOB_NAMES"]
