"""Turns a unified pipeline spec into stages, jobs, variables and defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import SpecValidationError
from .jobs import build_jobs
from .logging import get_logger
from .models import PipelineWarning, UnifiedPipelineSpec
from .stages import find_stage, insert_after, insert_before, normalize_stages
from .templates import PipelineTemplate, TemplateRegistry, default_registry
from .templates.base import Job

logger = get_logger("assembler")


@dataclass
class AssembledPipeline:
    """Plain pipeline structure ready for serialization."""

    stages: List[str]
    jobs: Dict[str, Job]
    variables: Dict[str, str] = field(default_factory=dict)
    defaults: Dict[str, Any] = field(default_factory=dict)
    template: str = ""
    warnings: Tuple[PipelineWarning, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Return the pipeline in GitLab CI document order."""
        data: Dict[str, Any] = {"stages": list(self.stages)}
        if self.variables:
            data["variables"] = dict(self.variables)
        if self.defaults:
            data["default"] = dict(self.defaults)
        data.update(self.jobs)
        return data


def assemble(
    spec: UnifiedPipelineSpec, registry: Optional[TemplateRegistry] = None
) -> AssembledPipeline:
    """Render ``spec`` with the template registered for its project type.

    Raises ``TemplateIncompatibleError`` when no template (and no fallback)
    handles the type, and ``SpecValidationError`` when the template rejects
    the spec. Nothing is produced in either case.
    """
    registry = registry or default_registry()
    template = registry.select(spec.project_type)
    logger.debug("Selected template %s for project type %s", template.name, spec.project_type)

    issues = template.validate(spec)
    if issues:
        raise SpecValidationError(
            f"Pipeline spec is not valid for template '{template.name}'", issues
        )

    stages = expand_stages(spec)
    variables = template_variables(spec, template)
    defaults = template_defaults(spec, template)
    jobs = build_jobs(spec, template, stages)
    template.post_process(jobs, spec)

    logger.info(
        "Assembled %d jobs across %d stages with template %s", len(jobs), len(stages), template.name
    )
    return AssembledPipeline(
        stages=list(stages),
        jobs=jobs,
        variables=variables,
        defaults=defaults,
        template=template.name,
        warnings=spec.warnings,
    )


def expand_stages(spec: UnifiedPipelineSpec) -> Tuple[str, ...]:
    """Add the stages implied by enabled features and custom jobs."""
    stages = list(spec.stages)
    if spec.include_code_quality:
        insert_after(stages, "quality", "test", "build")
    if spec.include_security:
        insert_after(stages, "security", "quality", "test", "build")
    if spec.include_performance:
        insert_before(stages, "performance", "deploy")
    if spec.include_deployment and _needs_deploy_stage(spec, stages):
        stages.append("deploy")
    for job in spec.custom_jobs:
        if find_stage(stages, job.stage) is None:
            stages.append(job.stage)
    return normalize_stages(stages, include_tests=spec.include_tests)


def template_variables(spec: UnifiedPipelineSpec, template: PipelineTemplate) -> Dict[str, str]:
    variables = dict(spec.variables)
    for key, value in template.default_variables.items():
        variables.setdefault(key, value)
    return variables


def template_defaults(spec: UnifiedPipelineSpec, template: PipelineTemplate) -> Dict[str, Any]:
    defaults: Dict[str, Any] = {"image": template.resolve_image(spec)}
    if spec.runner_tags:
        defaults["tags"] = list(spec.runner_tags)

    paths = list(spec.cache.paths) if spec.cache else []
    for path in template.default_cache_paths:
        if path not in paths:
            paths.append(path)
    if paths:
        cache: Dict[str, Any] = {"key": template.cache_key(spec), "paths": paths}
        if spec.cache is not None and spec.cache.policy:
            cache["policy"] = spec.cache.policy
        defaults["cache"] = cache
    return defaults


def _needs_deploy_stage(spec: UnifiedPipelineSpec, stages: List[str]) -> bool:
    if find_stage(stages, "deploy") is not None:
        return False
    if not spec.environments:
        return True
    return any(find_stage(stages, env.name) is None for env in spec.environments)


__all__ = [
    "AssembledPipeline",
    "assemble",
    "expand_stages",
    "template_defaults",
    "template_variables",
]
