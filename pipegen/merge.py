"""Confidence-aware merging of analysis findings with manual settings.

``merge`` is a pure function: it never mutates its inputs and identical
inputs always produce an equal ``UnifiedPipelineSpec``.

Both sides are first brought into the same shape, a ``ManualConfiguration``
of ``Setting`` values, and every field is then resolved by its kind:

* scalars take the first explicitly set value in precedence order;
* lists union case-insensitively, manual order first;
* maps union, collisions decided by precedence;
* keyed collections union by case-insensitive name, the winning entry
  replacing the losing one whole;
* flags take the first explicit value in precedence order, or are OR-ed
  together by the intelligent strategy at medium confidence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .constants import (
    DEFAULT_STAGES,
    GENERIC_TYPE,
    NON_SPECIFIC_TYPES,
    PRODUCTION_ENVIRONMENTS,
    RUNTIME_IMAGES,
    VERSION_VARIABLES,
)
from .logging import get_logger
from .models import (
    ArtifactSettings,
    CacheSettings,
    Confidence,
    DeploymentEnvironment,
    ManualConfiguration,
    MergeStrategy,
    Origin,
    PipelineWarning,
    ProjectAnalysisResult,
    Setting,
    Severity,
    UNSET,
    UnifiedPipelineSpec,
    WarningKind,
)
from .stages import dedupe_stages, normalize_stages

logger = get_logger("merge")

FLAG_DEFAULTS: Dict[str, bool] = {
    "include_tests": True,
    "include_deployment": True,
    "include_code_quality": False,
    "include_security": False,
    "include_performance": False,
}

# Flags that trigger external side effects keep plain precedence even when
# the other flags are OR-combined.
SIDE_EFFECT_FLAGS = frozenset({"include_deployment"})


@dataclass(frozen=True)
class MergePolicy:
    """Concrete precedence rules derived from a strategy and a confidence."""

    order: Tuple[Origin, ...]
    use_manual: bool = True
    use_analysis: bool = True
    combine_flags: bool = False
    manual_specific_type_first: bool = False
    manual_variables_win: bool = False


def resolve_policy(strategy: MergeStrategy, confidence: Confidence) -> MergePolicy:
    """Translate a strategy (and, for the intelligent one, a confidence) into rules."""
    if strategy is MergeStrategy.PREFER_MANUAL:
        return MergePolicy(order=(Origin.MANUAL, Origin.ANALYSIS))
    if strategy is MergeStrategy.PREFER_ANALYSIS:
        return MergePolicy(order=(Origin.ANALYSIS, Origin.MANUAL))
    if strategy is MergeStrategy.MANUAL_ONLY:
        return MergePolicy(order=(Origin.MANUAL, Origin.ANALYSIS), use_analysis=False)
    if strategy is MergeStrategy.ANALYSIS_ONLY:
        return MergePolicy(
            order=(Origin.ANALYSIS, Origin.MANUAL), use_manual=False, manual_variables_win=True
        )
    if confidence >= Confidence.HIGH:
        return resolve_policy(MergeStrategy.PREFER_ANALYSIS, confidence)
    if confidence <= Confidence.LOW:
        return resolve_policy(MergeStrategy.PREFER_MANUAL, confidence)
    return MergePolicy(
        order=(Origin.MANUAL, Origin.ANALYSIS),
        combine_flags=True,
        manual_specific_type_first=True,
    )


def analysis_candidate(analysis: ProjectAnalysisResult) -> ManualConfiguration:
    """Project an analysis result onto the manual configuration shape."""
    values: Dict[str, Setting[Any]] = {}
    project_type = analysis.detected_type
    if project_type and project_type not in NON_SPECIFIC_TYPES:
        values["project_type"] = Setting.of(project_type)

    version = analysis.framework.version if analysis.framework else None
    if version:
        values["runtime_version"] = Setting.of(version)
        image = runtime_image(project_type, version)
        if image:
            values["image"] = Setting.of(image)

    if analysis.existing_ci and analysis.existing_ci.system == "gitlab" and analysis.existing_ci.stages:
        values["stages"] = Setting.of(tuple(analysis.existing_ci.stages))

    if analysis.test_commands:
        values["include_tests"] = Setting.of(True)
    if analysis.lint_commands:
        values["include_code_quality"] = Setting.of(True)
    if analysis.deployment is not None:
        values["include_deployment"] = Setting.of(analysis.deployment.has_config)
    if analysis.security is not None:
        values["include_security"] = Setting.of(analysis.security.recommended)

    variables = analysis_variables(analysis)
    if variables:
        values["variables"] = Setting.of(variables)

    if analysis.deployment and analysis.deployment.environments:
        values["environments"] = Setting.of(
            tuple(
                DeploymentEnvironment(name=name, manual=name.lower() in PRODUCTION_ENVIRONMENTS)
                for name in analysis.deployment.environments
            )
        )

    if analysis.cache is not None and analysis.cache.recommended:
        values["cache"] = Setting.of(CacheSettings(key=analysis.cache.key, paths=tuple(analysis.cache.paths)))
    if analysis.artifact_paths:
        values["artifacts"] = Setting.of(ArtifactSettings(paths=tuple(analysis.artifact_paths)))

    return ManualConfiguration(**values)


def analysis_variables(analysis: ProjectAnalysisResult) -> Dict[str, str]:
    """Pipeline variables implied by the analysis."""
    variables: Dict[str, str] = {}
    framework = analysis.framework
    version_variable = VERSION_VARIABLES.get(analysis.detected_type)
    if framework and framework.version and version_variable:
        variables[version_variable] = framework.version
    if analysis.build_tool:
        variables["BUILD_TOOL"] = analysis.build_tool.name
        if analysis.build_tool.version:
            variables["BUILD_TOOL_VERSION"] = analysis.build_tool.version
    if framework:
        variables.update(framework.configuration)
    if analysis.container and analysis.container.has_config:
        variables.update(analysis.container.build_args)
    for key, value in analysis.variables.items():
        variables.setdefault(key, value)
    return variables


def runtime_image(project_type: str, version: str) -> Optional[str]:
    pattern = RUNTIME_IMAGES.get(project_type)
    if not pattern or not version:
        return None
    if project_type == "nodejs":
        version = version.split(".")[0]
    elif project_type == "python":
        version = ".".join(version.split(".")[:2])
    return pattern.format(version=version)


def merge(
    analysis: ProjectAnalysisResult | None,
    manual: ManualConfiguration | None = None,
    strategy: MergeStrategy = MergeStrategy.PREFER_MANUAL,
) -> UnifiedPipelineSpec:
    """Combine an analysis and a manual configuration into one pipeline spec."""
    analysis = analysis or ProjectAnalysisResult()
    manual = manual or ManualConfiguration()
    strategy = MergeStrategy.parse(strategy)
    policy = resolve_policy(strategy, analysis.confidence)
    logger.debug(
        "Merging with %s at %s confidence: %s", strategy.value, analysis.confidence.name, policy
    )

    analysis_side = analysis_candidate(analysis) if policy.use_analysis else ManualConfiguration()
    manual_side = manual if policy.use_manual else ManualConfiguration(variables=manual.variables)
    sides = {Origin.MANUAL: manual_side, Origin.ANALYSIS: analysis_side}

    provenance: Dict[str, Origin] = {}
    warnings: List[PipelineWarning] = list(analysis.warnings)

    def _record(name: str, origin: Optional[Origin]) -> None:
        if origin is not None:
            provenance[name] = origin

    # Project type
    if policy.manual_specific_type_first and _is_specific(manual_side.project_type):
        project_type, type_origin = manual_side.project_type.value, Origin.MANUAL
    elif policy.manual_specific_type_first and analysis_side.project_type.is_set:
        project_type, type_origin = analysis_side.project_type.value, Origin.ANALYSIS
    else:
        project_type, type_origin = _scalar(sides, policy.order, "project_type")
    if not project_type:
        project_type, type_origin = GENERIC_TYPE, Origin.DEFAULT
        warnings.append(_missing("project_type", f"defaulted to '{GENERIC_TYPE}'"))
    _record("project_type", type_origin)

    # A runtime only applies to the project type its side asked for.
    runtime_sides = dict(sides)
    for side_origin, side in sides.items():
        side_type = side.project_type
        if side_type.is_set and side_type.value and side_type.value.lower() != project_type.lower():
            runtime_sides[side_origin] = ManualConfiguration()
    runtime_version, origin = _scalar(runtime_sides, policy.order, "runtime_version")
    _record("runtime_version", origin)
    image, origin = _scalar(runtime_sides, policy.order, "image")
    _record("image", origin)
    cache, origin = _scalar(sides, policy.order, "cache")
    _record("cache", origin)
    artifacts, origin = _scalar(sides, policy.order, "artifacts")
    _record("artifacts", origin)

    # Flags
    flags: Dict[str, bool] = {}
    for name, default in FLAG_DEFAULTS.items():
        if policy.combine_flags and name not in SIDE_EFFECT_FLAGS:
            value, origin = _or_flag(sides, policy.order, name)
            manual_flag = getattr(manual_side, name)
            if value and manual_flag.is_set and manual_flag.value is False:
                warnings.append(
                    PipelineWarning(
                        kind=WarningKind.OVERRIDDEN_SETTING,
                        component="merge",
                        message=f"'{name}' enabled by analysis although set to false manually",
                        severity=Severity.INFO,
                    )
                )
        else:
            value, origin = _scalar(sides, policy.order, name)
        if value is None:
            value, origin = default, Origin.DEFAULT
        flags[name] = bool(value)
        _record(name, origin)

    # Lists
    stages, origin = _union_list(manual_side.stages, analysis_side.stages)
    if not stages:
        stages, origin = tuple(DEFAULT_STAGES), Origin.DEFAULT
        warnings.append(_missing("stages", "defaulted to " + ", ".join(DEFAULT_STAGES)))
    _record("stages", origin)
    runner_tags, origin = _union_list(manual_side.runner_tags, analysis_side.runner_tags)
    _record("runner_tags", origin)

    # Maps
    variable_order = (Origin.MANUAL, Origin.ANALYSIS) if policy.manual_variables_win else policy.order
    variables, origin = _union_map(sides, variable_order, "variables")
    _record("variables", origin)

    # Keyed collections
    environments, origin = _union_keyed(sides, policy.order, "environments")
    _record("environments", origin)
    custom_jobs, origin = _union_keyed(sides, policy.order, "custom_jobs")
    _record("custom_jobs", origin)

    # Analysis-only details
    detail: Dict[str, Any] = {
        "build_commands": (),
        "test_commands": (),
        "lint_commands": (),
        "deploy_commands": (),
        "security_scanners": (),
        "required_secrets": (),
        "container": None,
    }
    if policy.use_analysis:
        detail["build_commands"] = tuple(analysis.build_commands)
        detail["test_commands"] = tuple(analysis.test_commands)
        detail["lint_commands"] = tuple(analysis.lint_commands)
        if analysis.deployment is not None:
            detail["deploy_commands"] = tuple(analysis.deployment.commands)
            detail["required_secrets"] = tuple(analysis.deployment.required_secrets)
        if analysis.security is not None:
            detail["security_scanners"] = tuple(analysis.security.scanners)
        if analysis.container is not None and analysis.container.has_config:
            detail["container"] = analysis.container
        for name, value in detail.items():
            if value:
                provenance[name] = Origin.ANALYSIS

    return UnifiedPipelineSpec(
        project_type=project_type,
        stages=normalize_stages(stages, include_tests=flags["include_tests"]),
        runtime_version=runtime_version,
        image=image,
        variables=variables,
        environments=environments,
        custom_jobs=custom_jobs,
        runner_tags=runner_tags,
        cache=cache,
        artifacts=artifacts,
        strategy=strategy,
        confidence=analysis.confidence,
        provenance=dict(sorted(provenance.items())),
        warnings=tuple(warnings),
        **flags,
        **detail,
    )


def _is_specific(setting: Setting[str]) -> bool:
    return setting.is_set and bool(setting.value) and setting.value.lower() not in NON_SPECIFIC_TYPES


def _missing(field_name: str, detail: str) -> PipelineWarning:
    return PipelineWarning(
        kind=WarningKind.MISSING_REQUIRED_FIELD,
        component="merge",
        message=f"No value for '{field_name}' from any source; {detail}",
    )


def _scalar(
    sides: Mapping[Origin, ManualConfiguration], order: Sequence[Origin], name: str
) -> Tuple[Any, Optional[Origin]]:
    for origin in order:
        setting = getattr(sides[origin], name)
        if setting.is_set:
            return setting.value, origin
    return None, None


def _or_flag(
    sides: Mapping[Origin, ManualConfiguration], order: Sequence[Origin], name: str
) -> Tuple[Optional[bool], Optional[Origin]]:
    explicit = [(origin, getattr(sides[origin], name)) for origin in order]
    explicit = [(origin, setting) for origin, setting in explicit if setting.is_set]
    if not explicit:
        return None, None
    for origin, setting in explicit:
        if setting.value:
            return True, origin
    return False, explicit[0][0]


def _union_list(
    manual: Setting[Sequence[str]], analysis: Setting[Sequence[str]]
) -> Tuple[Tuple[str, ...], Optional[Origin]]:
    items: List[str] = []
    origin: Optional[Origin] = None
    if manual.is_set:
        items.extend(manual.value)
        origin = Origin.MANUAL
    if analysis.is_set:
        items.extend(analysis.value)
        origin = origin or Origin.ANALYSIS
    return tuple(dedupe_stages(items)), origin


def _union_map(
    sides: Mapping[Origin, ManualConfiguration], order: Sequence[Origin], name: str
) -> Tuple[Dict[str, str], Optional[Origin]]:
    manual = getattr(sides[Origin.MANUAL], name)
    analysis = getattr(sides[Origin.ANALYSIS], name)
    manual_items: Mapping[str, str] = manual.value if manual.is_set else {}
    analysis_items: Mapping[str, str] = analysis.value if analysis.is_set else {}

    winner = manual_items if order[0] is Origin.MANUAL else analysis_items
    result: Dict[str, str] = {}
    for key in list(manual_items) + [key for key in analysis_items if key not in manual_items]:
        result[key] = winner[key] if key in winner else manual_items.get(key, analysis_items.get(key, ""))

    if manual.is_set:
        return result, Origin.MANUAL
    if analysis.is_set:
        return result, Origin.ANALYSIS
    return result, None


def _union_keyed(
    sides: Mapping[Origin, ManualConfiguration], order: Sequence[Origin], name: str
) -> Tuple[Tuple[Any, ...], Optional[Origin]]:
    manual = getattr(sides[Origin.MANUAL], name)
    analysis = getattr(sides[Origin.ANALYSIS], name)
    manual_items: Iterable[Any] = manual.value if manual.is_set else ()
    analysis_items: Iterable[Any] = analysis.value if analysis.is_set else ()
    analysis_wins = order[0] is Origin.ANALYSIS

    result: Dict[str, Any] = {}
    for item in manual_items:
        result.setdefault(item.key, item)
    manual_keys = set(result)
    replaced = set()
    for item in analysis_items:
        if item.key in manual_keys:
            if analysis_wins and item.key not in replaced:
                result[item.key] = item
                replaced.add(item.key)
        else:
            result.setdefault(item.key, item)

    if manual.is_set:
        return tuple(result.values()), Origin.MANUAL
    if analysis.is_set:
        return tuple(result.values()), Origin.ANALYSIS
    return (), None


__all__ = [
    "FLAG_DEFAULTS",
    "MergePolicy",
    "analysis_candidate",
    "analysis_variables",
    "merge",
    "resolve_policy",
    "runtime_image",
]
