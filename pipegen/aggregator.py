"""Signal collection and aggregation into a single project analysis."""

from __future__ import annotations

import threading
import time
from fnmatch import fnmatchcase
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .analyzers import Analyzer
from .constants import PROJECT_TYPE_MARKERS, TYPE_PRIORITY, UNKNOWN_TYPE
from .logging import get_logger
from .models import (
    Confidence,
    Dependency,
    DeploymentInfo,
    PipelineWarning,
    ProjectAnalysisResult,
    RepoManifest,
    Severity,
    Signal,
    WarningKind,
)
from .repository import RepositoryProvider

DEFAULT_ANALYZER_TIMEOUT = 30.0

# Signal fields grouped by the analysis area they feed.
AREA_FIELDS: Dict[str, Tuple[str, ...]] = {
    "framework": ("framework",),
    "build": ("build_tool", "build_commands", "test_commands", "lint_commands", "artifact_paths"),
    "dependencies": ("dependencies", "package_manager", "cache", "security"),
    "deployment": ("deployment",),
    "container": ("container",),
    "ci": ("existing_ci",),
}

logger = get_logger("aggregator")


def collect_signals(
    manifest: RepoManifest,
    analyzers: Sequence[Analyzer],
    provider: RepositoryProvider,
    *,
    timeout: float | None = DEFAULT_ANALYZER_TIMEOUT,
) -> List[Signal]:
    """Run supporting analyzers concurrently and gather their signals.

    Every analyzer that raises or does not finish within ``timeout`` seconds
    yields a failure signal instead. Signals are returned in analyzer order.
    """
    selected = []
    for analyzer in analyzers:
        try:
            if analyzer.supports(manifest):
                selected.append(analyzer)
        except Exception as exc:
            logger.warning("Analyzer %s failed support check: %s", _name_of(analyzer), exc)
            selected.append(_FailedAnalyzer(_name_of(analyzer), str(exc)))
    if not selected:
        return []

    runs = [_AnalyzerRun(analyzer, manifest, provider) for analyzer in selected]
    for run in runs:
        logger.debug("Running analyzer %s", run.name)
        run.thread.start()

    deadline = None if timeout is None else time.monotonic() + timeout
    for run in runs:
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        run.thread.join(remaining)

    signals: List[Signal] = []
    for run in runs:
        if run.thread.is_alive():
            # Daemon workers are abandoned; they never hold up interpreter exit.
            logger.warning("Analyzer %s timed out after %ss", run.name, timeout)
            signals.append(Signal.failure(run.name, f"timed out after {timeout}s"))
            continue
        if run.error is not None:
            logger.warning("Analyzer %s failed: %s", run.name, run.error)
            signals.append(Signal.failure(run.name, str(run.error) or run.error.__class__.__name__))
            continue
        if run.signal is not None:
            signals.append(run.signal)
    return signals


def aggregate(signals: Iterable[Signal]) -> ProjectAnalysisResult:
    """Combine partial signals into one ``ProjectAnalysisResult``.

    Failed signals become ``PARTIAL_SIGNAL_FAILURE`` warnings and never abort
    aggregation. The overall confidence is the lowest grade among the areas
    that actually contributed data.
    """
    warnings: List[PipelineWarning] = []
    usable: List[Signal] = []
    for signal in signals:
        if signal.failed:
            warnings.append(
                PipelineWarning(
                    kind=WarningKind.PARTIAL_SIGNAL_FAILURE,
                    component=signal.source,
                    message=f"Analyzer '{signal.source}' failed: {signal.error}",
                )
            )
            continue
        usable.append(signal)

    detected_type, type_confidence, type_warning = resolve_project_type(usable)
    if type_warning is not None:
        warnings.append(type_warning)

    area_confidence: Dict[str, Confidence] = {}
    if detected_type != UNKNOWN_TYPE:
        area_confidence["type"] = type_confidence

    # Highest confidence first; stable sort keeps input order on ties.
    ranked = sorted(usable, key=lambda item: item.confidence, reverse=True)
    agreeing = [item for item in ranked if item.detected_type in (None, detected_type)]

    framework, framework_source = _first(agreeing or ranked, "framework")
    build_tool, build_source = _first(agreeing or ranked, "build_tool")
    package_manager, _ = _first(agreeing or ranked, "package_manager")
    cache, _ = _first(ranked, "cache")
    security, _ = _first(ranked, "security")
    container, _ = _first(ranked, "container")
    existing_ci, _ = _first(ranked, "existing_ci")

    for area, names in AREA_FIELDS.items():
        grades = [
            item.confidence
            for item in ranked
            if any(getattr(item, name) is not None for name in names)
        ]
        if area == "framework" and framework_source is not None:
            grades = [framework_source.confidence]
        if area == "build" and build_source is not None:
            grades = [build_source.confidence]
        if grades:
            area_confidence[area] = max(grades)

    dependencies = _union_dependencies(ranked)
    variables: Dict[str, str] = {}
    for item in ranked:
        for key, value in (item.variables or {}).items():
            variables.setdefault(key, value)

    if detected_type == UNKNOWN_TYPE:
        warnings.append(
            PipelineWarning(
                kind=WarningKind.UNKNOWN_TYPE,
                component="aggregator",
                message="Could not determine the project type from repository markers",
            )
        )
    if not dependencies:
        warnings.append(
            PipelineWarning(
                kind=WarningKind.NO_DEPENDENCIES,
                component="aggregator",
                message="No dependencies detected; caching and dependency scanning are skipped",
                severity=Severity.INFO,
            )
        )
    if security is not None and security.sensitive_packages:
        warnings.append(
            PipelineWarning(
                kind=WarningKind.SECURITY_SENSITIVE,
                component="dependencies",
                message="Security-sensitive dependencies: " + ", ".join(security.sensitive_packages),
                severity=Severity.INFO,
            )
        )
    if existing_ci is not None and existing_ci.system != "gitlab":
        warnings.append(
            PipelineWarning(
                kind=WarningKind.EXISTING_CI,
                component="existing_ci",
                message=f"Existing {existing_ci.system} configuration found; review it before migrating",
                severity=Severity.INFO,
            )
        )

    overall = min(area_confidence.values()) if area_confidence else Confidence.LOW
    logger.debug(
        "Aggregated %d signals: type=%s (%s), overall confidence %s",
        len(usable),
        detected_type,
        type_confidence.name,
        overall.name,
    )

    return ProjectAnalysisResult(
        detected_type=detected_type,
        type_confidence=type_confidence,
        confidence=overall,
        framework=framework,
        build_tool=build_tool,
        build_commands=_first_list(agreeing or ranked, "build_commands"),
        test_commands=_first_list(agreeing or ranked, "test_commands"),
        lint_commands=_first_list(agreeing or ranked, "lint_commands"),
        artifact_paths=_union_lists(ranked, "artifact_paths"),
        dependencies=dependencies,
        package_manager=package_manager,
        cache=cache,
        security=security,
        deployment=_merge_deployments(ranked),
        container=container,
        existing_ci=existing_ci,
        variables=variables,
        area_confidence=area_confidence,
        warnings=tuple(warnings),
        recommendations=_union_lists(ranked, "recommendations"),
        contributors=tuple(dict.fromkeys(item.source for item in usable)),
    )


def prominence_scores(signals: Iterable[Signal]) -> Dict[str, int]:
    """Return ``root-level marker count x confidence`` per detected type."""
    scores: Dict[str, int] = {}
    for signal in signals:
        if not signal.detected_type or signal.failed:
            continue
        patterns = PROJECT_TYPE_MARKERS.get(signal.detected_type, ())
        markers = {
            name
            for name in signal.marker_files
            if "/" not in name and any(fnmatchcase(name, pattern) for pattern in patterns)
        }
        scores[signal.detected_type] = scores.get(signal.detected_type, 0) + len(markers) * int(
            signal.confidence
        )
    return scores


def resolve_project_type(
    signals: Sequence[Signal],
) -> Tuple[str, Confidence, Optional[PipelineWarning]]:
    """Pick the winning project type among possibly conflicting signals."""
    scores = {key: value for key, value in prominence_scores(signals).items() if value > 0}
    if not scores:
        return UNKNOWN_TYPE, Confidence.LOW, None

    def _rank(item: Tuple[str, int]) -> Tuple[int, int]:
        project_type, score = item
        priority = TYPE_PRIORITY.index(project_type) if project_type in TYPE_PRIORITY else len(TYPE_PRIORITY)
        return (-score, priority)

    ranked = sorted(scores.items(), key=_rank)
    winner = ranked[0][0]
    confidence = max(
        signal.confidence for signal in signals if signal.detected_type == winner and not signal.failed
    )

    warning = None
    if len(ranked) > 1:
        others = ", ".join(f"{name} ({score})" for name, score in ranked[1:])
        warning = PipelineWarning(
            kind=WarningKind.TYPE_CONFLICT,
            component="aggregator",
            message=f"Conflicting project types; chose {winner} ({ranked[0][1]}) over {others}",
            severity=Severity.INFO,
        )
    return winner, confidence, warning


def _first(signals: Sequence[Signal], name: str) -> Tuple[Any, Optional[Signal]]:
    for signal in signals:
        value = getattr(signal, name)
        if value is not None:
            return value, signal
    return None, None


def _first_list(signals: Sequence[Signal], name: str) -> Tuple[str, ...]:
    for signal in signals:
        value = getattr(signal, name)
        if value:
            return tuple(value)
    return ()


def _union_lists(signals: Sequence[Signal], name: str) -> Tuple[str, ...]:
    items: Dict[str, None] = {}
    for signal in signals:
        for value in getattr(signal, name) or ():
            items.setdefault(value, None)
    return tuple(items)


def _union_dependencies(signals: Sequence[Signal]) -> Tuple[Dependency, ...]:
    found: Dict[str, Dependency] = {}
    for signal in signals:
        for dep in signal.dependencies or ():
            found.setdefault(dep.name.lower(), dep)
    return tuple(found.values())


def _merge_deployments(signals: Sequence[Signal]) -> Optional[DeploymentInfo]:
    infos = [signal.deployment for signal in signals if signal.deployment is not None]
    if not infos:
        return None
    if len(infos) == 1:
        return infos[0]

    def _union(values: Iterable[Tuple[str, ...]], *, fold_case: bool = False) -> Tuple[str, ...]:
        seen: Dict[str, str] = {}
        for group in values:
            for value in group:
                seen.setdefault(value.lower() if fold_case else value, value)
        return tuple(seen.values())

    return DeploymentInfo(
        has_config=any(info.has_config for info in infos),
        environments=_union((info.environments for info in infos), fold_case=True),
        commands=_union(info.commands for info in infos),
        targets=_union(info.targets for info in infos),
        required_secrets=_union(info.required_secrets for info in infos),
    )


def _name_of(analyzer: Analyzer) -> str:
    return analyzer.name or analyzer.__class__.__name__


class _AnalyzerRun:
    """One analyzer executing on its own daemon thread."""

    def __init__(self, analyzer: Analyzer, manifest: RepoManifest, provider: RepositoryProvider) -> None:
        self.name = _name_of(analyzer)
        self.signal: Optional[Signal] = None
        self.error: Optional[BaseException] = None
        self._analyzer = analyzer
        self._manifest = manifest
        self._provider = provider
        self.thread = threading.Thread(
            target=self._run, name=f"pipegen-analyzer-{self.name}", daemon=True
        )

    def _run(self) -> None:
        try:
            self.signal = self._analyzer.analyze(self._manifest, self._provider)
        except Exception as exc:
            self.error = exc


class _FailedAnalyzer(Analyzer):
    """Stand-in that reports an analyzer whose support check raised."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self._reason = reason

    def supports(self, manifest: RepoManifest) -> bool:
        return True

    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        raise RuntimeError(self._reason)


__all__ = [
    "AREA_FIELDS",
    "DEFAULT_ANALYZER_TIMEOUT",
    "aggregate",
    "collect_signals",
    "prominence_scores",
    "resolve_project_type",
]
