"""Pipeline orchestration for the analyze and generate flows."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .aggregator import DEFAULT_ANALYZER_TIMEOUT, aggregate, collect_signals
from .analyzers import Analyzer, discover_analyzers
from .assembler import AssembledPipeline, assemble
from .config import PipegenConfig, load_config
from .emitter import render_yaml
from .logging import get_logger
from .merge import merge
from .models import ManualConfiguration, MergeStrategy, ProjectAnalysisResult, UnifiedPipelineSpec
from .repository import LocalRepositoryProvider, RepositoryProvider, scan_repository
from .templates import TemplateRegistry, default_registry

DEFAULT_OUTPUT = ".gitlab-ci.yml"
DEFAULT_STRATEGY = MergeStrategy.INTELLIGENT_MERGE


@dataclass
class GenerationOutcome:
    """Result of a pipeline generation run."""

    analysis: ProjectAnalysisResult
    spec: UnifiedPipelineSpec
    pipeline: AssembledPipeline
    content: str
    path: Path
    dry_run: bool


class Orchestrator:
    """Coordinates scanning, analysis, merging and assembly for one repository."""

    def __init__(
        self,
        analyzers: Optional[Iterable[Analyzer]] = None,
        registry: TemplateRegistry | None = None,
        provider_factory: Callable[[Path], RepositoryProvider] | None = None,
        timeout: float | None = None,
    ) -> None:
        self._analyzer_overrides = list(analyzers) if analyzers is not None else None
        self._registry = registry
        self._provider_factory = provider_factory or LocalRepositoryProvider
        self._timeout = timeout
        self.logger = get_logger("orchestrator")

    @property
    def registry(self) -> TemplateRegistry:
        if self._registry is None:
            self._registry = default_registry()
        return self._registry

    def run_analysis(self, path: str | Path) -> ProjectAnalysisResult:
        """Scan ``path`` and aggregate every analyzer signal."""
        repo_path = Path(path).expanduser().resolve()
        self.logger.info("Analyzing repository %s", repo_path)
        config = load_config(repo_path)
        return self._analyze(repo_path, config)

    def run_generate(
        self,
        path: str | Path,
        *,
        strategy: MergeStrategy | str | None = None,
        manual: ManualConfiguration | None = None,
        config_path: str | Path | None = None,
        output: str | Path | None = None,
        dry_run: bool = False,
    ) -> GenerationOutcome:
        """Analyze ``path``, merge with manual settings and render the pipeline.

        ``manual`` replaces the ``pipeline`` section of the configuration file
        when given. The YAML is written to ``output`` unless ``dry_run`` is set.
        """
        repo_path = Path(path).expanduser().resolve()
        config = load_config(Path(config_path) if config_path else repo_path)
        analysis = self._analyze(repo_path, config)

        chosen = MergeStrategy.parse(strategy or config.strategy or DEFAULT_STRATEGY)
        spec = merge(analysis, manual if manual is not None else config.manual, chosen)
        self.logger.info(
            "Merged %s analysis (%s confidence) with %s",
            spec.project_type,
            analysis.confidence.name.lower(),
            chosen.value,
        )
        for warning in spec.warnings:
            self.logger.debug("Warning: %s", warning)

        pipeline = assemble(spec, self.registry)
        content = render_yaml(pipeline)
        target = self._output_path(repo_path, output or config.output)
        if dry_run:
            self.logger.info("Dry run; not writing %s", target)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            self.logger.info("Wrote pipeline to %s", target)

        return GenerationOutcome(
            analysis=analysis,
            spec=spec,
            pipeline=pipeline,
            content=content,
            path=target,
            dry_run=dry_run,
        )

    def list_templates(self) -> List[Dict[str, Any]]:
        return [template.describe() for template in self.registry.templates()]

    def _analyze(self, repo_path: Path, config: PipegenConfig) -> ProjectAnalysisResult:
        provider = self._provider_factory(repo_path)
        manifest = scan_repository(provider)
        self.logger.debug("Scanner discovered %d files", len(manifest.files))

        analyzers = self._select_analyzers(config)
        self.logger.debug("Selected %d analyzers", len(analyzers))
        timeout = config.analyzers.timeout or self._timeout or DEFAULT_ANALYZER_TIMEOUT
        signals = collect_signals(manifest, analyzers, provider, timeout=timeout)
        return aggregate(signals)

    def _select_analyzers(self, config: PipegenConfig) -> List[Analyzer]:
        if self._analyzer_overrides is not None:
            return list(self._analyzer_overrides)
        enabled = config.analyzers.enabled or None
        return list(discover_analyzers(enabled))

    @staticmethod
    def _output_path(repo_path: Path, output: str | Path | None) -> Path:
        target = Path(output) if output else Path(DEFAULT_OUTPUT)
        if not target.is_absolute():
            target = repo_path / target
        return target


__all__ = ["DEFAULT_OUTPUT", "DEFAULT_STRATEGY", "GenerationOutcome", "Orchestrator"]
