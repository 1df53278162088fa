"""Core data models shared across pipegen components."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum, IntEnum
from fnmatch import fnmatchcase
from typing import Any, Dict, Generic, List, Mapping, Optional, Set, Tuple, TypeVar

from .constants import DEFAULT_STAGES, UNKNOWN_TYPE

T = TypeVar("T")


class Confidence(IntEnum):
    """Ordered trust grade attached to analyzer findings."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        if isinstance(value, Confidence):
            return value
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise ValueError(f"Unknown confidence grade: {value!r}")


@dataclass(frozen=True)
class Setting(Generic[T]):
    """A manual value that is either explicitly set or left unset.

    ``Setting.of(False)`` and ``Setting.of([])`` are explicit choices and are
    never confused with ``Setting.unset()``.
    """

    value: Any = None
    is_set: bool = False

    @classmethod
    def of(cls, value: T) -> "Setting[T]":
        return cls(value=value, is_set=True)

    @classmethod
    def unset(cls) -> "Setting[Any]":
        return cls()

    def get(self) -> T:
        if not self.is_set:
            raise ValueError("Setting has no value")
        return self.value

    def or_else(self, default: T) -> T:
        return self.value if self.is_set else default

    def __repr__(self) -> str:
        return f"Setting.of({self.value!r})" if self.is_set else "Setting.unset()"


UNSET: Setting[Any] = Setting()


@dataclass
class RepositoryFile:
    """Metadata for an individual repository file."""

    name: str
    path: str
    size: int
    content: Optional[str] = None

    @property
    def is_root(self) -> bool:
        return "/" not in self.path


@dataclass
class RepoManifest:
    """Normalized view of the repository for analyzers."""

    root: str
    files: List[RepositoryFile]

    def paths(self) -> Set[str]:
        return {file.path for file in self.files}

    def root_names(self) -> List[str]:
        return [file.name for file in self.files if file.is_root]

    def has(self, path: str) -> bool:
        return any(file.path == path for file in self.files)

    def match(self, pattern: str) -> List[RepositoryFile]:
        """Return files whose relative path or name matches ``pattern``."""
        return [
            file
            for file in self.files
            if fnmatchcase(file.path, pattern) or fnmatchcase(file.name, pattern)
        ]


@dataclass(frozen=True)
class FrameworkInfo:
    name: str
    version: Optional[str] = None
    features: Tuple[str, ...] = ()
    configuration: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class BuildToolInfo:
    name: str
    version: Optional[str] = None


@dataclass(frozen=True)
class Dependency:
    name: str
    version: Optional[str] = None
    dev: bool = False


@dataclass(frozen=True)
class CacheRecommendation:
    key: str
    paths: Tuple[str, ...]
    recommended: bool = True
    reason: str = ""


@dataclass(frozen=True)
class SecurityRecommendation:
    recommended: bool
    scanners: Tuple[str, ...] = ()
    sensitive_packages: Tuple[str, ...] = ()
    reason: str = ""


@dataclass(frozen=True)
class DeploymentInfo:
    has_config: bool
    environments: Tuple[str, ...] = ()
    commands: Tuple[str, ...] = ()
    targets: Tuple[str, ...] = ()
    required_secrets: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContainerInfo:
    has_config: bool
    base_image: Optional[str] = None
    dockerfile: Optional[str] = None
    build_args: Mapping[str, str] = field(default_factory=dict)
    compose_files: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExistingCIInfo:
    system: str
    config_files: Tuple[str, ...] = ()
    stages: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Signal:
    """One analyzer's partial finding about the repository.

    Every field other than ``source`` and ``confidence`` is optional; ``None``
    means the analyzer did not observe that aspect. A signal with ``error``
    set records a failed or timed-out analyzer and carries no findings.
    """

    source: str
    confidence: Confidence = Confidence.MEDIUM
    detected_type: Optional[str] = None
    marker_files: Tuple[str, ...] = ()
    framework: Optional[FrameworkInfo] = None
    build_tool: Optional[BuildToolInfo] = None
    build_commands: Optional[Tuple[str, ...]] = None
    test_commands: Optional[Tuple[str, ...]] = None
    lint_commands: Optional[Tuple[str, ...]] = None
    artifact_paths: Optional[Tuple[str, ...]] = None
    dependencies: Optional[Tuple[Dependency, ...]] = None
    package_manager: Optional[str] = None
    cache: Optional[CacheRecommendation] = None
    security: Optional[SecurityRecommendation] = None
    deployment: Optional[DeploymentInfo] = None
    container: Optional[ContainerInfo] = None
    existing_ci: Optional[ExistingCIInfo] = None
    variables: Optional[Mapping[str, str]] = None
    recommendations: Tuple[str, ...] = ()
    error: Optional[str] = None

    @classmethod
    def failure(cls, source: str, reason: str) -> "Signal":
        return cls(source=source, confidence=Confidence.LOW, error=reason)

    @property
    def failed(self) -> bool:
        return self.error is not None


class WarningKind(str, Enum):
    PARTIAL_SIGNAL_FAILURE = "partial_signal_failure"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    TYPE_CONFLICT = "type_conflict"
    UNKNOWN_TYPE = "unknown_type"
    NO_DEPENDENCIES = "no_dependencies"
    SECURITY_SENSITIVE = "security_sensitive"
    EXISTING_CI = "existing_ci"
    OVERRIDDEN_SETTING = "overridden_setting"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class PipelineWarning:
    """Non-fatal condition recorded during analysis or merging."""

    kind: WarningKind
    component: str
    message: str
    severity: Severity = Severity.WARNING

    def __str__(self) -> str:
        return f"[{self.component}] {self.message}"


@dataclass(frozen=True)
class ProjectAnalysisResult:
    """Aggregated view of every signal produced for one repository."""

    detected_type: str = UNKNOWN_TYPE
    type_confidence: Confidence = Confidence.LOW
    confidence: Confidence = Confidence.LOW
    framework: Optional[FrameworkInfo] = None
    build_tool: Optional[BuildToolInfo] = None
    build_commands: Tuple[str, ...] = ()
    test_commands: Tuple[str, ...] = ()
    lint_commands: Tuple[str, ...] = ()
    artifact_paths: Tuple[str, ...] = ()
    dependencies: Tuple[Dependency, ...] = ()
    package_manager: Optional[str] = None
    cache: Optional[CacheRecommendation] = None
    security: Optional[SecurityRecommendation] = None
    deployment: Optional[DeploymentInfo] = None
    container: Optional[ContainerInfo] = None
    existing_ci: Optional[ExistingCIInfo] = None
    variables: Mapping[str, str] = field(default_factory=dict)
    area_confidence: Mapping[str, Confidence] = field(default_factory=dict)
    warnings: Tuple[PipelineWarning, ...] = ()
    recommendations: Tuple[str, ...] = ()
    contributors: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass(frozen=True)
class DeploymentEnvironment:
    """A named deployment target; names compare case-insensitively."""

    name: str
    url: Optional[str] = None
    manual: bool = False
    branch: Optional[str] = None
    variables: Mapping[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class CustomJob:
    """A user-defined job appended to the assembled pipeline."""

    name: str
    stage: str
    script: Tuple[str, ...] = ()
    image: Optional[str] = None
    before_script: Tuple[str, ...] = ()
    after_script: Tuple[str, ...] = ()
    variables: Mapping[str, str] = field(default_factory=dict)
    when: Optional[str] = None
    allow_failure: bool = False
    tags: Tuple[str, ...] = ()
    needs: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class CacheSettings:
    key: Optional[str] = None
    paths: Tuple[str, ...] = ()
    policy: Optional[str] = None


@dataclass(frozen=True)
class ArtifactSettings:
    paths: Tuple[str, ...] = ()
    expire_in: str = "1 week"


@dataclass(frozen=True)
class ManualConfiguration:
    """User-supplied overrides; every field is an explicit ``Setting``."""

    project_type: Setting[str] = UNSET
    stages: Setting[Tuple[str, ...]] = UNSET
    runtime_version: Setting[str] = UNSET
    image: Setting[str] = UNSET
    include_tests: Setting[bool] = UNSET
    include_deployment: Setting[bool] = UNSET
    include_code_quality: Setting[bool] = UNSET
    include_security: Setting[bool] = UNSET
    include_performance: Setting[bool] = UNSET
    variables: Setting[Mapping[str, str]] = UNSET
    environments: Setting[Tuple[DeploymentEnvironment, ...]] = UNSET
    custom_jobs: Setting[Tuple[CustomJob, ...]] = UNSET
    cache: Setting[CacheSettings] = UNSET
    artifacts: Setting[ArtifactSettings] = UNSET
    runner_tags: Setting[Tuple[str, ...]] = UNSET

    def explicit_fields(self) -> List[str]:
        return [item.name for item in fields(self) if getattr(self, item.name).is_set]


class MergeStrategy(str, Enum):
    """Policy used to reconcile analysis findings with manual settings."""

    PREFER_MANUAL = "prefer-manual"
    PREFER_ANALYSIS = "prefer-analysis"
    INTELLIGENT_MERGE = "intelligent-merge"
    ANALYSIS_ONLY = "analysis-only"
    MANUAL_ONLY = "manual-only"

    @classmethod
    def parse(cls, value: "str | MergeStrategy") -> "MergeStrategy":
        if isinstance(value, MergeStrategy):
            return value
        wanted = _normalise_token(value)
        for strategy in cls:
            if _normalise_token(strategy.value) == wanted or _normalise_token(strategy.name) == wanted:
                return strategy
        choices = ", ".join(strategy.value for strategy in cls)
        raise ValueError(f"Unknown merge strategy '{value}'. Expected one of: {choices}")


def _normalise_token(value: str) -> str:
    return "".join(char for char in str(value).lower() if char.isalnum())


class Origin(str, Enum):
    """Where a resolved pipeline field came from."""

    MANUAL = "manual"
    ANALYSIS = "analysis"
    DEFAULT = "default"


@dataclass(frozen=True)
class UnifiedPipelineSpec:
    """Fully resolved pipeline configuration ready for template assembly."""

    project_type: str
    stages: Tuple[str, ...] = DEFAULT_STAGES
    runtime_version: Optional[str] = None
    image: Optional[str] = None
    include_tests: bool = True
    include_deployment: bool = True
    include_code_quality: bool = False
    include_security: bool = False
    include_performance: bool = False
    variables: Mapping[str, str] = field(default_factory=dict)
    environments: Tuple[DeploymentEnvironment, ...] = ()
    custom_jobs: Tuple[CustomJob, ...] = ()
    runner_tags: Tuple[str, ...] = ()
    cache: Optional[CacheSettings] = None
    artifacts: Optional[ArtifactSettings] = None
    build_commands: Tuple[str, ...] = ()
    test_commands: Tuple[str, ...] = ()
    lint_commands: Tuple[str, ...] = ()
    deploy_commands: Tuple[str, ...] = ()
    security_scanners: Tuple[str, ...] = ()
    required_secrets: Tuple[str, ...] = ()
    container: Optional[ContainerInfo] = None
    strategy: MergeStrategy = field(default=MergeStrategy.PREFER_MANUAL, compare=False)
    confidence: Confidence = Confidence.LOW
    provenance: Mapping[str, Origin] = field(default_factory=dict)
    warnings: Tuple[PipelineWarning, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


def to_plain(value: Any) -> Any:
    """Convert model objects into JSON/YAML friendly builtins."""
    if isinstance(value, Setting):
        return to_plain(value.value) if value.is_set else None
    if isinstance(value, Confidence):
        return value.name.lower()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_plain(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


__all__ = [
    "ArtifactSettings",
    "BuildToolInfo",
    "CacheRecommendation",
    "CacheSettings",
    "Confidence",
    "ContainerInfo",
    "CustomJob",
    "Dependency",
    "DeploymentEnvironment",
    "DeploymentInfo",
    "ExistingCIInfo",
    "FrameworkInfo",
    "ManualConfiguration",
    "MergeStrategy",
    "Origin",
    "PipelineWarning",
    "ProjectAnalysisResult",
    "RepoManifest",
    "RepositoryFile",
    "SecurityRecommendation",
    "Setting",
    "Severity",
    "Signal",
    "UNSET",
    "UnifiedPipelineSpec",
    "WarningKind",
    "to_plain",
]
