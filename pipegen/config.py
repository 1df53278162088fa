"""Configuration loading for pipegen (.pipegen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .models import (
    ArtifactSettings,
    CacheSettings,
    CustomJob,
    DeploymentEnvironment,
    ManualConfiguration,
    MergeStrategy,
    Setting,
    UNSET,
)

CONFIG_FILENAME = ".pipegen.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file or a manual payload cannot be parsed."""


@dataclass
class AnalyzerConfig:
    """Analyzer enablement, exclusions and time limit."""

    enabled: List[str] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)
    timeout: Optional[float] = None


@dataclass
class PipegenConfig:
    """Represents the high-level settings defined in .pipegen.yml."""

    root: Path
    strategy: Optional[MergeStrategy] = None
    manual: ManualConfiguration = field(default_factory=ManualConfiguration)
    analyzers: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    exclude_paths: List[str] = field(default_factory=list)
    output: Optional[str] = None


def load_config(config_path: Path) -> PipegenConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return PipegenConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    strategy = None
    strategy_value = _as_str(data.get("strategy"))
    if strategy_value:
        try:
            strategy = MergeStrategy.parse(strategy_value)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    analyzer_data = _as_dict(data.get("analyzers"))
    analyzers = AnalyzerConfig()
    if analyzer_data:
        analyzers.enabled = _as_str_list(analyzer_data.get("enabled"))
        analyzers.exclude_paths = _as_str_list(analyzer_data.get("exclude_paths"))
        analyzers.timeout = _as_float(analyzer_data.get("timeout"))

    pipeline_data = data.get("pipeline")
    manual = ManualConfiguration()
    if pipeline_data is not None:
        if not isinstance(pipeline_data, dict):
            raise ConfigError("'pipeline' must be a mapping")
        manual = parse_manual_configuration(pipeline_data)

    return PipegenConfig(
        root=root,
        strategy=strategy,
        manual=manual,
        analyzers=analyzers,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        output=_as_str(data.get("output")),
    )


def parse_manual_configuration(data: Mapping[str, Any]) -> ManualConfiguration:
    """Build a ``ManualConfiguration`` from a plain mapping.

    Keys that are absent or ``null`` stay unset; any other value, including
    ``false`` and empty lists, is an explicit setting.
    """
    if not isinstance(data, Mapping):
        raise ConfigError("Manual configuration must be a mapping")

    known = set(ManualConfiguration.__dataclass_fields__)
    unknown = sorted(str(key) for key in data if key not in known)
    if unknown:
        raise ConfigError(f"Unknown manual configuration keys: {', '.join(unknown)}")

    def _present(key: str) -> bool:
        return data.get(key) is not None

    values: Dict[str, Setting[Any]] = {}

    for key in ("project_type", "runtime_version", "image"):
        if _present(key):
            if key == "runtime_version" and isinstance(data[key], (float, bool)):
                # YAML reads 3.10 as the float 3.1.
                raise ConfigError(f"'{key}' must be a quoted string, got {data[key]!r}")
            text = _as_str(data[key])
            if text is None:
                raise ConfigError(f"'{key}' must be a string")
            values[key] = Setting.of(text.strip())

    for key in (
        "include_tests",
        "include_deployment",
        "include_code_quality",
        "include_security",
        "include_performance",
    ):
        if _present(key):
            flag = _as_bool(data[key])
            if flag is None:
                raise ConfigError(f"'{key}' must be a boolean")
            values[key] = Setting.of(flag)

    for key in ("stages", "runner_tags"):
        if _present(key):
            values[key] = Setting.of(tuple(_require_str_list(data[key], key)))

    if _present("variables"):
        values["variables"] = Setting.of(_as_variables(data["variables"], "variables"))

    if _present("environments"):
        values["environments"] = Setting.of(
            tuple(_parse_environment(item) for item in _require_list(data["environments"], "environments"))
        )

    if _present("custom_jobs"):
        values["custom_jobs"] = Setting.of(
            tuple(_parse_custom_job(item) for item in _require_list(data["custom_jobs"], "custom_jobs"))
        )

    if _present("cache"):
        cache = _require_dict(data["cache"], "cache")
        values["cache"] = Setting.of(
            CacheSettings(
                key=_as_str(cache.get("key")),
                paths=tuple(_as_str_list(cache.get("paths"))),
                policy=_as_str(cache.get("policy")),
            )
        )

    if _present("artifacts"):
        artifacts = _require_dict(data["artifacts"], "artifacts")
        values["artifacts"] = Setting.of(
            ArtifactSettings(
                paths=tuple(_as_str_list(artifacts.get("paths"))),
                expire_in=_as_str(artifacts.get("expire_in")) or "1 week",
            )
        )

    return ManualConfiguration(**{key: values.get(key, UNSET) for key in known})


def _parse_environment(item: Any) -> DeploymentEnvironment:
    if isinstance(item, str):
        return DeploymentEnvironment(name=item)
    entry = _require_dict(item, "environments[]")
    name = _as_str(entry.get("name"))
    if not name:
        raise ConfigError("Every environment needs a 'name'")
    return DeploymentEnvironment(
        name=name,
        url=_as_str(entry.get("url")),
        manual=bool(_as_bool(entry.get("manual"))),
        branch=_as_str(entry.get("branch")),
        variables=_as_variables(entry.get("variables") or {}, f"environments.{name}.variables"),
    )


def _parse_custom_job(item: Any) -> CustomJob:
    entry = _require_dict(item, "custom_jobs[]")
    name = _as_str(entry.get("name"))
    if not name:
        raise ConfigError("Every custom job needs a 'name'")
    return CustomJob(
        name=name,
        stage=_as_str(entry.get("stage")) or "",
        script=tuple(_as_str_list(entry.get("script"))),
        image=_as_str(entry.get("image")),
        before_script=tuple(_as_str_list(entry.get("before_script"))),
        after_script=tuple(_as_str_list(entry.get("after_script"))),
        variables=_as_variables(entry.get("variables") or {}, f"custom_jobs.{name}.variables"),
        when=_as_str(entry.get("when")),
        allow_failure=bool(_as_bool(entry.get("allow_failure"))),
        tags=tuple(_as_str_list(entry.get("tags"))),
        needs=tuple(_as_str_list(entry.get("needs"))),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _require_dict(value: Any, key: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping")
    return value


def _require_list(value: Any, key: str) -> List[Any]:
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list")
    return value


def _require_str_list(value: Any, key: str) -> List[str]:
    items = _require_list(value, key)
    if not all(isinstance(item, (str, int, float)) and not isinstance(item, bool) for item in items):
        raise ConfigError(f"'{key}' must be a list of strings")
    return [str(item).strip() for item in items]


def _as_variables(value: Any, key: str) -> Dict[str, str]:
    mapping = _require_dict(value, key)
    result: Dict[str, str] = {}
    for name, item in mapping.items():
        if isinstance(item, bool):
            result[str(name)] = "true" if item else "false"
        elif item is None:
            result[str(name)] = ""
        else:
            result[str(name)] = str(item)
    return result


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "AnalyzerConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "PipegenConfig",
    "load_config",
    "parse_manual_configuration",
]
