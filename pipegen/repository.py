"""Repository providers and manifest building utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Protocol, Sequence, runtime_checkable

from .config import ConfigError, load_config
from .logging import get_logger
from .models import RepoManifest, RepositoryFile

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".vs",
    "bin",
    "obj",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_MAX_READ_BYTES = 1024 * 1024

logger = get_logger("repository")


@runtime_checkable
class RepositoryProvider(Protocol):
    """Source of repository listings and file contents."""

    root: str

    def list_files(
        self, path: str = "", recursive: bool = True, max_depth: Optional[int] = None
    ) -> List[RepositoryFile]:
        ...

    def read_file(self, path: str) -> str:
        ...


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .pipegen.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _parse_config_excludes(root: Path) -> List[IgnoreRule]:
    try:
        config = load_config(root)
    except ConfigError as exc:
        logger.debug("Ignoring exclude paths from unreadable config: %s", exc)
        return []

    patterns = list(config.exclude_paths)
    patterns.extend(config.analyzers.exclude_paths)
    return [rule for rule in (_build_ignore_rule(item) for item in patterns) if rule is not None]


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


class LocalRepositoryProvider:
    """Repository provider backed by a checkout on the local filesystem."""

    def __init__(self, root: str | Path, exclude_paths: Sequence[str] = ()) -> None:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")
        self.root = str(root_path)
        self._root_path = root_path
        self._rules = _parse_gitignore(root_path / ".gitignore")
        self._rules.extend(_parse_config_excludes(root_path))
        for pattern in exclude_paths:
            rule = _build_ignore_rule(pattern)
            if rule is not None:
                self._rules.append(rule)

    def list_files(
        self, path: str = "", recursive: bool = True, max_depth: Optional[int] = None
    ) -> List[RepositoryFile]:
        """List files under ``path``; ``max_depth`` counts directory levels below it."""
        start = self._resolve(path)
        if not start.is_dir():
            raise NotADirectoryError(f"Not a directory in repository: {path}")
        depth_limit = max_depth if recursive else 0
        files = [
            RepositoryFile(
                name=file_path.name,
                path=file_path.relative_to(self._root_path).as_posix(),
                size=file_path.stat().st_size,
            )
            for file_path in self._iter_files(start, depth_limit)
        ]
        files.sort(key=lambda item: item.path)
        return files

    def read_file(self, path: str) -> str:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"File not found in repository: {path}")
        with target.open("rb") as handle:
            data = handle.read(_MAX_READ_BYTES)
        return data.decode("utf-8", errors="replace")

    def _resolve(self, path: str) -> Path:
        target = (self._root_path / path).resolve() if path else self._root_path
        try:
            target.relative_to(self._root_path)
        except ValueError as exc:
            raise ValueError(f"Path escapes repository root: {path}") from exc
        return target

    def _iter_files(self, start: Path, depth_limit: Optional[int]) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(start):
            current_dir = Path(dirpath)
            rel_dir = (
                current_dir.relative_to(self._root_path).as_posix()
                if current_dir != self._root_path
                else ""
            )
            depth = 0 if current_dir == start else len(current_dir.relative_to(start).parts)

            if depth_limit is not None and depth >= depth_limit:
                dirnames[:] = []
            else:
                kept = []
                for name in dirnames:
                    if name in _EXCLUDED_DIRS:
                        continue
                    rel_path = f"{rel_dir}/{name}" if rel_dir else name
                    if _should_ignore(rel_path, True, self._rules):
                        continue
                    kept.append(name)
                dirnames[:] = kept

            for filename in filenames:
                if filename in _EXCLUDED_FILES:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, self._rules):
                    continue
                yield current_dir / filename


def scan_repository(provider: RepositoryProvider, max_depth: Optional[int] = None) -> RepoManifest:
    """Return a manifest describing every visible file in the repository."""
    files = provider.list_files("", recursive=True, max_depth=max_depth)
    logger.debug("Listed %d files from %s", len(files), provider.root)
    return RepoManifest(root=provider.root, files=files)


__all__ = [
    "IgnoreRule",
    "LocalRepositoryProvider",
    "RepositoryProvider",
    "scan_repository",
]
