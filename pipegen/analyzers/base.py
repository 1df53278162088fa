"""Base classes for analyzer plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..models import RepoManifest, Signal
from ..repository import RepositoryProvider


class Analyzer(ABC):
    """Contract for analyzers that emit a signal from the repo manifest."""

    #: Registry key and the ``source`` recorded on emitted signals.
    name: str = ""

    @abstractmethod
    def supports(self, manifest: RepoManifest) -> bool:
        """Return True when this analyzer should run for the repository."""

    @abstractmethod
    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        """Return a partial finding, or ``None`` when nothing was observed."""

    def read(self, provider: RepositoryProvider, path: str) -> str:
        """Read a file, treating unreadable files as empty."""
        try:
            return provider.read_file(path)
        except (FileNotFoundError, IsADirectoryError, UnicodeDecodeError):
            return ""


__all__ = ["Analyzer"]
