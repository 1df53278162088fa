"""Exception types raised by pipeline assembly."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence


class PipegenError(RuntimeError):
    """Base class for fatal pipegen errors."""


@dataclass
class ValidationIssue:
    """A single reason a pipeline spec was rejected by a template."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class SpecValidationError(PipegenError):
    """Raised when a unified pipeline spec fails template validation."""

    def __init__(self, message: str, issues: Sequence[ValidationIssue] | None = None) -> None:
        super().__init__(message)
        self.issues: List[ValidationIssue] = list(issues or [])

    def __str__(self) -> str:
        base = super().__str__()
        if not self.issues:
            return base
        details = "; ".join(str(issue) for issue in self.issues)
        return f"{base}: {details}"


class TemplateIncompatibleError(PipegenError):
    """Raised when no registered template can handle a project type."""

    def __init__(self, project_type: str, supported_types: Iterable[str]) -> None:
        self.project_type = project_type
        self.supported_types = sorted(set(supported_types))
        supported = ", ".join(self.supported_types) or "none"
        super().__init__(
            f"No template supports project type '{project_type}'. Supported types: {supported}"
        )


__all__ = [
    "PipegenError",
    "SpecValidationError",
    "TemplateIncompatibleError",
    "ValidationIssue",
]
