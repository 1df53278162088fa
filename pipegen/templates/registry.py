"""Registry of pipeline templates keyed by the project types they support."""

from __future__ import annotations

from importlib import metadata
from typing import Dict, Iterable, List, Optional

from ..errors import TemplateIncompatibleError
from ..logging import get_logger
from .base import PipelineTemplate
from .dotnet import DotNetTemplate
from .generic import GenericTemplate
from .nodejs import NodeTemplate
from .python import PythonTemplate

_ENTRY_POINT_GROUP = "pipegen.templates"

logger = get_logger("templates")


class TemplateRegistry:
    """Selects a template for a project type, falling back to ``fallback``."""

    def __init__(
        self,
        templates: Iterable[PipelineTemplate] = (),
        *,
        fallback: Optional[str] = GenericTemplate.name,
    ) -> None:
        self._templates: Dict[str, PipelineTemplate] = {}
        self.fallback = fallback
        for template in templates:
            self.register(template)

    def register(self, template: PipelineTemplate) -> None:
        if not isinstance(template, PipelineTemplate):
            raise TypeError("Templates must derive from PipelineTemplate")
        key = template.name.lower()
        if not key:
            raise ValueError("Templates need a name")
        if key in self._templates:
            raise ValueError(f"Template '{template.name}' is already registered")
        self._templates[key] = template

    def get(self, name: str) -> Optional[PipelineTemplate]:
        return self._templates.get(name.lower())

    def names(self) -> List[str]:
        return list(self._templates)

    def templates(self) -> List[PipelineTemplate]:
        return list(self._templates.values())

    def supported_types(self) -> List[str]:
        types = {
            project_type.lower()
            for template in self._templates.values()
            for project_type in template.supported_project_types
        }
        return sorted(types)

    def select(self, project_type: str) -> PipelineTemplate:
        """Return the template for ``project_type``.

        Dedicated templates are preferred over catch-all ones; when nothing
        matches the fallback template is used if it is registered.
        """
        wanted = (project_type or "").lower()
        for template in self._templates.values():
            if not template.accepts_any_type and template.supports(wanted):
                return template
        for template in self._templates.values():
            if wanted in {item.lower() for item in template.supported_project_types}:
                return template
        if self.fallback:
            fallback = self.get(self.fallback)
            if fallback is not None:
                logger.debug("No template for '%s'; using %s", project_type, fallback.name)
                return fallback
        raise TemplateIncompatibleError(project_type, self.supported_types())


def default_registry() -> TemplateRegistry:
    """Registry with the built-in templates plus any ``pipegen.templates`` plugins."""
    registry = TemplateRegistry(
        [GenericTemplate(), DotNetTemplate(), NodeTemplate(), PythonTemplate()]
    )
    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - defensive guard
            raise RuntimeError(f"Failed to load template entry point '{entry.name}': {exc}") from exc
        template = loaded() if isinstance(loaded, type) else loaded
        if registry.get(template.name) is not None:
            logger.warning("Skipping template plugin %s: name already registered", entry.name)
            continue
        registry.register(template)
    return registry


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = ["TemplateRegistry", "default_registry"]
