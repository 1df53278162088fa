"""Pipeline templates and their registry."""

from .base import PipelineTemplate
from .dotnet import DotNetTemplate
from .generic import GenericTemplate
from .nodejs import NodeTemplate
from .python import PythonTemplate
from .registry import TemplateRegistry, default_registry

__all__ = [
    "DotNetTemplate",
    "GenericTemplate",
    "NodeTemplate",
    "PipelineTemplate",
    "PythonTemplate",
    "TemplateRegistry",
    "default_registry",
]
