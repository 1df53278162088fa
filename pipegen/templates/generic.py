"""Fallback template for project types without a dedicated template."""

from __future__ import annotations

from .base import PipelineTemplate


class GenericTemplate(PipelineTemplate):
    name = "generic"
    description = "Generic pipeline with placeholder build, test and deploy scripts"
    supported_project_types = ("generic",)
    accepts_any_type = True
    default_image = "ubuntu:latest"


__all__ = ["GenericTemplate"]
