"""Template for Python projects."""

from __future__ import annotations

from typing import Any, Dict, List

from ..models import UnifiedPipelineSpec
from .base import PipelineTemplate

_PYTEST = "python -m pytest --junitxml=test-results.xml --cov=. --cov-report=xml"


class PythonTemplate(PipelineTemplate):
    name = "python"
    description = "Python pipeline with pip installs and pytest reports"
    supported_project_types = ("python",)
    supported_versions = ("3.8", "3.9", "3.10", "3.11", "3.12", "3.13")
    version_parts = 2
    default_version = "3.11"
    default_image = "python:3.11-slim"
    image_pattern = "python:{version}-slim"
    default_variables = {
        "PIP_CACHE_DIR": "$CI_PROJECT_DIR/.cache/pip",
        "PYTHONPATH": "$CI_PROJECT_DIR",
    }
    default_cache_key = "$CI_COMMIT_REF_SLUG-python"
    default_cache_paths = (".cache/pip/", "venv/")
    default_artifact_paths = ("dist/",)

    def build_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.build_commands:
            return list(spec.build_commands)
        return ["pip install --upgrade pip", "pip install -r requirements.txt"]

    def test_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        commands = list(spec.test_commands)
        if not commands or commands == ["python -m pytest"]:
            return [_PYTEST]
        return commands

    def lint_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.lint_commands:
            return list(spec.lint_commands)
        return ["pip install flake8", "flake8 ."]

    def test_reports(self, spec: UnifiedPipelineSpec) -> Dict[str, Any]:
        return {
            "junit": ["test-results.xml"],
            "coverage_report": {"coverage_format": "cobertura", "path": "coverage.xml"},
        }


__all__ = ["PythonTemplate"]
