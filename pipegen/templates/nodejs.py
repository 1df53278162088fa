"""Template for Node.js, JavaScript and TypeScript projects."""

from __future__ import annotations

from typing import Any, Dict, List

from ..models import UnifiedPipelineSpec
from .base import PipelineTemplate


class NodeTemplate(PipelineTemplate):
    name = "nodejs"
    description = "Node.js pipeline with npm/yarn/pnpm installs, tests and linting"
    supported_project_types = ("nodejs", "javascript", "typescript")
    supported_versions = ("16", "18", "20", "22")
    version_parts = 1
    default_version = "18"
    default_image = "node:18-alpine"
    image_pattern = "node:{version}-alpine"
    default_variables = {
        "NPM_CONFIG_CACHE": "$CI_PROJECT_DIR/.npm",
        "CYPRESS_CACHE_FOLDER": "$CI_PROJECT_DIR/cache/Cypress",
    }
    default_cache_key = "$CI_COMMIT_REF_SLUG-nodejs"
    default_cache_paths = ("node_modules/", ".npm/")
    default_artifact_paths = ("dist/",)

    def build_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.build_commands:
            return list(spec.build_commands)
        return ["npm ci", "npm run build --if-present"]

    def test_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.test_commands:
            return list(spec.test_commands)
        return ["npm test"]

    def lint_script(self, spec: UnifiedPipelineSpec) -> List[str]:
        if spec.lint_commands:
            return list(spec.lint_commands)
        return ["npm run lint --if-present"]

    def test_reports(self, spec: UnifiedPipelineSpec) -> Dict[str, Any]:
        return {"junit": ["test-results.xml"]}


__all__ = ["NodeTemplate"]
