"""Project type and framework analyzer implementation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Dict, List, Optional, Tuple

from .base import Analyzer
from .utils import (
    detect_dotnet_frameworks,
    detect_java_frameworks,
    detect_node_frameworks,
    detect_python_frameworks,
    extract_version,
    global_json_sdk_version,
    load_package_json,
    load_pyproject,
    node_dependencies,
    node_engine_version,
    parse_csproj,
    parse_go_mod,
    parse_gradle_dependencies,
    parse_pom,
    parse_pyproject_dependencies,
    parse_requirements,
    pyproject_python_version,
)
from ..constants import PROJECT_TYPE_MARKERS
from ..models import Confidence, FrameworkInfo, RepoManifest, Signal
from ..repository import RepositoryProvider


@dataclass(frozen=True)
class _PatternRule:
    pattern: str
    weight: int
    required: bool = False


_TYPE_RULES: Dict[str, Tuple[_PatternRule, ...]] = {
    "dotnet": (
        _PatternRule(r"\.csproj$", 10, required=True),
        _PatternRule(r"\.sln$", 8),
        _PatternRule(r"\.(cs|fs|vb)$", 5),
        _PatternRule(r"(^|/)global\.json$", 3),
        _PatternRule(r"(^|/)Directory\.Build\.props$", 3),
    ),
    "nodejs": (
        _PatternRule(r"(^|/)package\.json$", 10, required=True),
        _PatternRule(r"\.(js|ts|mjs|cjs)$", 5),
        _PatternRule(r"(^|/)(yarn\.lock|package-lock\.json|pnpm-lock\.yaml)$", 3),
    ),
    "python": (
        _PatternRule(r"(^|/)(requirements\.txt|setup\.py|pyproject\.toml)$", 8),
        _PatternRule(r"\.py$", 5, required=True),
        _PatternRule(r"(^|/)(Pipfile|environment\.yml)$", 3),
    ),
    "java": (
        _PatternRule(r"(^|/)(pom\.xml|build\.gradle(\.kts)?)$", 10),
        _PatternRule(r"\.(java|kt)$", 5, required=True),
        _PatternRule(r"(^|/)(gradle\.properties|gradlew|mvnw)$", 3),
    ),
    "go": (
        _PatternRule(r"(^|/)go\.mod$", 10, required=True),
        _PatternRule(r"\.go$", 5),
        _PatternRule(r"(^|/)go\.sum$", 3),
    ),
    "ruby": (
        _PatternRule(r"(^|/)Gemfile$", 10, required=True),
        _PatternRule(r"\.rb$", 5),
        _PatternRule(r"(^|/)(Gemfile\.lock|Rakefile)$", 3),
    ),
    "php": (
        _PatternRule(r"(^|/)composer\.json$", 10),
        _PatternRule(r"\.php$", 5, required=True),
        _PatternRule(r"(^|/)composer\.lock$", 3),
    ),
    "rust": (
        _PatternRule(r"(^|/)Cargo\.toml$", 10, required=True),
        _PatternRule(r"\.rs$", 5),
        _PatternRule(r"(^|/)Cargo\.lock$", 3),
    ),
    "docker": (
        _PatternRule(r"(^|/)Dockerfile$", 10, required=True),
        _PatternRule(r"(^|/)docker-compose\.ya?ml$", 8),
        _PatternRule(r"(^|/)\.dockerignore$", 3),
    ),
    "static": (
        _PatternRule(r"(^|/)index\.html$", 8, required=True),
        _PatternRule(r"\.html$", 5),
        _PatternRule(r"\.css$", 3),
    ),
}

# Upper bound on files counted per rule.
_MAX_MATCHES_PER_RULE = 5
_AMBIGUITY_MARGIN = 5


class ProjectTypeAnalyzer(Analyzer):
    """Detects the primary project type, its framework and runtime version."""

    name = "project_type"

    def supports(self, manifest: RepoManifest) -> bool:
        return bool(manifest.files)

    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        scores = self.score(manifest)
        if not scores:
            return None

        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        detected, top_score = ranked[0]
        runner_up = ranked[1][1] if len(ranked) > 1 else 0

        if top_score - runner_up < _AMBIGUITY_MARGIN:
            confidence = Confidence.LOW
        elif top_score >= 20:
            confidence = Confidence.HIGH
        elif top_score >= 10:
            confidence = Confidence.MEDIUM
        else:
            confidence = Confidence.LOW

        markers = tuple(
            name
            for name in manifest.root_names()
            if any(fnmatchcase(name, pattern) for pattern in PROJECT_TYPE_MARKERS.get(detected, ()))
        )

        return Signal(
            source=self.name,
            confidence=confidence,
            detected_type=detected,
            marker_files=markers,
            framework=self._detect_framework(detected, manifest, provider),
        )

    @staticmethod
    def score(manifest: RepoManifest) -> Dict[str, int]:
        """Return weighted pattern scores for every type whose required files exist."""
        scores: Dict[str, int] = {}
        for project_type, rules in _TYPE_RULES.items():
            score = 0
            satisfied = True
            for rule in rules:
                regex = re.compile(rule.pattern, re.IGNORECASE)
                matches = sum(1 for file in manifest.files if regex.search(file.path))
                if matches:
                    score += rule.weight * min(matches, _MAX_MATCHES_PER_RULE)
                elif rule.required:
                    satisfied = False
                    break
            if satisfied and score > 0:
                scores[project_type] = score
        return scores

    def _detect_framework(
        self, project_type: str, manifest: RepoManifest, provider: RepositoryProvider
    ) -> Optional[FrameworkInfo]:
        detector = getattr(self, f"_framework_{project_type}", None)
        if detector is None:
            return None
        return detector(manifest, provider)

    def _framework_dotnet(
        self, manifest: RepoManifest, provider: RepositoryProvider
    ) -> Optional[FrameworkInfo]:
        version: Optional[str] = None
        sdk: Optional[str] = None
        packages: List[str] = []
        for project in manifest.match("*.csproj"):
            parsed = parse_csproj(self.read(provider, project.path))
            version = version or parsed["version"]
            sdk = sdk or parsed["sdk"]
            packages.extend(dep.name for dep in parsed["packages"])
        if version is None and manifest.has("global.json"):
            version = global_json_sdk_version(self.read(provider, "global.json"))

        frameworks = detect_dotnet_frameworks(sdk, packages)
        features = []
        if any(name.lower().startswith("microsoft.entityframeworkcore") for name in packages):
            features.append("Entity Framework Core")
        if manifest.match("*Program.cs"):
            features.append("Program.cs")
        return FrameworkInfo(
            name=frameworks[0] if frameworks else ".NET",
            version=version,
            features=tuple(features),
        )

    def _framework_nodejs(
        self, manifest: RepoManifest, provider: RepositoryProvider
    ) -> Optional[FrameworkInfo]:
        package = load_package_json(self.read(provider, "package.json")) if manifest.has("package.json") else {}
        version = node_engine_version(package)
        if version is None and manifest.has(".nvmrc"):
            version = extract_version(self.read(provider, ".nvmrc"), parts=1)

        frameworks = detect_node_frameworks(dep.name for dep in node_dependencies(package))
        features = []
        if manifest.match("*.ts") or manifest.has("tsconfig.json"):
            features.append("TypeScript")
        configuration = {}
        if isinstance(package.get("type"), str):
            configuration["NODE_MODULE_TYPE"] = package["type"]
        return FrameworkInfo(
            name=frameworks[0] if frameworks else "Node.js",
            version=version,
            features=tuple(frameworks[1:] + features),
            configuration=configuration,
        )

    def _framework_python(
        self, manifest: RepoManifest, provider: RepositoryProvider
    ) -> Optional[FrameworkInfo]:
        names: List[str] = []
        version: Optional[str] = None
        if manifest.has("requirements.txt"):
            names.extend(dep.name for dep in parse_requirements(self.read(provider, "requirements.txt")))
        if manifest.has("pyproject.toml"):
            data = load_pyproject(self.read(provider, "pyproject.toml"))
            names.extend(dep.name for dep in parse_pyproject_dependencies(data))
            version = pyproject_python_version(data)
        if version is None and manifest.has(".python-version"):
            version = extract_version(self.read(provider, ".python-version"), parts=2)

        frameworks = detect_python_frameworks(names)
        features = []
        if manifest.has("manage.py"):
            features.append("manage.py")
        return FrameworkInfo(
            name=frameworks[0] if frameworks else "Python",
            version=version,
            features=tuple(frameworks[1:] + features),
        )

    def _framework_java(
        self, manifest: RepoManifest, provider: RepositoryProvider
    ) -> Optional[FrameworkInfo]:
        names: List[str] = []
        version: Optional[str] = None
        if manifest.has("pom.xml"):
            parsed = parse_pom(self.read(provider, "pom.xml"))
            version = parsed["version"]
            names.extend(dep.name for dep in parsed["packages"])
        for gradle in ("build.gradle", "build.gradle.kts"):
            if manifest.has(gradle):
                names.extend(dep.name for dep in parse_gradle_dependencies(self.read(provider, gradle)))

        frameworks = detect_java_frameworks(names)
        return FrameworkInfo(name=frameworks[0] if frameworks else "Java", version=version)

    def _framework_go(
        self, manifest: RepoManifest, provider: RepositoryProvider
    ) -> Optional[FrameworkInfo]:
        if not manifest.has("go.mod"):
            return FrameworkInfo(name="Go")
        parsed = parse_go_mod(self.read(provider, "go.mod"))
        return FrameworkInfo(name="Go", version=parsed["version"])


__all__ = ["ProjectTypeAnalyzer"]
