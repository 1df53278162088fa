"""Dependency analyzer implementation."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .base import Analyzer
from .utils import (
    detect_node_package_manager,
    load_package_json,
    load_pyproject,
    node_dependencies,
    parse_composer,
    parse_csproj,
    parse_gemfile,
    parse_go_mod,
    parse_gradle_dependencies,
    parse_pom,
    parse_pyproject_dependencies,
    parse_requirements,
)
from ..models import (
    CacheRecommendation,
    Confidence,
    Dependency,
    RepoManifest,
    SecurityRecommendation,
    Signal,
)
from ..repository import RepositoryProvider

CACHE_THRESHOLD = 5
SECURITY_THRESHOLD = 10

_SECURITY_SENSITIVE: Dict[str, Tuple[str, ...]] = {
    "nodejs": ("express", "lodash", "moment", "request", "axios", "jsonwebtoken"),
    "dotnet": ("newtonsoft.json", "microsoft.aspnetcore", "system.identitymodel.tokens.jwt"),
    "python": ("django", "flask", "requests", "pyjwt", "cryptography"),
    "java": ("spring-boot", "jackson", "log4j"),
}

_CACHE_PATHS: Dict[str, Tuple[str, ...]] = {
    "npm": ("node_modules/", ".npm/"),
    "yarn": ("node_modules/", ".yarn/cache/"),
    "pnpm": ("node_modules/", ".pnpm-store/"),
    "nuget": (".nuget/packages/",),
    "pip": (".cache/pip/", ".venv/"),
    "poetry": (".cache/pypoetry/", ".venv/"),
    "maven": (".m2/repository/",),
    "gradle": (".gradle/caches/", ".gradle/wrapper/"),
    "go": (".go/pkg/mod/",),
    "bundler": ("vendor/bundle/",),
    "composer": ("vendor/",),
}

_SCANNERS: Dict[str, Tuple[str, ...]] = {
    "npm": ("npm-audit", "nodejsscan"),
    "yarn": ("npm-audit", "nodejsscan"),
    "pnpm": ("npm-audit", "nodejsscan"),
    "nuget": ("security-code-scan", "dotnet-vulnerable-packages"),
    "pip": ("safety", "bandit"),
    "poetry": ("safety", "bandit"),
    "maven": ("owasp-dependency-check", "spotbugs"),
    "gradle": ("owasp-dependency-check", "spotbugs"),
}

SECRET_DETECTION = "secret-detection"


class DependencyAnalyzer(Analyzer):
    """Extracts dependencies and derives cache and security-scan recommendations."""

    name = "dependencies"

    MANIFEST_FILES = {
        "requirements.txt",
        "pyproject.toml",
        "package.json",
        "pom.xml",
        "build.gradle",
        "build.gradle.kts",
        "go.mod",
        "Gemfile",
        "composer.json",
    }

    def supports(self, manifest: RepoManifest) -> bool:
        return bool(self.MANIFEST_FILES & set(manifest.root_names())) or bool(
            manifest.match("*.csproj")
        )

    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        collected = self._collect(manifest, provider)
        if collected is None:
            return None
        project_type, manager, dependencies, markers = collected

        if not dependencies:
            return Signal(
                source=self.name,
                confidence=Confidence.MEDIUM,
                detected_type=project_type,
                marker_files=tuple(markers),
                dependencies=(),
                package_manager=manager,
            )

        sensitive = self._sensitive(project_type, dependencies)
        total = len(dependencies)
        cache = None
        if total > CACHE_THRESHOLD and manager in _CACHE_PATHS:
            cache = CacheRecommendation(
                key=f"$CI_COMMIT_REF_SLUG-{manager}",
                paths=_CACHE_PATHS[manager],
                reason=f"{total} dependencies managed by {manager}",
            )

        if sensitive:
            reason = "Security-sensitive dependencies detected"
        elif total > SECURITY_THRESHOLD:
            reason = f"{total} dependencies warrant dependency scanning"
        else:
            reason = ""
        security = SecurityRecommendation(
            recommended=bool(reason),
            scanners=_SCANNERS.get(manager, ()) + (SECRET_DETECTION,),
            sensitive_packages=tuple(sensitive),
            reason=reason,
        )

        recommendations = []
        if cache is not None:
            recommendations.append(f"Cache {manager} dependencies between pipeline runs")
        if security.recommended:
            recommendations.append(f"Enable dependency scanning: {reason.lower()}")

        return Signal(
            source=self.name,
            confidence=Confidence.HIGH,
            detected_type=project_type,
            marker_files=tuple(markers),
            dependencies=tuple(dependencies),
            package_manager=manager,
            cache=cache,
            security=security,
            recommendations=tuple(recommendations),
        )

    def _collect(
        self, manifest: RepoManifest, provider: RepositoryProvider
    ) -> Optional[Tuple[str, str, List[Dependency], List[str]]]:
        root_names = set(manifest.root_names())

        projects = manifest.match("*.csproj")
        if projects:
            deps: List[Dependency] = []
            for project in projects:
                deps.extend(parse_csproj(self.read(provider, project.path))["packages"])
            markers = sorted(name for name in root_names if name.endswith((".csproj", ".sln")))
            return "dotnet", "nuget", _dedupe(deps), markers

        if "pom.xml" in root_names:
            return "java", "maven", parse_pom(self.read(provider, "pom.xml"))["packages"], ["pom.xml"]

        gradle_files = sorted(root_names & {"build.gradle", "build.gradle.kts"})
        if gradle_files:
            deps = []
            for gradle in gradle_files:
                deps.extend(parse_gradle_dependencies(self.read(provider, gradle)))
            return "java", "gradle", _dedupe(deps), gradle_files

        if "package.json" in root_names:
            package = load_package_json(self.read(provider, "package.json"))
            manager = detect_node_package_manager(manifest.paths())
            return "nodejs", manager, node_dependencies(package), ["package.json"]

        python_files = sorted(root_names & {"requirements.txt", "pyproject.toml"})
        if python_files:
            deps = []
            manager = "pip"
            if "requirements.txt" in root_names:
                deps.extend(parse_requirements(self.read(provider, "requirements.txt")))
            if "pyproject.toml" in root_names:
                data = load_pyproject(self.read(provider, "pyproject.toml"))
                deps.extend(parse_pyproject_dependencies(data))
                tool = data.get("tool")
                if isinstance(tool, dict) and "poetry" in tool:
                    manager = "poetry"
            return "python", manager, _dedupe(deps), python_files

        if "go.mod" in root_names:
            return "go", "go", parse_go_mod(self.read(provider, "go.mod"))["packages"], ["go.mod"]

        if "Gemfile" in root_names:
            return "ruby", "bundler", parse_gemfile(self.read(provider, "Gemfile")), ["Gemfile"]

        if "composer.json" in root_names:
            return "php", "composer", parse_composer(self.read(provider, "composer.json")), ["composer.json"]

        return None

    @staticmethod
    def _sensitive(project_type: str, dependencies: List[Dependency]) -> List[str]:
        watched = _SECURITY_SENSITIVE.get(project_type, ())
        found: List[str] = []
        for dep in dependencies:
            lower = dep.name.lower()
            if any(lower == item or lower.startswith(f"{item}.") or item in lower.split(":")[-1] for item in watched):
                found.append(dep.name)
        return found


def _dedupe(dependencies: List[Dependency]) -> List[Dependency]:
    seen: Dict[str, Dependency] = {}
    for dep in dependencies:
        seen.setdefault(dep.name.lower(), dep)
    return list(seen.values())


__all__ = ["DependencyAnalyzer", "SECRET_DETECTION"]
