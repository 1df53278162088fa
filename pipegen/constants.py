"""Shared constants for project detection and pipeline assembly."""

from __future__ import annotations

UNKNOWN_TYPE = "unknown"
GENERIC_TYPE = "generic"

# Types that carry no concrete technology choice.
NON_SPECIFIC_TYPES: frozenset[str] = frozenset({UNKNOWN_TYPE, GENERIC_TYPE})

# Tie-break order when two project types score the same prominence.
TYPE_PRIORITY: tuple[str, ...] = (
    "dotnet",
    "java",
    "nodejs",
    "python",
    "go",
    "ruby",
    "php",
    "rust",
    "docker",
    "static",
)

# Root-level marker files, matched with fnmatch against the file name.
PROJECT_TYPE_MARKERS: dict[str, tuple[str, ...]] = {
    "dotnet": ("*.csproj", "*.fsproj", "*.vbproj", "*.sln", "global.json", "Directory.Build.props"),
    "java": ("pom.xml", "build.gradle", "build.gradle.kts", "settings.gradle", "mvnw", "gradlew"),
    "nodejs": ("package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml", ".nvmrc"),
    "python": (
        "requirements.txt",
        "setup.py",
        "setup.cfg",
        "pyproject.toml",
        "Pipfile",
        "environment.yml",
        ".python-version",
    ),
    "go": ("go.mod", "go.sum"),
    "ruby": ("Gemfile", "Gemfile.lock", "Rakefile", "*.gemspec"),
    "php": ("composer.json", "composer.lock"),
    "rust": ("Cargo.toml", "Cargo.lock"),
    "docker": ("Dockerfile", "docker-compose.yml", "docker-compose.yaml", "compose.yaml"),
    "static": ("index.html",),
}

DEFAULT_STAGES: tuple[str, ...] = ("build", "test", "deploy")

# Runtime version variable emitted for each detected project type.
VERSION_VARIABLES: dict[str, str] = {
    "dotnet": "DOTNET_VERSION",
    "nodejs": "NODE_VERSION",
    "python": "PYTHON_VERSION",
    "java": "JAVA_VERSION",
    "go": "GO_VERSION",
    "ruby": "RUBY_VERSION",
    "php": "PHP_VERSION",
    "rust": "RUST_VERSION",
}

# Runtime image derived from a detected type and version.
RUNTIME_IMAGES: dict[str, str] = {
    "dotnet": "mcr.microsoft.com/dotnet/sdk:{version}",
    "nodejs": "node:{version}-alpine",
    "python": "python:{version}-slim",
    "java": "openjdk:{version}-jdk-slim",
    "go": "golang:{version}",
    "ruby": "ruby:{version}",
    "php": "php:{version}-cli",
    "rust": "rust:{version}",
}

PRODUCTION_ENVIRONMENTS: frozenset[str] = frozenset({"production", "prod", "live"})


__all__ = [
    "DEFAULT_STAGES",
    "GENERIC_TYPE",
    "NON_SPECIFIC_TYPES",
    "PRODUCTION_ENVIRONMENTS",
    "PROJECT_TYPE_MARKERS",
    "RUNTIME_IMAGES",
    "TYPE_PRIORITY",
    "UNKNOWN_TYPE",
    "VERSION_VARIABLES",
]
