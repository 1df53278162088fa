"""Shared helper utilities for analyzer implementations.

All parsers take file *contents* rather than paths so they work against any
repository provider, local or remote.
"""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, List, Optional, Set

from ..models import Dependency

_VERSION_PATTERN = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")
_REQUIREMENT_SPLIT = re.compile(r"[<>=!~;\[\s@]")
_PINNED_VERSION = re.compile(r"==\s*([\w.\-+]+)")


def extract_version(spec: str | None, parts: int = 2) -> Optional[str]:
    """Return the first dotted version in ``spec`` trimmed to ``parts`` components."""
    if not spec:
        return None
    match = _VERSION_PATTERN.search(spec)
    if not match:
        return None
    components = [item for item in match.groups() if item is not None][:parts]
    return ".".join(components)


# Python dependency helpers


def parse_requirements(text: str) -> List[Dependency]:
    packages: List[Dependency] = []
    for line in text.splitlines():
        stripped = line.split("#", 1)[0].strip()
        if not stripped or stripped.startswith("-"):
            continue
        name = _REQUIREMENT_SPLIT.split(stripped, 1)[0].strip()
        if not name:
            continue
        pinned = _PINNED_VERSION.search(stripped)
        packages.append(Dependency(name=name, version=pinned.group(1) if pinned else None))
    return packages


def load_pyproject(text: str) -> Dict[str, Any]:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def parse_pyproject_dependencies(data: Dict[str, Any]) -> List[Dependency]:
    found: Dict[str, Dependency] = {}

    project = data.get("project")
    if isinstance(project, dict):
        for dep in project.get("dependencies", []) or []:
            _add_requirement(found, dep, dev=False)
        optional = project.get("optional-dependencies", {}) or {}
        for values in optional.values():
            for dep in values or []:
                _add_requirement(found, dep, dev=True)

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        for name in (poetry.get("dependencies", {}) or {}).keys():
            if name.lower() != "python":
                found.setdefault(name.lower(), Dependency(name=name))

    return sorted(found.values(), key=lambda dep: dep.name.lower())


def _add_requirement(found: Dict[str, Dependency], requirement: Any, *, dev: bool) -> None:
    if not isinstance(requirement, str):
        return
    name = _REQUIREMENT_SPLIT.split(requirement.strip(), 1)[0].strip()
    if name and name.lower() != "python":
        pinned = _PINNED_VERSION.search(requirement)
        found.setdefault(
            name.lower(), Dependency(name=name, version=pinned.group(1) if pinned else None, dev=dev)
        )


def pyproject_python_version(data: Dict[str, Any]) -> Optional[str]:
    project = data.get("project")
    if isinstance(project, dict) and isinstance(project.get("requires-python"), str):
        return extract_version(project["requires-python"], parts=2)
    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        python_spec = (poetry.get("dependencies", {}) or {}).get("python")
        if isinstance(python_spec, str):
            return extract_version(python_spec, parts=2)
    return None


# Node.js dependency helpers


def load_package_json(text: str) -> Dict[str, Any]:
    """Return the parsed package.json contents or an empty dict."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def node_dependencies(package: Dict[str, Any]) -> List[Dependency]:
    deps: List[Dependency] = []
    for key, dev in (("dependencies", False), ("devDependencies", True)):
        section = package.get(key, {})
        if not isinstance(section, dict):
            continue
        for name in sorted(section):
            version = section[name]
            deps.append(
                Dependency(name=name, version=str(version) if version is not None else None, dev=dev)
            )
    return deps


def node_scripts(package: Dict[str, Any]) -> Dict[str, str]:
    scripts = package.get("scripts", {})
    if not isinstance(scripts, dict):
        return {}
    return {str(name): str(command) for name, command in scripts.items()}


def node_engine_version(package: Dict[str, Any]) -> Optional[str]:
    engines = package.get("engines")
    if isinstance(engines, dict) and isinstance(engines.get("node"), str):
        return extract_version(engines["node"], parts=1)
    return None


def detect_node_package_manager(manifest_paths: Set[str]) -> str:
    """Infer the preferred Node package manager based on lockfiles."""
    if "pnpm-lock.yaml" in manifest_paths:
        return "pnpm"
    if "yarn.lock" in manifest_paths:
        return "yarn"
    return "npm"


def build_node_script_command(script: str, manager: str) -> str:
    manager = manager.lower()
    if manager == "pnpm":
        return f"pnpm {script}"
    if manager == "yarn":
        return f"yarn {script}"
    if script in {"start", "test"}:
        return f"npm {script}"
    return f"npm run {script}"


def node_install_command(manager: str) -> str:
    if manager == "pnpm":
        return "pnpm install --frozen-lockfile"
    if manager == "yarn":
        return "yarn install --frozen-lockfile"
    return "npm ci"


# .NET helpers


def parse_csproj(text: str) -> Dict[str, Any]:
    """Return target framework version, SDK and package references of a project file."""
    result: Dict[str, Any] = {"version": None, "sdk": None, "packages": []}
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return result

    result["sdk"] = root.attrib.get("Sdk")
    for element in root.iter():
        tag = _local_name(element.tag)
        if tag in {"TargetFramework", "TargetFrameworks"} and element.text and result["version"] is None:
            first = element.text.split(";")[0].strip()
            result["version"] = extract_version(first, parts=2)
        elif tag == "PackageReference":
            name = element.attrib.get("Include")
            if name:
                result["packages"].append(Dependency(name=name, version=element.attrib.get("Version")))
    return result


def global_json_sdk_version(text: str) -> Optional[str]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    sdk = data.get("sdk") if isinstance(data, dict) else None
    if isinstance(sdk, dict) and isinstance(sdk.get("version"), str):
        return extract_version(sdk["version"], parts=2)
    return None


# Java dependency helpers


def parse_pom(text: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {"version": None, "packages": []}
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return result

    for element in root.iter():
        tag = _local_name(element.tag)
        if tag in {"java.version", "maven.compiler.source", "maven.compiler.release"}:
            if element.text and result["version"] is None:
                result["version"] = extract_version(element.text, parts=1)
        elif tag == "dependency":
            group = artifact = version = None
            for child in element:
                child_tag = _local_name(child.tag)
                if child_tag == "groupId":
                    group = (child.text or "").strip()
                elif child_tag == "artifactId":
                    artifact = (child.text or "").strip()
                elif child_tag == "version":
                    version = (child.text or "").strip() or None
            if group and artifact:
                result["packages"].append(Dependency(name=f"{group}:{artifact}", version=version))
    return result


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def parse_gradle_dependencies(content: str) -> List[Dependency]:
    deps: Dict[str, Dependency] = {}
    pattern = re.compile(r"['\"]([\w\-.]+:[\w\-.]+)(?::([\w\-.]+))?['\"]")
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        if any(token in line for token in ("implementation", "api", "compile", "runtimeOnly", "testImplementation")):
            match = pattern.search(line)
            if match:
                deps.setdefault(
                    match.group(1),
                    Dependency(name=match.group(1), version=match.group(2), dev="test" in line.lower()),
                )
    return list(deps.values())


# Other ecosystems


def parse_go_mod(text: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {"version": None, "packages": []}
    in_block = False
    for raw in text.splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if line.startswith("go ") and result["version"] is None:
            result["version"] = extract_version(line[3:], parts=2)
        elif line.startswith("require ("):
            in_block = True
        elif in_block and line == ")":
            in_block = False
        elif in_block or line.startswith("require "):
            parts = line.replace("require ", "", 1).split()
            if len(parts) >= 2:
                result["packages"].append(Dependency(name=parts[0], version=parts[1]))
    return result


def parse_gemfile(text: str) -> List[Dependency]:
    pattern = re.compile(r"^\s*gem\s+['\"]([^'\"]+)['\"](?:\s*,\s*['\"]([^'\"]+)['\"])?")
    deps: List[Dependency] = []
    for line in text.splitlines():
        match = pattern.match(line)
        if match:
            deps.append(Dependency(name=match.group(1), version=match.group(2)))
    return deps


def parse_composer(text: str) -> List[Dependency]:
    data = load_package_json(text)
    deps: List[Dependency] = []
    for key, dev in (("require", False), ("require-dev", True)):
        section = data.get(key, {})
        if isinstance(section, dict):
            for name in sorted(section):
                if name == "php" or name.startswith("ext-"):
                    continue
                deps.append(Dependency(name=name, version=str(section[name]), dev=dev))
    return deps


# Framework heuristics


def detect_python_frameworks(dependencies: Iterable[str]) -> List[str]:
    mapping = {
        "fastapi": "FastAPI",
        "django": "Django",
        "flask": "Flask",
    }
    lower_deps = {dep.lower() for dep in dependencies}
    return [label for key, label in mapping.items() if key in lower_deps]


def detect_node_frameworks(dependencies: Iterable[str]) -> List[str]:
    mapping = {
        "express": "Express",
        "next": "Next.js",
        "react": "React",
        "@angular/core": "Angular",
        "vue": "Vue.js",
    }
    lower = {dep.lower() for dep in dependencies}
    return [label for key, label in mapping.items() if key in lower]


def detect_java_frameworks(dependencies: Iterable[str]) -> List[str]:
    for dep in dependencies:
        lower = dep.lower()
        if "spring-boot" in lower or "springframework" in lower:
            return ["Spring Boot"]
    return []


def detect_dotnet_frameworks(sdk: Optional[str], packages: Iterable[str]) -> List[str]:
    lower = {item.lower() for item in packages}
    if (sdk or "").lower() == "microsoft.net.sdk.web" or any(
        name.startswith("microsoft.aspnetcore") for name in lower
    ):
        return ["ASP.NET Core"]
    return []


__all__ = [
    "build_node_script_command",
    "detect_dotnet_frameworks",
    "detect_java_frameworks",
    "detect_node_frameworks",
    "detect_node_package_manager",
    "detect_python_frameworks",
    "extract_version",
    "global_json_sdk_version",
    "load_package_json",
    "load_pyproject",
    "node_dependencies",
    "node_engine_version",
    "node_install_command",
    "node_scripts",
    "parse_composer",
    "parse_csproj",
    "parse_gemfile",
    "parse_go_mod",
    "parse_gradle_dependencies",
    "parse_pom",
    "parse_pyproject_dependencies",
    "parse_requirements",
    "pyproject_python_version",
]
