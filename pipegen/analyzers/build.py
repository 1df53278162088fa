"""Build system analyzer implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .base import Analyzer
from .utils import (
    build_node_script_command,
    detect_node_package_manager,
    load_package_json,
    load_pyproject,
    node_dependencies,
    node_install_command,
    node_scripts,
    parse_csproj,
    parse_requirements,
    parse_pyproject_dependencies,
)
from ..models import BuildToolInfo, Confidence, RepoManifest, Signal
from ..repository import RepositoryProvider

_NODE_PLACEHOLDER_TEST = 'echo "Error: no test specified"'


@dataclass
class _BuildPlan:
    project_type: str
    tool: str
    markers: List[str]
    build: List[str] = field(default_factory=list)
    test: List[str] = field(default_factory=list)
    lint: List[str] = field(default_factory=list)
    artifacts: List[str] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)
    confidence: Confidence = Confidence.HIGH


class BuildAnalyzer(Analyzer):
    """Detects build systems, test runners and produced artifacts."""

    name = "build"

    def supports(self, manifest: RepoManifest) -> bool:
        return bool(manifest.files)

    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        paths = manifest.paths()
        root_names = set(manifest.root_names())

        for detector in (
            self._dotnet_plan,
            self._java_plan,
            self._node_plan,
            self._python_plan,
            self._go_plan,
            self._ruby_plan,
            self._php_plan,
            self._rust_plan,
        ):
            plan = detector(manifest, provider, paths, root_names)
            if plan is not None:
                return Signal(
                    source=self.name,
                    confidence=plan.confidence,
                    detected_type=plan.project_type,
                    marker_files=tuple(plan.markers),
                    build_tool=BuildToolInfo(name=plan.tool),
                    build_commands=tuple(plan.build),
                    test_commands=tuple(plan.test),
                    lint_commands=tuple(plan.lint) or None,
                    artifact_paths=tuple(plan.artifacts),
                    variables=plan.variables or None,
                )
        return None

    def _dotnet_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        projects = manifest.match("*.csproj")
        if not projects:
            return None
        markers = sorted(name for name in root_names if name.endswith((".csproj", ".sln")))
        has_tests = False
        for project in projects:
            if "test" in project.name.lower():
                has_tests = True
                break
            parsed = parse_csproj(self.read(provider, project.path))
            if any(dep.name.lower() in {"xunit", "nunit", "mstest.testframework"} for dep in parsed["packages"]):
                has_tests = True
                break
        return _BuildPlan(
            project_type="dotnet",
            tool="dotnet",
            markers=markers,
            build=["dotnet restore", "dotnet build --configuration Release --no-restore"],
            test=(
                ["dotnet test --configuration Release --no-build --verbosity normal"]
                if has_tests
                else []
            ),
            artifacts=["bin/Release/", "publish/"],
            variables={"DOTNET_CONFIGURATION": "Release"},
            confidence=Confidence.HIGH if markers else Confidence.MEDIUM,
        )

    def _java_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        if "pom.xml" in root_names:
            mvn = "./mvnw" if "mvnw" in root_names else "mvn"
            return _BuildPlan(
                project_type="java",
                tool="maven",
                markers=sorted(root_names & {"pom.xml", "mvnw"}),
                build=[f"{mvn} -B clean package -DskipTests"],
                test=[f"{mvn} -B test"],
                artifacts=["target/*.jar"],
                variables={"MAVEN_OPTS": "-Dmaven.repo.local=.m2/repository"},
            )
        gradle_files = root_names & {"build.gradle", "build.gradle.kts"}
        if gradle_files:
            gradle = "./gradlew" if "gradlew" in root_names else "gradle"
            return _BuildPlan(
                project_type="java",
                tool="gradle",
                markers=sorted(gradle_files | (root_names & {"gradlew"})),
                build=[f"{gradle} build -x test"],
                test=[f"{gradle} test"],
                artifacts=["build/libs/"],
                variables={"GRADLE_USER_HOME": "$CI_PROJECT_DIR/.gradle"},
            )
        return None

    def _node_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        if "package.json" not in root_names:
            return None
        package = load_package_json(self.read(provider, "package.json"))
        manager = detect_node_package_manager(paths)
        scripts = node_scripts(package)
        dep_names = {dep.name.lower() for dep in node_dependencies(package)}

        build = [node_install_command(manager)]
        if "build" in scripts:
            build.append(build_node_script_command("build", manager))

        test: List[str] = []
        test_script = scripts.get("test", "")
        if test_script and _NODE_PLACEHOLDER_TEST not in test_script:
            test.append(build_node_script_command("test", manager))
        elif "jest" in dep_names:
            test.append("npx jest --ci")
        elif "mocha" in dep_names:
            test.append("npx mocha")

        artifacts = [folder for folder in ("dist/", "build/") if any(path.startswith(folder) for path in paths)]
        if not artifacts and "build" in scripts:
            artifacts = ["dist/"]

        lint: List[str] = []
        if "lint" in scripts:
            lint.append(build_node_script_command("lint", manager))
        elif "eslint" in dep_names:
            lint.append("npx eslint .")

        markers = sorted(root_names & {"package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml"})
        return _BuildPlan(
            project_type="nodejs",
            tool=manager,
            markers=markers,
            build=build,
            test=test,
            lint=lint,
            artifacts=artifacts,
            confidence=Confidence.HIGH if package else Confidence.MEDIUM,
        )

    def _python_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        python_files = root_names & {"pyproject.toml", "setup.py", "setup.cfg", "requirements.txt", "Pipfile"}
        if not python_files:
            return None

        dep_names: set[str] = set()
        tool = "pip"
        if "requirements.txt" in root_names:
            dep_names.update(dep.name.lower() for dep in parse_requirements(self.read(provider, "requirements.txt")))
        if "pyproject.toml" in root_names:
            data = load_pyproject(self.read(provider, "pyproject.toml"))
            dep_names.update(dep.name.lower() for dep in parse_pyproject_dependencies(data))
            tool_section = data.get("tool")
            if isinstance(tool_section, dict) and "poetry" in tool_section:
                tool = "poetry"

        if tool == "poetry":
            build = ["pip install poetry", "poetry install --no-interaction"]
        elif "requirements.txt" in root_names:
            build = ["pip install -r requirements.txt"]
        else:
            build = ["pip install -e ."]

        has_tests = any(path.startswith("tests/") or "/test_" in f"/{path}" for path in paths)
        test: List[str] = []
        if "pytest" in dep_names or has_tests:
            runner = "poetry run pytest" if tool == "poetry" else "python -m pytest"
            test.append(runner)

        lint: List[str] = []
        for linter, command in (("ruff", "ruff check ."), ("flake8", "flake8 ."), ("pylint", "pylint --recursive=y .")):
            if linter in dep_names:
                lint.append(command)
                break

        return _BuildPlan(
            project_type="python",
            tool=tool,
            markers=sorted(python_files),
            build=build,
            test=test,
            lint=lint,
            artifacts=["dist/"] if "pyproject.toml" in root_names or "setup.py" in root_names else [],
        )

    def _go_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        if "go.mod" not in root_names:
            return None
        return _BuildPlan(
            project_type="go",
            tool="go",
            markers=sorted(root_names & {"go.mod", "go.sum"}),
            build=["go mod download", "go build ./..."],
            test=["go test ./..."] if any(path.endswith("_test.go") for path in paths) else [],
            lint=["go vet ./..."],
        )

    def _ruby_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        if "Gemfile" not in root_names:
            return None
        if any(path.startswith("spec/") for path in paths):
            test = ["bundle exec rspec"]
        elif "Rakefile" in root_names:
            test = ["bundle exec rake test"]
        else:
            test = []
        return _BuildPlan(
            project_type="ruby",
            tool="bundler",
            markers=sorted(root_names & {"Gemfile", "Gemfile.lock", "Rakefile"}),
            build=["bundle install"],
            test=test,
        )

    def _php_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        if "composer.json" not in root_names:
            return None
        has_phpunit = "phpunit.xml" in root_names or "phpunit.xml.dist" in root_names
        return _BuildPlan(
            project_type="php",
            tool="composer",
            markers=sorted(root_names & {"composer.json", "composer.lock"}),
            build=["composer install --no-interaction --prefer-dist"],
            test=["vendor/bin/phpunit"] if has_phpunit else [],
        )

    def _rust_plan(self, manifest, provider, paths, root_names) -> Optional[_BuildPlan]:
        if "Cargo.toml" not in root_names:
            return None
        return _BuildPlan(
            project_type="rust",
            tool="cargo",
            markers=sorted(root_names & {"Cargo.toml", "Cargo.lock"}),
            build=["cargo build --release"],
            test=["cargo test"],
            artifacts=["target/release/"],
        )


__all__ = ["BuildAnalyzer"]
