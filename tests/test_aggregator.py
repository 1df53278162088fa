"""Tests for signal collection and aggregation."""

from __future__ import annotations

import os
import subprocess
import sys
import textwrap
import threading
import time
from pathlib import Path

from pipegen.aggregator import aggregate, collect_signals, prominence_scores, resolve_project_type
from pipegen.analyzers import Analyzer
from pipegen.models import (
    BuildToolInfo,
    CacheRecommendation,
    Confidence,
    Dependency,
    DeploymentInfo,
    FrameworkInfo,
    SecurityRecommendation,
    Signal,
    WarningKind,
)


class StaticAnalyzer(Analyzer):
    def __init__(self, name: str, signal: Signal | None, *, supported: bool = True) -> None:
        self.name = name
        self._signal = signal
        self._supported = supported

    def supports(self, manifest):
        return self._supported

    def analyze(self, manifest, provider):
        return self._signal


class ExplodingAnalyzer(Analyzer):
    name = "exploding"

    def supports(self, manifest):
        return True

    def analyze(self, manifest, provider):
        raise RuntimeError("boom")


class SlowAnalyzer(Analyzer):
    name = "slow"

    def __init__(self, release: threading.Event) -> None:
        self._release = release

    def supports(self, manifest):
        return True

    def analyze(self, manifest, provider):
        self._release.wait(5)
        return Signal(source=self.name)


def _kinds(result) -> list:
    return [warning.kind for warning in result.warnings]


def test_collect_signals_records_failures_and_skips_unsupported(repo_builder) -> None:
    repo_builder.write({"package.json": "{}\n"})
    analyzers = [
        StaticAnalyzer("first", Signal(source="first", detected_type="nodejs")),
        ExplodingAnalyzer(),
        StaticAnalyzer("skipped", Signal(source="skipped"), supported=False),
        StaticAnalyzer("silent", None),
    ]

    signals = collect_signals(repo_builder.scan(), analyzers, repo_builder.provider())

    assert [signal.source for signal in signals] == ["first", "exploding"]
    assert not signals[0].failed
    assert signals[1].failed
    assert signals[1].error == "boom"


def test_collect_signals_times_out_slow_analyzers(repo_builder) -> None:
    repo_builder.write({"package.json": "{}\n"})
    release = threading.Event()
    try:
        signals = collect_signals(
            repo_builder.scan(),
            [SlowAnalyzer(release), StaticAnalyzer("fast", Signal(source="fast"))],
            repo_builder.provider(),
            timeout=0.05,
        )
    finally:
        release.set()

    assert [signal.source for signal in signals] == ["slow", "fast"]
    assert signals[0].failed
    assert "timed out" in signals[0].error
    assert not signals[1].failed


def test_hung_analyzer_does_not_block_process_exit(tmp_path: Path) -> None:
    script = textwrap.dedent(
        """
        import time

        from pipegen.aggregator import collect_signals
        from pipegen.analyzers import Analyzer
        from pipegen.models import RepoManifest


        class Hung(Analyzer):
            name = "hung"

            def supports(self, manifest):
                return True

            def analyze(self, manifest, provider):
                time.sleep(30)


        signals = collect_signals(RepoManifest(root=".", files=[]), [Hung()], None, timeout=0.2)
        assert signals[0].failed
        """
    )
    project_root = Path(__file__).resolve().parents[1]
    python_path = [str(project_root), os.environ.get("PYTHONPATH", "")]
    env = {**os.environ, "PYTHONPATH": os.pathsep.join(filter(None, python_path))}

    started = time.monotonic()
    completed = subprocess.run(
        [sys.executable, "-c", script], cwd=tmp_path, env=env, capture_output=True, text=True, timeout=20
    )
    elapsed = time.monotonic() - started

    assert completed.returncode == 0, completed.stderr
    assert elapsed < 10


def test_aggregate_turns_failures_into_warnings() -> None:
    result = aggregate(
        [
            Signal(
                source="project_type",
                confidence=Confidence.HIGH,
                detected_type="nodejs",
                marker_files=("package.json", "package-lock.json"),
            ),
            Signal.failure("build", "boom"),
        ]
    )

    assert result.detected_type == "nodejs"
    assert result.type_confidence is Confidence.HIGH
    assert WarningKind.PARTIAL_SIGNAL_FAILURE in _kinds(result)
    failure = next(w for w in result.warnings if w.kind is WarningKind.PARTIAL_SIGNAL_FAILURE)
    assert failure.component == "build"
    assert "boom" in failure.message
    assert result.contributors == ("project_type",)


def test_aggregate_without_signals_is_unknown_and_low() -> None:
    result = aggregate([])

    assert result.detected_type == "unknown"
    assert result.confidence is Confidence.LOW
    assert WarningKind.UNKNOWN_TYPE in _kinds(result)
    assert WarningKind.NO_DEPENDENCIES in _kinds(result)


def test_type_conflict_prefers_more_prominent_markers() -> None:
    signals = [
        Signal(
            source="project_type",
            confidence=Confidence.MEDIUM,
            detected_type="dotnet",
            marker_files=("Api.csproj", "Api.sln"),
        ),
        Signal(
            source="build",
            confidence=Confidence.HIGH,
            detected_type="nodejs",
            marker_files=("package.json",),
        ),
    ]

    assert prominence_scores(signals) == {"dotnet": 4, "nodejs": 3}
    winner, confidence, warning = resolve_project_type(signals)

    assert winner == "dotnet"
    assert confidence is Confidence.MEDIUM
    assert warning.kind is WarningKind.TYPE_CONFLICT
    assert "nodejs (3)" in warning.message


def test_prominence_ties_follow_type_priority() -> None:
    signals = [
        Signal(source="a", confidence=Confidence.HIGH, detected_type="python", marker_files=("pyproject.toml",)),
        Signal(source="b", confidence=Confidence.HIGH, detected_type="dotnet", marker_files=("App.csproj",)),
    ]

    winner, _, _ = resolve_project_type(signals)

    assert winner == "dotnet"


def test_overall_confidence_is_lowest_contributing_area() -> None:
    result = aggregate(
        [
            Signal(
                source="project_type",
                confidence=Confidence.HIGH,
                detected_type="python",
                marker_files=("pyproject.toml",),
                framework=FrameworkInfo(name="FastAPI", version="3.11"),
            ),
            Signal(
                source="build",
                confidence=Confidence.HIGH,
                detected_type="python",
                build_tool=BuildToolInfo(name="pip"),
                build_commands=("pip install -e .",),
                test_commands=("python -m pytest",),
            ),
            Signal(
                source="deployment",
                confidence=Confidence.MEDIUM,
                deployment=DeploymentInfo(has_config=True, environments=("staging",)),
            ),
        ]
    )

    assert result.area_confidence["type"] is Confidence.HIGH
    assert result.area_confidence["build"] is Confidence.HIGH
    assert result.area_confidence["deployment"] is Confidence.MEDIUM
    assert "container" not in result.area_confidence
    assert result.confidence is Confidence.MEDIUM
    assert result.framework.name == "FastAPI"
    assert result.build_commands == ("pip install -e .",)
    assert result.test_commands == ("python -m pytest",)


def test_aggregate_unions_dependencies_and_deployments() -> None:
    result = aggregate(
        [
            Signal(
                source="dependencies",
                confidence=Confidence.HIGH,
                detected_type="nodejs",
                dependencies=(Dependency(name="express"), Dependency(name="Lodash")),
                cache=CacheRecommendation(key="$CI_COMMIT_REF_SLUG-npm", paths=("node_modules/",)),
                security=SecurityRecommendation(
                    recommended=True, scanners=("npm-audit",), sensitive_packages=("express",)
                ),
            ),
            Signal(source="other", dependencies=(Dependency(name="lodash"),)),
            Signal(
                source="deployment",
                deployment=DeploymentInfo(has_config=True, environments=("Staging",), targets=("helm",)),
            ),
            Signal(
                source="extra",
                confidence=Confidence.LOW,
                deployment=DeploymentInfo(
                    has_config=True, environments=("staging", "production"), targets=("kubernetes",)
                ),
            ),
        ]
    )

    assert [dep.name for dep in result.dependencies] == ["express", "Lodash"]
    assert result.cache.key == "$CI_COMMIT_REF_SLUG-npm"
    assert result.deployment.environments == ("Staging", "production")
    assert result.deployment.targets == ("helm", "kubernetes")
    assert WarningKind.SECURITY_SENSITIVE in _kinds(result)
    assert WarningKind.NO_DEPENDENCIES not in _kinds(result)
