"""Analyzers for existing CI, container and deployment configuration."""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

import yaml

from .base import Analyzer
from ..models import (
    Confidence,
    ContainerInfo,
    DeploymentInfo,
    ExistingCIInfo,
    RepoManifest,
    RepositoryFile,
    Signal,
)
from ..repository import RepositoryProvider

_CI_SYSTEMS: Tuple[Tuple[str, str], ...] = (
    ("gitlab", ".gitlab-ci.yml"),
    ("github-actions", ".github/workflows/*.yml"),
    ("github-actions", ".github/workflows/*.yaml"),
    ("jenkins", "Jenkinsfile"),
    ("azure-pipelines", "azure-pipelines.yml"),
    ("circleci", ".circleci/config.yml"),
    ("travis", ".travis.yml"),
    ("bitbucket", "bitbucket-pipelines.yml"),
)

_DOCKERFILE = re.compile(r"(^|/)Dockerfile(\.[\w-]+)?$")
_COMPOSE = re.compile(r"(^|/)(docker-)?compose(\.[\w-]+)?\.ya?ml$")
_ARG = re.compile(r"^\s*ARG\s+([A-Za-z_][A-Za-z0-9_]*)(?:=(\S*))?", re.IGNORECASE)
_FROM = re.compile(r"^\s*FROM\s+(?:--platform=\S+\s+)?(\S+)", re.IGNORECASE)

_ENVIRONMENT_ALIASES: Dict[str, str] = {
    "dev": "development",
    "development": "development",
    "test": "test",
    "testing": "test",
    "qa": "qa",
    "uat": "uat",
    "stage": "staging",
    "staging": "staging",
    "preprod": "preprod",
    "prod": "production",
    "production": "production",
}
_ENVIRONMENT_ORDER = ("development", "test", "qa", "uat", "staging", "preprod", "production")
_ENVIRONMENT_TOKEN = re.compile(r"(?<![a-z])(dev|development|testing|test|qa|uat|stage|staging|preprod|prod|production)(?![a-z])")
_DEPLOY_DIRS = ("k8s/", "kubernetes/", "deploy/", "deployment/", "deployments/", "helm/", "charts/", "manifests/", "environments/", "terraform/", "infra/")
_SECRET_REFERENCE = re.compile(r"\$\{?([A-Z][A-Z0-9_]*(?:TOKEN|SECRET|PASSWORD|API_KEY|KEY))\}?")


class ExistingCIAnalyzer(Analyzer):
    """Detects CI systems already configured in the repository."""

    name = "existing_ci"

    def supports(self, manifest: RepoManifest) -> bool:
        return any(manifest.match(pattern) for _, pattern in _CI_SYSTEMS)

    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        for system, pattern in _CI_SYSTEMS:
            matches = manifest.match(pattern)
            if not matches:
                continue
            config_files = tuple(file.path for file in matches)
            stages: Tuple[str, ...] = ()
            if system == "gitlab":
                stages = self._gitlab_stages(self.read(provider, matches[0].path))
            return Signal(
                source=self.name,
                confidence=Confidence.HIGH,
                existing_ci=ExistingCIInfo(system=system, config_files=config_files, stages=stages),
            )
        return None

    @staticmethod
    def _gitlab_stages(text: str) -> Tuple[str, ...]:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError:
            return ()
        if not isinstance(data, dict):
            return ()
        stages = data.get("stages")
        if isinstance(stages, list):
            return tuple(str(stage) for stage in stages if isinstance(stage, (str, int)))
        # Without a stages list GitLab orders stages as jobs reference them.
        found: List[str] = []
        for key, value in data.items():
            if isinstance(value, dict) and isinstance(value.get("stage"), str) and not str(key).startswith("."):
                if value["stage"] not in found:
                    found.append(value["stage"])
        return tuple(found)


class ContainerAnalyzer(Analyzer):
    """Reads Dockerfiles and compose files."""

    name = "container"

    def supports(self, manifest: RepoManifest) -> bool:
        return any(_DOCKERFILE.search(file.path) or _COMPOSE.search(file.path) for file in manifest.files)

    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        dockerfiles = sorted(
            (file for file in manifest.files if _DOCKERFILE.search(file.path)),
            key=lambda file: (file.path.count("/"), file.path),
        )
        compose_files = tuple(file.path for file in manifest.files if _COMPOSE.search(file.path))
        if not dockerfiles and not compose_files:
            return None

        base_image: Optional[str] = None
        build_args: Dict[str, str] = {}
        dockerfile: Optional[str] = None
        if dockerfiles:
            dockerfile = dockerfiles[0].path
            base_image, build_args = self._parse_dockerfile(self.read(provider, dockerfile))

        return Signal(
            source=self.name,
            confidence=Confidence.HIGH if dockerfile else Confidence.MEDIUM,
            marker_files=tuple(file.name for file in dockerfiles if file.is_root),
            container=ContainerInfo(
                has_config=True,
                base_image=base_image,
                dockerfile=dockerfile,
                build_args=build_args,
                compose_files=compose_files,
            ),
        )

    @staticmethod
    def _parse_dockerfile(text: str) -> Tuple[Optional[str], Dict[str, str]]:
        base_image: Optional[str] = None
        build_args: Dict[str, str] = {}
        stage_aliases: set[str] = set()
        for line in text.splitlines():
            from_match = _FROM.match(line)
            if from_match:
                image = from_match.group(1)
                alias = re.search(r"\s+AS\s+(\S+)", line, re.IGNORECASE)
                if alias:
                    stage_aliases.add(alias.group(1).lower())
                # The first external image is the build base.
                if base_image is None and image.lower() not in stage_aliases:
                    base_image = image
                continue
            arg_match = _ARG.match(line)
            if arg_match and arg_match.group(2) is not None:
                build_args.setdefault(arg_match.group(1), arg_match.group(2).strip("\"'"))
        return base_image, build_args


class DeploymentAnalyzer(Analyzer):
    """Detects Kubernetes, Helm, Terraform and scripted deployments."""

    name = "deployment"

    def supports(self, manifest: RepoManifest) -> bool:
        return any(self._target_for(file) for file in manifest.files)

    def analyze(self, manifest: RepoManifest, provider: RepositoryProvider) -> Optional[Signal]:
        targets: List[str] = []
        deploy_files: List[RepositoryFile] = []
        for file in manifest.files:
            target = self._target_for(file)
            if target is None:
                continue
            deploy_files.append(file)
            if target not in targets:
                targets.append(target)
        if not targets:
            return None

        environments = self._environments(manifest)
        secrets: List[str] = []
        for file in deploy_files[:20]:
            for match in _SECRET_REFERENCE.finditer(self.read(provider, file.path)):
                if match.group(1) not in secrets:
                    secrets.append(match.group(1))

        return Signal(
            source=self.name,
            confidence=Confidence.MEDIUM,
            deployment=DeploymentInfo(
                has_config=True,
                environments=tuple(environments),
                commands=tuple(self._commands(targets, deploy_files)),
                targets=tuple(targets),
                required_secrets=tuple(sorted(secrets)),
            ),
        )

    @staticmethod
    def _target_for(file: RepositoryFile) -> Optional[str]:
        path = file.path.lower()
        if file.name == "Chart.yaml":
            return "helm"
        if path.endswith(".tf"):
            return "terraform"
        if path.startswith(("k8s/", "kubernetes/", "manifests/")) and path.endswith((".yml", ".yaml")):
            return "kubernetes"
        if file.name.lower() in {"deploy.sh", "deploy.ps1"} or path.startswith("scripts/deploy"):
            return "script"
        return None

    @staticmethod
    def _environments(manifest: RepoManifest) -> List[str]:
        found: set[str] = set()
        for file in manifest.files:
            path = file.path.lower()
            if not (
                path.startswith(_DEPLOY_DIRS)
                or file.name.startswith(".env.")
                or file.name.startswith("appsettings.")
                or file.name.startswith("values-")
            ):
                continue
            for match in _ENVIRONMENT_TOKEN.finditer(path):
                found.add(_ENVIRONMENT_ALIASES[match.group(1)])
        return [name for name in _ENVIRONMENT_ORDER if name in found]

    @staticmethod
    def _commands(targets: List[str], files: List[RepositoryFile]) -> List[str]:
        commands: List[str] = []
        for target in targets:
            if target == "kubernetes":
                folders = sorted({file.path.split("/", 1)[0] for file in files if file.path.lower().startswith(("k8s/", "kubernetes/", "manifests/"))})
                commands.extend(f"kubectl apply -f {folder}/" for folder in folders)
            elif target == "helm":
                chart = next(file.path for file in files if file.name == "Chart.yaml")
                chart_dir = chart.rsplit("/", 1)[0] if "/" in chart else "."
                commands.append(f"helm upgrade --install $CI_PROJECT_NAME {chart_dir}")
            elif target == "terraform":
                commands.extend(["terraform init", "terraform apply -auto-approve"])
            elif target == "script":
                script = next(
                    file.path
                    for file in files
                    if file.name.lower() in {"deploy.sh", "deploy.ps1"} or file.path.lower().startswith("scripts/deploy")
                )
                commands.append(f"./{script}" if script.endswith(".sh") else f"pwsh {script}")
        return commands


__all__ = ["ContainerAnalyzer", "DeploymentAnalyzer", "ExistingCIAnalyzer"]
