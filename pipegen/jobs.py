"""Job construction for assembled pipelines.

Jobs are plain dictionaries in GitLab CI layout so they can be emitted
without further conversion.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from .models import CustomJob, DeploymentEnvironment, UnifiedPipelineSpec
from .stages import find_stage
from .templates.base import Job, PipelineTemplate

DOCKER_IMAGE = "docker:24"
DOCKER_SERVICE = "docker:24-dind"

SCANNER_SCRIPTS: Dict[str, List[str]] = {
    "npm-audit": ["npm audit --audit-level=high"],
    "nodejsscan": ["pip install nodejsscan", "nodejsscan --directory . --output nodejsscan-report.json"],
    "security-code-scan": [
        "dotnet tool install --global security-scan",
        'export PATH="$PATH:$HOME/.dotnet/tools"',
        "security-scan *.sln",
    ],
    "dotnet-vulnerable-packages": ["dotnet list package --vulnerable --include-transitive"],
    "safety": ["pip install safety", "safety check"],
    "bandit": ["pip install bandit", "bandit -r . -f json -o bandit-report.json"],
    "owasp-dependency-check": [
        "dependency-check.sh --scan . --format JSON --out dependency-check-report.json"
    ],
    "spotbugs": ["mvn -B spotbugs:check"],
    "secret-detection": ["echo 'Scanning for committed secrets'"],
}

SCANNER_IMAGES: Dict[str, str] = {
    "nodejsscan": "python:3.11-slim",
    "safety": "python:3.11-slim",
    "bandit": "python:3.11-slim",
    "owasp-dependency-check": "owasp/dependency-check:latest",
}


def build_jobs(
    spec: UnifiedPipelineSpec, template: PipelineTemplate, stages: Sequence[str]
) -> Dict[str, Job]:
    """Return the generated jobs for ``spec`` keyed by job name, in stage order."""
    jobs: Dict[str, Job] = {}
    build_stage = _stage(stages, "build")
    has_build = build_stage is not None

    if build_stage:
        jobs["build"] = build_job(spec, template, stage=build_stage)
    if spec.container is not None:
        jobs["docker-build"] = docker_build_job(spec, stage=build_stage or stages[0])
    test_stage = _stage(stages, "test")
    if spec.include_tests and test_stage:
        jobs["test"] = _with_needs({"stage": test_stage, "script": template.test_script(spec)}, has_build)
    quality_stage = _stage(stages, "quality")
    if spec.include_code_quality and quality_stage:
        jobs["code_quality"] = {
            "stage": quality_stage,
            "script": template.lint_script(spec),
            "allow_failure": True,
        }
    security_stage = _stage(stages, "security")
    if spec.include_security and security_stage:
        jobs.update(security_jobs(spec, stage=security_stage))
    performance_stage = _stage(stages, "performance")
    if spec.include_performance and performance_stage:
        jobs["performance_test"] = _with_needs(
            {
                "stage": performance_stage,
                "script": ["echo 'Running performance tests'"],
                "allow_failure": True,
            },
            has_build,
        )
    if spec.include_deployment:
        jobs.update(deploy_jobs(spec, template, stages, has_build))
    for custom in spec.custom_jobs:
        jobs[custom.name] = custom_job(custom)
    return jobs


def build_job(spec: UnifiedPipelineSpec, template: PipelineTemplate, *, stage: str = "build") -> Job:
    job: Job = {"stage": stage, "script": template.build_script(spec)}
    paths = list(spec.artifacts.paths) if spec.artifacts else []
    for path in template.build_artifact_paths(spec):
        if path not in paths:
            paths.append(path)
    if paths:
        job["artifacts"] = {
            "paths": paths,
            "expire_in": spec.artifacts.expire_in if spec.artifacts else "1 week",
        }
    return job


def docker_build_job(spec: UnifiedPipelineSpec, *, stage: str) -> Job:
    container = spec.container
    dockerfile = (container.dockerfile if container else None) or "Dockerfile"
    command = "docker build"
    if dockerfile != "Dockerfile":
        command += f" -f {dockerfile}"
    for name in (container.build_args if container else {}):
        command += f" --build-arg {name}"
    command += " -t $CI_REGISTRY_IMAGE:$CI_COMMIT_SHA ."
    return {
        "stage": stage,
        "image": DOCKER_IMAGE,
        "services": [DOCKER_SERVICE],
        "variables": {"DOCKER_TLS_CERTDIR": "/certs"},
        "before_script": [
            'echo "$CI_REGISTRY_PASSWORD" | docker login -u "$CI_REGISTRY_USER" --password-stdin $CI_REGISTRY'
        ],
        "script": [command, "docker push $CI_REGISTRY_IMAGE:$CI_COMMIT_SHA"],
    }


def security_jobs(spec: UnifiedPipelineSpec, *, stage: str = "security") -> Dict[str, Job]:
    if not spec.security_scanners:
        return {
            "security_scan": {
                "stage": stage,
                "script": ["echo 'Running security scan'"],
                "allow_failure": True,
            }
        }
    jobs: Dict[str, Job] = {}
    for scanner in spec.security_scanners:
        job: Job = {
            "stage": stage,
            "script": list(SCANNER_SCRIPTS.get(scanner, [f"echo 'Running {scanner}'"])),
            "allow_failure": True,
        }
        if scanner in SCANNER_IMAGES:
            job["image"] = SCANNER_IMAGES[scanner]
        jobs[scanner] = job
    return jobs


def deploy_jobs(
    spec: UnifiedPipelineSpec,
    template: PipelineTemplate,
    stages: Sequence[str],
    has_build: bool,
) -> Dict[str, Job]:
    if not spec.environments:
        job = _with_needs(
            {
                "stage": _stage(stages, "deploy") or "deploy",
                "script": template.deploy_script(spec, None),
                "when": "manual",
            },
            has_build,
        )
        _add_secret_checks(job, spec.required_secrets)
        return {"deploy": job}

    jobs: Dict[str, Job] = {}
    for env in spec.environments:
        jobs[f"deploy_{env.key}"] = environment_job(spec, template, env, stages, has_build)
    return jobs


def environment_job(
    spec: UnifiedPipelineSpec,
    template: PipelineTemplate,
    env: DeploymentEnvironment,
    stages: Sequence[str],
    has_build: bool,
) -> Job:
    index = find_stage(stages, env.name)
    stage = stages[index] if index is not None else (_stage(stages, "deploy") or "deploy")
    environment: Dict[str, Any] = {"name": env.name}
    if env.url:
        environment["url"] = env.url
    job: Job = {
        "stage": stage,
        "script": template.deploy_script(spec, env),
        "environment": environment,
    }
    if env.variables:
        job["variables"] = dict(env.variables)
    if env.branch:
        job["rules"] = [{"if": f'$CI_COMMIT_BRANCH == "{env.branch}"'}]
    if env.manual:
        job["when"] = "manual"
    _add_secret_checks(job, spec.required_secrets)
    return _with_needs(job, has_build)


def custom_job(custom: CustomJob) -> Job:
    job: Job = {"stage": custom.stage, "script": list(custom.script)}
    if custom.image:
        job["image"] = custom.image
    if custom.before_script:
        job["before_script"] = list(custom.before_script)
    if custom.after_script:
        job["after_script"] = list(custom.after_script)
    if custom.variables:
        job["variables"] = dict(custom.variables)
    if custom.when:
        job["when"] = custom.when
    if custom.allow_failure:
        job["allow_failure"] = True
    if custom.tags:
        job["tags"] = list(custom.tags)
    if custom.needs:
        job["needs"] = list(custom.needs)
    return job


def _add_secret_checks(job: Job, secrets: Sequence[str]) -> None:
    if not secrets:
        return
    job["before_script"] = [
        f'test -n "${secret}" || (echo "{secret} is not set" && exit 1)' for secret in secrets
    ]


def _with_needs(job: Job, has_build: bool) -> Job:
    if has_build:
        job["needs"] = ["build"]
    return job


def _stage(stages: Sequence[str], name: str) -> Optional[str]:
    index = find_stage(stages, name)
    return stages[index] if index is not None else None


__all__ = [
    "SCANNER_SCRIPTS",
    "build_job",
    "build_jobs",
    "custom_job",
    "deploy_jobs",
    "docker_build_job",
    "environment_job",
    "security_jobs",
]
