"""FastAPI application entrypoint for pipegen service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, TypeVar

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import parse_manual_configuration
from ..errors import SpecValidationError, TemplateIncompatibleError
from ..orchestrator import GenerationOutcome, Orchestrator

T = TypeVar("T")


class AnalyzeRequest(BaseModel):
    path: str


class GenerateRequest(BaseModel):
    path: str
    strategy: Optional[str] = None
    manual: Optional[Dict[str, Any]] = None
    output: Optional[str] = None
    dry_run: bool = False


class GenerateResponse(BaseModel):
    template: str
    strategy: str
    confidence: str
    stages: List[str]
    pipeline: Dict[str, Any]
    content: str
    warnings: List[str]
    path: Optional[str] = None
    dry_run: bool


class TemplateInfo(BaseModel):
    name: str
    description: str
    project_types: List[str]
    versions: List[str]
    default_image: str


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


async def _run_blocking(func: Callable[[], T]) -> T:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # pragma: no cover - fallback path when not in async context
        return func()
    return await loop.run_in_executor(None, func)


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing pipegen operations."""

    app = FastAPI(title="Pipegen Service", version="1.0.0")

    async def get_orchestrator() -> Orchestrator:
        # Lazy-instantiate per request to keep state predictable.
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/templates", response_model=List[TemplateInfo])
    async def templates(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> List[TemplateInfo]:
        return [TemplateInfo(**item) for item in orchestrator.list_templates()]

    @app.post("/analyze")
    async def analyze_repo(
        payload: AnalyzeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> Dict[str, Any]:
        analysis = await _run_blocking(lambda: orchestrator.run_analysis(payload.path))
        return analysis.to_dict()

    @app.post("/generate", response_model=GenerateResponse)
    async def generate_pipeline(
        payload: GenerateRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> GenerateResponse:
        manual = parse_manual_configuration(payload.manual) if payload.manual is not None else None

        def _run_generate() -> GenerationOutcome:
            return orchestrator.run_generate(
                payload.path,
                strategy=payload.strategy,
                manual=manual,
                output=payload.output,
                dry_run=payload.dry_run,
            )

        outcome = await _run_blocking(_run_generate)
        return GenerateResponse(
            template=outcome.pipeline.template,
            strategy=outcome.spec.strategy.value,
            confidence=outcome.spec.confidence.name.lower(),
            stages=list(outcome.pipeline.stages),
            pipeline=outcome.pipeline.to_dict(),
            content=outcome.content,
            warnings=[str(warning) for warning in outcome.spec.warnings],
            path=None if outcome.dry_run else str(outcome.path),
            dry_run=outcome.dry_run,
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(SpecValidationError)
    async def spec_validation_handler(_: Any, exc: SpecValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": exc.args[0],
                "issues": [{"field": issue.field, "message": issue.message} for issue in exc.issues],
            },
        )

    @app.exception_handler(TemplateIncompatibleError)
    async def template_incompatible_handler(
        _: Any, exc: TemplateIncompatibleError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc), "supported_types": exc.supported_types},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "0.0.0.0", port: int = 8000) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
