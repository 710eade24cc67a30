"""FastAPI application entrypoint for repolens service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

try:  # pragma: no cover - optional dependency
    from fastapi import Depends, FastAPI
    from fastapi.responses import JSONResponse
    from pydantic import BaseModel

    _FASTAPI_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - service mode optional
    FastAPI = None  # type: ignore[assignment]
    Depends = None  # type: ignore[assignment]
    JSONResponse = None  # type: ignore[assignment]
    BaseModel = object  # type: ignore[assignment]
    _FASTAPI_AVAILABLE = False

from ..config import ConfigError, RepoLensConfig, load_config, parse_pattern_list
from ..orchestrator import Orchestrator, RunResult


class ProcessRequest(BaseModel):
    path: str
    format: Optional[str] = None
    strategy: Optional[str] = None
    threshold: Optional[float] = None
    include: Optional[str] = None
    exclude: Optional[str] = None
    summarize: bool = False


class FileEntry(BaseModel):
    path: str
    lines: int
    size: int


class ProcessResponse(BaseModel):
    output: str
    files: List[FileEntry]
    total_files: int
    total_lines: int
    total_bytes: int


class ScoringReportRequest(BaseModel):
    path: str
    threshold: Optional[float] = None


class HealthResponse(BaseModel):
    status: str


OrchestratorFactory = Callable[[Optional[RepoLensConfig]], Orchestrator]


def _default_orchestrator(config: Optional[RepoLensConfig] = None) -> Orchestrator:
    return Orchestrator(config)


def _process_config(payload: ProcessRequest) -> RepoLensConfig:
    config = load_config(payload.path)
    if payload.include:
        config.scan.include_patterns = parse_pattern_list(payload.include)
    if payload.exclude:
        config.scan.exclude_patterns = config.scan.exclude_patterns + parse_pattern_list(payload.exclude)
    if payload.strategy:
        if payload.strategy not in {"all", "scoring"}:
            raise ConfigError(f"Unknown selection_strategy: {payload.strategy}")
        config.selection_strategy = payload.strategy
    if payload.threshold is not None:
        config.scoring = config.scoring.with_overrides(inclusion_threshold=payload.threshold)
    if payload.summarize:
        config.summarization = config.summarization.with_overrides(enabled=True)
    return config


async def _in_executor(func: Callable[[], Any]) -> Any:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # pragma: no cover - fallback path when not in async context
        return func()
    return await loop.run_in_executor(None, func)


def create_app(orchestrator_factory: OrchestratorFactory = _default_orchestrator) -> FastAPI:
    """Create the FastAPI application exposing repolens operations."""

    if not _FASTAPI_AVAILABLE:  # pragma: no cover - validated via unit tests
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    app = FastAPI(title="RepoLens Service", version="0.1.0")

    async def get_factory() -> OrchestratorFactory:
        return orchestrator_factory

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/process", response_model=ProcessResponse)
    async def process_repo(
        payload: ProcessRequest,
        factory: OrchestratorFactory = Depends(get_factory),
    ) -> ProcessResponse:
        def _run() -> RunResult:
            orchestrator = factory(_process_config(payload))
            return orchestrator.run(payload.path, output_format=payload.format)

        result = await _in_executor(_run)
        return ProcessResponse(
            output=result.output,
            files=[
                FileEntry(path=item.relative_path, lines=item.line_count, size=item.byte_size)
                for item in result.files
            ],
            total_files=result.stats.total_files,
            total_lines=result.stats.total_lines,
            total_bytes=result.stats.total_bytes,
        )

    @app.post("/scoring_report")
    async def scoring_report(
        payload: ScoringReportRequest,
        factory: OrchestratorFactory = Depends(get_factory),
    ) -> Dict[str, Any]:
        def _run() -> Dict[str, Any]:
            config = load_config(payload.path)
            if payload.threshold is not None:
                config.scoring = config.scoring.with_overrides(inclusion_threshold=payload.threshold)
            return factory(config).scoring_report(payload.path)

        return await _in_executor(_run)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(
        _: Any, exc: FileNotFoundError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(NotADirectoryError)
    async def not_a_directory_handler(_: Any, exc: NotADirectoryError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(
        _: Any, exc: RuntimeError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "0.0.0.0", port: int = 8000
) -> None:  # pragma: no cover - integration path
    if not _FASTAPI_AVAILABLE:
        raise RuntimeError(
            "FastAPI is required for service mode. Install it with `pip install fastapi uvicorn`."
        )

    try:
        import uvicorn
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install uvicorn`."
        ) from exc

    app = create_app()
    uvicorn.run(app, host=host, port=port)
