"""FastAPI application serving computed account reports."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import AppConfig
from .errors import AnalyzerError
from .logging import get_logger
from .pipeline import run_analysis
from .report import prune_empty
from .store import ReportStore, fake_report

logger = get_logger("service")

Runner = Callable[[str, Optional[str]], Awaitable[Dict[str, Any]]]


class AnalyzeRequest(BaseModel):
    username: str
    token: Optional[str] = None


class ReportResponse(BaseModel):
    username: str
    created_at: str
    report: Dict[str, Any]


class ReportSummary(BaseModel):
    username: str
    created_at: str


class HealthResponse(BaseModel):
    status: str


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[ReportStore] = None,
    runner: Optional[Runner] = None,
) -> FastAPI:
    """Create the application; ``store`` is shared by reference with the caller."""
    config = config or AppConfig()
    store = store if store is not None else ReportStore()

    async def _default_runner(username: str, token: Optional[str]) -> Dict[str, Any]:
        result = await run_analysis(username, config, token=token)
        return result.report

    run = runner or _default_runner

    app = FastAPI(title="GitHub Analyzer", version="1.0.0")
    app.state.store = store

    def get_store() -> ReportStore:
        return store

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/reports", response_model=List[ReportSummary])
    async def list_reports(reports: ReportStore = Depends(get_store)) -> List[ReportSummary]:
        return [
            ReportSummary(username=entry.username, created_at=entry.created_at.isoformat())
            for entry in reports.list()
        ]

    @app.get("/reports/{username}", response_model=ReportResponse)
    async def get_report(username: str, reports: ReportStore = Depends(get_store)) -> ReportResponse:
        entry = reports.get(username)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"No report for {username}")
        return ReportResponse(username=entry.username, created_at=entry.created_at.isoformat(), report=entry.report)

    @app.post("/analyze", response_model=ReportResponse)
    async def analyze(payload: AnalyzeRequest, reports: ReportStore = Depends(get_store)) -> ReportResponse:
        logger.info("Analysis requested for %s", payload.username)
        report = await run(payload.username, payload.token)
        entry = reports.put(payload.username, prune_empty(report) or {})
        return ReportResponse(username=entry.username, created_at=entry.created_at.isoformat(), report=entry.report)

    @app.exception_handler(AnalyzerError)
    async def analyzer_error_handler(_: Any, exc: AnalyzerError) -> JSONResponse:
        logger.error("Analysis failed: %s", exc)
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    if config.server.enable_test_endpoints:

        @app.post("/test/reports/{username}", response_model=ReportResponse)
        async def seed_report(username: str, reports: ReportStore = Depends(get_store)) -> ReportResponse:
            entry = reports.put(username, fake_report(username))
            return ReportResponse(
                username=entry.username, created_at=entry.created_at.isoformat(), report=entry.report
            )

    return app


def run_service(config: AppConfig, store: Optional[ReportStore] = None) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(config, store)
    uvicorn.run(app, host=config.server.host, port=config.server.port)
