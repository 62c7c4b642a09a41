from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .analytics.aggregator import compute_analytics
from .analytics.store import get_events
from .recommendations.models import ProjectRequest, RecommendationResponse, Vendor
from .recommendations.orchestrator import RecommendationOrchestrator
from .sheets.client import DataSourceError

logger = logging.getLogger(__name__)

app = FastAPI(title="Vendor Recommendation API", version="1.0.0")

_orchestrator: RecommendationOrchestrator | None = None


def get_orchestrator() -> RecommendationOrchestrator:
    """Return the process-wide orchestrator, building it on first call."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = RecommendationOrchestrator.from_config()
    return _orchestrator


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": f"Missing or invalid fields: {', '.join(fields)}",
        },
    )


@app.exception_handler(DataSourceError)
async def data_source_error_handler(request: Request, exc: DataSourceError) -> JSONResponse:
    logger.error("Data source error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content=RecommendationResponse.failure(str(exc)).model_dump(
            by_alias=True, exclude_none=True
        ),
    )


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post(
    "/recommendations",
    response_model=RecommendationResponse,
    response_model_exclude_none=True,
)
def recommendations(
    body: ProjectRequest,
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
) -> RecommendationResponse:
    outcome = orchestrator.recommend(body)
    return RecommendationResponse.from_outcome(outcome)


@app.get("/vendors", response_model=list[Vendor])
def vendors(
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
) -> list[Vendor]:
    return orchestrator.list_vendors()


# ── Operations ───────────────────────────────────────────────────────────


@app.get("/cache/stats")
def cache_stats(
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
) -> dict:
    return orchestrator.store.cache_stats()


@app.post("/cache/refresh")
def cache_refresh(
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
) -> dict:
    return {"status": "refreshed", "rows": orchestrator.refresh_tables()}


@app.get("/analytics")
def analytics() -> dict:
    return compute_analytics(get_events())
