"""Analytics router: aggregate statistics for the dashboard.

Endpoints:
    GET /analytics/summary   Totals, storage, top authors, averages
    GET /analytics/stats     Raw database statistics
    GET /analytics/storage   Content directory statistics
    GET /analytics/usage     Uploads per hourly/daily/weekly/monthly bucket
    GET /analytics/authors   Per-author statistics
    GET /analytics/timeline  Uploads per day, latest 30 days
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import AppConfig
from .schemas import (
    AnalyticsSummary,
    AuthorsResponse,
    DatabaseStats,
    StorageStats,
    TimelineResponse,
    UsageResponse,
)
from .service import PERIOD_FORMATS, AnalyticsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


def get_analytics_service(request: Request) -> AnalyticsService:
    return request.app.state.analytics


def _failed(request: Request, what: str, exc: Exception) -> JSONResponse:
    logger.error("[analytics] %s failed: %s", what, exc)
    config: AppConfig = request.app.state.config
    message = str(exc) if config.server.is_development else f"Failed to get {what}"
    return JSONResponse({"error": "analytics_failed", "message": message}, status_code=500)


@router.get("/summary", response_model=AnalyticsSummary)
async def get_summary(
    request: Request,
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        return await service.summary()
    except Exception as exc:
        return _failed(request, "analytics summary", exc)


@router.get("/stats", response_model=DatabaseStats)
async def get_database_stats(
    request: Request,
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        return await service.database_stats()
    except Exception as exc:
        return _failed(request, "database stats", exc)


@router.get("/storage", response_model=StorageStats)
async def get_storage_stats(
    request: Request,
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        return await service.storage_stats()
    except Exception as exc:
        return _failed(request, "storage stats", exc)


@router.get("/usage", response_model=UsageResponse)
async def get_usage_stats(
    request: Request,
    period: str = "daily",
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Uploads per time bucket.

    Args:
        period: ``hourly``, ``daily``, ``weekly`` or ``monthly``. Anything
            else is treated as ``daily``.
    """
    if period not in PERIOD_FORMATS:
        period = "daily"
    try:
        rows = await service.usage_stats(period)
    except Exception as exc:
        return _failed(request, "usage stats", exc)
    return UsageResponse(period=period, data=rows)


@router.get("/authors", response_model=AuthorsResponse)
async def get_author_stats(
    request: Request,
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        rows = await service.author_stats()
    except Exception as exc:
        return _failed(request, "author stats", exc)
    return AuthorsResponse(count=len(rows), data=rows)


@router.get("/timeline", response_model=TimelineResponse)
async def get_timeline_stats(
    request: Request,
    service: AnalyticsService = Depends(get_analytics_service),
):
    try:
        rows = await service.timeline_stats()
    except Exception as exc:
        return _failed(request, "timeline stats", exc)
    return TimelineResponse(count=len(rows), data=rows)
