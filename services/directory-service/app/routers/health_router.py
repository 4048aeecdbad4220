"""
Health check and monitoring router.

Provides endpoints for health checks, readiness probes and cache statistics.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from .. import __version__
from ..cache.record_cache import RecordCache
from ..dependencies import get_cache, get_refresh_worker
from ..workers.refresh_worker import RefreshWorker

router = APIRouter(prefix="/api/v1", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    timestamp: str
    service: str = "directory-service"
    version: str = __version__


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    refresh: dict
    timestamp: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Basic health check endpoint - returns 200 if service is running",
)
async def health_check():
    """
    Basic health check.

    Always returns 200 OK if the service is running.
    Used by load balancers and orchestrators for liveness probes.
    """
    return HealthResponse(
        status="healthy", timestamp=datetime.now(timezone.utc).isoformat()
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Check if the cache has been populated by a full refresh cycle",
)
async def readiness_check(
    response: Response, worker: RefreshWorker = Depends(get_refresh_worker)
):
    """
    Readiness check.

    Returns 200 once one full refresh cycle has succeeded, 503 before.
    Used by Kubernetes readiness probes.
    """
    ready = worker.is_ready()
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        ready=ready,
        refresh=worker.get_status(),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get(
    "/cache/stats", summary="Cache statistics", description="Get record cache statistics"
)
async def cache_stats(cache: RecordCache = Depends(get_cache)):
    """
    Get cache statistics.

    Returns per-partition sizes, generations and refresh timestamps
    together with the lookup hit rate.
    """
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": cache.get_stats(),
    }
