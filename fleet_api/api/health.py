"""Health check endpoints.

Mounted at the root, outside /api, so probes are neither authenticated nor
rate limited.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from fleet_api.core import check_db_connection, settings
from fleet_api.core.redis import check_redis_connection, is_redis_enabled
from fleet_api.middleware.rate_limit import get_rate_limit_registry
from fleet_api.services.rate_limit_store import FallbackRateLimitStore

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str
    message: str
    timestamp: datetime


class HealthDetailResponse(BaseModel):
    """Readiness response with backing store status."""

    status: str
    version: str
    database: str
    redis: str
    rate_limit_store: str
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe. Answers as long as the process serves requests."""
    return HealthResponse(
        status="OK",
        message=f"{settings.app_name} is running",
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/detail",
    response_model=HealthDetailResponse,
    responses={
        status.HTTP_200_OK: {"description": "Detailed health information"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Service is unhealthy"},
    },
)
async def health_detail(response: Response) -> HealthDetailResponse:
    """
    Detailed health check endpoint.

    Returns 503 if the database is unavailable. An unreachable Redis only
    degrades the service: rate limits fall back to per-process counters.
    """
    db_healthy = await check_db_connection()

    if not is_redis_enabled():
        redis_state = "disabled"
    else:
        redis_state = "connected" if await check_redis_connection() else "disconnected"

    store = get_rate_limit_registry().store
    if isinstance(store, FallbackRateLimitStore) and store.degraded:
        limiter_state = "degraded"
    else:
        limiter_state = "ok"

    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthDetailResponse(
        status="OK" if db_healthy else "unhealthy",
        version=settings.app_version,
        database="connected" if db_healthy else "disconnected",
        redis=redis_state,
        rate_limit_store=limiter_state,
        timestamp=datetime.now(UTC),
    )
