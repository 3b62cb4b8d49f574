"""Health check endpoints."""

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from telecare.config import settings
from telecare.core.redis_client import check_redis_connection
from telecare.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Service health; dependency fields are set on the detailed check only."""

    status: str
    version: str
    environment: str
    database: str | None = None
    redis: str | None = None


def _state(ok: bool) -> str:
    return "healthy" if ok else "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Liveness probe; does not touch the database or Redis."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=HealthResponse,
    summary="Detailed health check",
)
async def detailed_health_check(response: Response) -> HealthResponse:
    """
    Readiness probe with database and Redis status.

    Responds 503 when a dependency is down so load balancers stop routing
    bookings to this instance.
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()
    if not (db_healthy and redis_healthy):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=_state(db_healthy),
        redis=_state(redis_healthy),
    )


@router.get("/ping", summary="Simple ping")
async def ping() -> dict[str, str]:
    """Simple ping endpoint."""
    return {"message": "pong"}
