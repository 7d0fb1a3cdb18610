"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from mindful.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - ready once the enrollment service has a database.

    Redis is reported but optional.
    """
    settings = get_settings()
    app_state = request.app.state
    cassandra_ready = getattr(app_state, "enrollment_service", None) is not None
    redis_ready = getattr(app_state, "redis", None) is not None

    content: dict[str, Any] = {
        "status": "ready" if cassandra_ready else "not_ready",
        "environment": settings.environment,
        "cassandra": cassandra_ready,
        "redis": redis_ready,
    }
    return ORJSONResponse(
        status_code=status.HTTP_200_OK
        if cassandra_ready
        else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=content,
    )


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
