"""Health check endpoints."""

from fastapi import APIRouter, Request, Response, status

from comment_system.config import get_settings
from comment_system.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - the process is up."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, str | bool]:
    """Readiness probe - the comment store is wired.

    Redis is reported but optional: without it the API serves requests
    without realtime push or rate limiting.
    """
    settings = get_settings()
    store_ready = getattr(request.app.state, "comment_service", None) is not None
    if not store_ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "ready" if store_ready else "unavailable",
        "storage_backend": settings.storage_backend,
        "realtime": get_redis() is not None,
        "environment": settings.environment,
    }


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
