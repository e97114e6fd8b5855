"""Health check endpoints.

- GET /health: all dependencies (MongoDB, Redis when configured)
- GET /health/readiness: MongoDB only; the API cannot serve without it
- GET /health/liveness: process is up
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from adapter.mongodb.connection import get_mongodb_client
from adapter.redis.connection import get_redis_client
from api.dependencies import get_settings
from utils.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

_started_at = time.monotonic()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def _check_mongodb(settings: Settings) -> dict:
    try:
        mongo_client = get_mongodb_client(settings.mongo_url)
        if mongo_client:
            mongo_client.admin.command('ping')
            return {"status": "healthy", "message": "Connection successful"}
        return {"status": "unhealthy", "message": "Connection failed or not configured"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection error: {str(e)[:200]}"}


def _check_redis(settings: Settings) -> dict:
    try:
        redis_client = get_redis_client(settings.redis_url)
        if redis_client and redis_client.ping():
            return {"status": "healthy", "message": "Connection successful"}
        return {"status": "unhealthy", "message": "Connection failed"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection error: {str(e)[:200]}"}


def _respond(services: dict) -> JSONResponse:
    overall_healthy = all(s["status"] == "healthy" for s in services.values())
    body = {
        "status": "healthy" if overall_healthy else "degraded",
        "timestamp": _timestamp(),
        "services": services,
    }
    status_code = status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    if not overall_healthy:
        logger.warning("Health check degraded", extra={"services": services})
    return JSONResponse(content=body, status_code=status_code)


@router.get("")
def health(settings: Settings = Depends(get_settings)):
    """Health check endpoint with dependency status."""
    services = {"mongodb": _check_mongodb(settings)}
    # Redis is optional; only report it when configured
    if settings.redis_url:
        services["redis"] = _check_redis(settings)
    return _respond(services)


@router.get("/readiness")
def readiness(settings: Settings = Depends(get_settings)):
    return _respond({"mongodb": _check_mongodb(settings)})


@router.get("/liveness")
def liveness():
    return {
        "status": "healthy",
        "timestamp": _timestamp(),
        "uptime_seconds": round(time.monotonic() - _started_at, 3),
    }
