"""Simple health and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from blog_api.core.config import get_settings
from blog_api.db.session import engine
from blog_api.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "blog-platform-api"


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    """Indicates API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


def check_database() -> dict[str, str]:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return {"status": "unhealthy", "message": f"Database connection failed: {e}"}
    return {"status": "healthy", "message": "Database connection successful"}


def check_redis(url: str) -> dict[str, str]:
    client = create_redis_client(url, decode_responses=True, socket_connect_timeout=2)
    try:
        client.ping()
    except RedisError as e:
        logger.error(f"Redis health check failed for {url}: {e}", exc_info=True)
        return {"status": "unhealthy", "message": f"Redis connection failed: {e}"}
    finally:
        client.close()
    return {"status": "healthy", "message": "Redis connection successful"}


@router.get("/ready", summary="Readiness probe")
async def ready() -> dict[str, Any]:
    """Check the database, the progress channel (Redis) and the Celery broker.

    The broker check is informational: workers may run elsewhere, so an
    unreachable broker does not fail readiness.
    """
    settings = get_settings()
    checks: dict[str, Any] = {
        "database": check_database(),
        "redis": check_redis(settings.redis_url),
        "celery_broker": check_redis(settings.broker_url),
    }
    healthy = all(checks[name]["status"] == "healthy" for name in ("database", "redis"))
    payload = {
        "status": "ok" if healthy else "unhealthy",
        "service": SERVICE_NAME,
        "checks": checks,
    }
    if not healthy:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=payload,
        )
    return payload
