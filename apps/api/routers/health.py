"""
Health check endpoint.
"""

import logging

from fastapi import APIRouter, Request
import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from routers.envelope import api_response

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def health_check(request: Request):
    """
    Report API liveness plus document store and Redis reachability.
    Redis only backs rate limiting, so its absence does not degrade status.
    """
    health_status = {"status": "healthy", "api": "up", "database": "unknown", "redis": "unknown"}

    store = getattr(request.app.state, "store", None)
    try:
        if store is None:
            raise RuntimeError("document store not configured")
        await store.ping()
        health_status["database"] = "up"
    except (SQLAlchemyError, OSError, RuntimeError) as exc:
        logger.warning("healthcheck_database_down error=%s", exc)
        health_status["database"] = f"down: {exc}"
        health_status["status"] = "degraded"

    try:
        client = redis.from_url(settings.REDIS_URL)
        try:
            await client.ping()
        finally:
            await client.aclose()
        health_status["redis"] = "up"
    except (RedisError, OSError) as exc:
        health_status["redis"] = f"down: {exc}"

    return api_response(health_status, "OK")
