"""Redis-backed per-client quotas for credential endpoints."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Tuple

from fastapi import Request
import redis.asyncio as redis
from redis.exceptions import RedisError

from config import settings
from services.errors import ApiError

logger = logging.getLogger(__name__)

# Fallback counters used while Redis is unreachable: key -> (count, window end).
_local_counters: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()


def _client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def _consume_local_quota(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    async with _local_lock:
        count, window_end = _local_counters.get(key, (0, now + window_seconds))
        if now >= window_end:
            count, window_end = 0, now + window_seconds
        _local_counters[key] = (count + 1, window_end)
        return count + 1 <= limit


async def _consume_redis_quota(key: str, limit: int, window_seconds: int) -> bool:
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        current = await client.incr(key)
        if current == 1:
            await client.expire(key, window_seconds)
    finally:
        await client.aclose()
    return current <= limit


async def enforce_quota(request: Request, scope: str, limit: int, window_seconds: int) -> None:
    """Count this request against ``scope`` and raise 429 once ``limit`` is exceeded."""
    if getattr(request.app.state, "disable_rate_limits", False):
        return

    key = f"vt:rate:{scope}:{_client_identifier(request)}"
    try:
        allowed = await _consume_redis_quota(key, limit, window_seconds)
    except (RedisError, OSError) as exc:
        logger.debug("rate_limit_redis_unavailable scope=%s error=%s", scope, exc)
        allowed = await _consume_local_quota(key, limit, window_seconds)

    if not allowed:
        logger.warning("rate_limit_exceeded scope=%s key=%s", scope, key)
        raise ApiError(429, "Too many requests. Try again later.")


def auth_rate_limit(scope: str) -> Callable:
    """FastAPI dependency applying the configured credential-endpoint quota."""

    async def _dependency(request: Request) -> None:
        await enforce_quota(request, f"auth:{scope}", settings.AUTH_RATE_LIMIT, settings.AUTH_RATE_WINDOW_SECONDS)

    return _dependency
