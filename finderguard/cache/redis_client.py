"""
Redis client - cache for public item views.
Challenge: Connection pooling, fail gracefully when Redis is down.
Design: Single client instance; callers treat every failure as a cache miss.
"""

import json
import logging
from typing import Any

from redis.asyncio import Redis

from finderguard.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Shared async Redis client (connection pool managed by redis-py)
_redis: Redis | None = None


async def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis


async def cache_get(key: str) -> str | None:
    """Get value from cache. Returns None if miss or error (graceful degradation)."""
    try:
        client = await get_redis()
        return await client.get(key)
    except Exception as exc:
        logger.debug("cache_get %s failed: %s", key, exc)
        return None


async def cache_set(key: str, value: str | dict[str, Any], ttl_seconds: int = 300) -> bool:
    """Set value in cache with TTL. Dict is JSON-serialized."""
    try:
        client = await get_redis()
        if isinstance(value, dict):
            value = json.dumps(value)
        await client.setex(key, ttl_seconds, value)
        return True
    except Exception as exc:
        logger.debug("cache_set %s failed: %s", key, exc)
        return False


async def cache_delete(key: str) -> bool:
    """Invalidate cache key (after edit, removal, or a handover state change)."""
    try:
        client = await get_redis()
        await client.delete(key)
        return True
    except Exception as exc:
        logger.debug("cache_delete %s failed: %s", key, exc)
        return False


async def cache_delete_many(keys: list[str]) -> bool:
    """Invalidate several keys in one round trip (both sides of a match)."""
    if not keys:
        return True
    try:
        client = await get_redis()
        await client.delete(*keys)
        return True
    except Exception as exc:
        logger.debug("cache_delete %s failed: %s", keys, exc)
        return False
