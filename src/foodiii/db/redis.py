"""Shared Redis connection pool.

Redis backs per-IP rate limiting only. Order notifications are delivered
in-process over WebSocket and never go through Redis. The app runs without
Redis: rate limiting is skipped and health reports it as unavailable.
"""

from typing import Optional

import redis.asyncio as aioredis

from foodiii.config import settings

# Initialized in the app lifespan
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Open the pool and verify the server answers."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
