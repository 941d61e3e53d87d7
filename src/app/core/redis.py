"""
Redis Configuration

Async Redis client used by the auth rate limiter.
"""

import asyncio

from redis.asyncio import Redis, from_url

from app.core.config import settings

# Redis client instance
redis_client: Redis | None = None

_init_lock = asyncio.Lock()


async def init_redis() -> Redis:
    """
    Initialize the Redis connection.

    Call this on application startup. Concurrent callers share a single
    client; only the first one connects.
    """
    global redis_client

    async with _init_lock:
        if redis_client is not None:
            return redis_client

        client = from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Test connection before publishing the client
        await client.ping()
        redis_client = client
        return redis_client


async def get_redis() -> Redis | None:
    """
    Get the Redis client instance.

    Returns None if Redis is not available (optional dependency).
    """
    return redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
