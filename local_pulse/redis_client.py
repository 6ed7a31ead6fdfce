# redis_client.py
from __future__ import annotations

"""
Process-wide Redis connection for the user-location store.

Opened by the app lifespan only when REDIS_URL is set and closed on shutdown.
Source caches never go through Redis.
"""

from typing import Optional

from redis.asyncio import Redis

redis: Optional[Redis] = None


async def init_redis(redis_url: str) -> Redis:
    """Connect once per process and return the shared client."""
    global redis

    if redis is not None:
        return redis

    if not redis_url:
        raise RuntimeError("REDIS_URL is not set")

    client = Redis.from_url(
        redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        health_check_interval=30,
    )

    # Fail fast on bad credentials / TLS instead of on the first user request
    await client.ping()
    redis = client
    return redis


async def close_redis() -> None:
    global redis

    if redis is not None:
        await redis.aclose()
        redis = None
