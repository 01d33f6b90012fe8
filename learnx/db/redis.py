"""Redis connection management.

Mirrors engine.py: a client exists only when REDIS_URL is configured.
Redis here holds the durable lesson namespaces (no TTLs), so the server
should run with AOF or RDB persistence enabled.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def build_redis(redis_url: str) -> aioredis.Redis:  # type: ignore[type-arg]
    return aioredis.from_url(
        redis_url,
        decode_responses=True,  # values are JSON text
        max_connections=20,
    )


@asynccontextmanager
async def lifespan_redis(
    client: aioredis.Redis | None,  # type: ignore[type-arg]
) -> AsyncIterator[None]:
    """Startup/shutdown hook: verify connectivity, close the pool on exit.

    An unreachable Redis does not stop startup; reads degrade to misses and
    writes are dropped until it comes back.
    """
    if client is None:
        logger.info("No REDIS_URL configured; Redis store disabled")
        yield
        return

    try:
        await client.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except RedisError:
        logger.exception("Redis connection failed on startup")

    try:
        yield
    finally:
        await client.aclose()
        logger.info("Redis connection pool closed")
