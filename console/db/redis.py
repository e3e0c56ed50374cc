"""Redis connection management.

Mirrors engine.py: with REDIS_URL set we build one shared async client
(connection pool); without it ``redis_pool`` is None and the permission
cache runs in process memory.  Permission snapshots are derived data,
so losing them on a Redis restart only costs a recomputation.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from console.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Verify connectivity on startup, release the pool on shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, permission cache is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Keep serving: cache reads fall through to the resolver and
        # purges are best-effort anyway.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
