"""Optional Redis client backing the progress summary cache.

With ``REDIS_URL`` set, the API and the worker share one client so that a
demotion written by the worker evicts the summary the API would serve.
Without it ``redis_pool`` is None and each process caches in a dict.
Redis never holds anything that cannot be rebuilt from the database.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    aioredis.from_url(SETTINGS.redis_url, decode_responses=True, max_connections=20)
    if SETTINGS.redis_url
    else None
)


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("No REDIS_URL configured; progress cache is in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
    except RedisError:
        # The cache treats errors as misses, so startup continues.
        logger.warning("Redis unreachable at startup", exc_info=True)
    else:
        logger.info("Redis reachable")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis client closed")
