"""Read-through cache for progress summaries.

Progress summaries are read by dashboards far more often than records
change, so the API caches the rendered summary per (course, student):

    GET  → cache hit → return
         → cache miss → load from store → populate → return
    save → delete the key (``save_progress`` does this on every write)

TTL is the safety net: a missed invalidation only serves stale data
until the entry expires.

With REDIS_URL configured, all API instances and the worker share one
Redis cache, so a demotion written by the worker evicts the summary
every API instance would otherwise serve.  Without it, each process
keeps its own dict.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol
from uuid import UUID

from redis.exceptions import RedisError

from app.db.redis import redis_pool

logger = logging.getLogger(__name__)


def progress_cache_key(course_id: UUID, student_id: UUID) -> str:
    return f"progress:{course_id}:{student_id}"


class ProgressCache(Protocol):
    """Key/value store for rendered progress summaries, keyed by
    ``progress_cache_key``.  Misses return None."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class InMemoryProgressCache:
    """Per-process cache with lazy expiry on read."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, time.monotonic() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisProgressCache:
    """Redis-backed cache shared by every API instance and the worker.

    Best effort: a Redis error is logged and treated as a miss, so an
    outage slows reads down but never fails a progress write.
    """

    _PREFIX = "ptl:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(f"{self._PREFIX}{key}")
        except RedisError:
            logger.warning("Cache get failed key=%s", key, exc_info=True)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)
        except RedisError:
            logger.warning("Cache set failed key=%s", key, exc_info=True)

    async def delete(self, key: str) -> None:
        # A failed eviction leaves a stale entry until its TTL runs out.
        try:
            await self._redis.delete(f"{self._PREFIX}{key}")
        except RedisError:
            logger.warning("Cache delete failed key=%s", key, exc_info=True)


cache_service: ProgressCache = (
    RedisProgressCache(redis_pool) if redis_pool is not None else InMemoryProgressCache()
)
