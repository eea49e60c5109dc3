"""
Redis read-through cache.

A thin wrapper over ``redis.asyncio`` used for short-lived, recomputable
data such as the role list. The cache never fails a request: connection
problems disable it, read errors behave as misses and write errors are
logged and ignored.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from mesanet.core.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """
    JSON cache backed by Redis.

    The client is created by ``connect()`` during application startup. Until
    then, and after a failed connection, every operation is a no-op and
    ``get`` returns None.

    Example:
        roles = await cache.get_or_set("roles:all", load_roles, ttl=300)
    """

    def __init__(self, url: str, enabled: bool = True, default_ttl: int = 300) -> None:
        self.url = url
        self.enabled = enabled
        self.default_ttl = default_ttl
        self._client: redis.Redis | None = None

    @property
    def is_available(self) -> bool:
        """True when the cache is enabled and connected."""
        return self.enabled and self._client is not None

    async def connect(self) -> None:
        """Connect and ping Redis; disables the cache on failure."""
        if not self.enabled:
            logger.info("Cache disabled by configuration")
            return

        client = redis.from_url(
            self.url,
            max_connections=settings.redis_max_connections,
            decode_responses=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning(f"Cache unavailable, continuing without it: {e}")
            await client.aclose()
            return

        self._client = client
        logger.info("Cache connected")

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, key: str) -> Any | None:
        """
        Read a cached value.

        Returns:
            Decoded JSON value, or None on miss or error
        """
        if not self.is_available:
            return None
        try:
            raw = await self._client.get(key)
        except RedisError as e:
            logger.warning(f"Cache get failed for '{key}': {e}")
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a JSON-serializable value with a TTL in seconds."""
        if not self.is_available:
            return
        try:
            await self._client.setex(key, ttl or self.default_ttl, json.dumps(value, default=str))
        except RedisError as e:
            logger.warning(f"Cache set failed for '{key}': {e}")

    async def delete(self, key: str) -> None:
        """Remove a key."""
        if not self.is_available:
            return
        try:
            await self._client.delete(key)
        except RedisError as e:
            logger.warning(f"Cache delete failed for '{key}': {e}")

    async def delete_pattern(self, pattern: str) -> int:
        """
        Remove every key matching a glob pattern.

        Returns:
            Number of keys removed
        """
        if not self.is_available:
            return 0
        removed = 0
        try:
            async for key in self._client.scan_iter(match=pattern):
                removed += await self._client.delete(key)
        except RedisError as e:
            logger.warning(f"Cache pattern delete failed for '{pattern}': {e}")
        return removed

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: int | None = None,
    ) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        Args:
            key: Cache key
            factory: Coroutine function producing a JSON-serializable value
            ttl: Time to live in seconds (defaults to default_ttl)
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = await factory()
        await self.set(key, value, ttl)
        return value


# Process-wide cache; connected by the application lifespan
cache = CacheService(
    settings.redis_url_str,
    enabled=settings.cache_enabled,
    default_ttl=settings.cache_default_ttl_seconds,
)
