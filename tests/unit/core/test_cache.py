"""
Unit tests for CacheService.

Redis is replaced with an AsyncMock; no server is needed.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError

from mesanet.core.cache import CacheService


@pytest.fixture
def mock_redis():
    """Create a mock redis.asyncio client."""
    return AsyncMock()


@pytest.fixture
def connected_cache(mock_redis) -> CacheService:
    """CacheService with a mocked, already connected client."""
    service = CacheService("redis://localhost:6379/0", enabled=True, default_ttl=60)
    service._client = mock_redis
    return service


class TestDisabledCache:
    """A disabled or unconnected cache behaves as an always-miss cache."""

    @pytest.mark.asyncio
    async def test_connect_is_a_no_op(self) -> None:
        service = CacheService("redis://localhost:6379/0", enabled=False)

        with patch("mesanet.core.cache.redis.from_url") as from_url:
            await service.connect()

        from_url.assert_not_called()
        assert service.is_available is False

    @pytest.mark.asyncio
    async def test_get_or_set_always_calls_factory(self) -> None:
        service = CacheService("redis://localhost:6379/0", enabled=False)
        factory = AsyncMock(return_value=[1, 2, 3])

        assert await service.get_or_set("key", factory) == [1, 2, 3]
        assert await service.get_or_set("key", factory) == [1, 2, 3]
        assert factory.await_count == 2
        assert await service.delete_pattern("roles:*") == 0

    @pytest.mark.asyncio
    async def test_failed_ping_leaves_cache_unavailable(self) -> None:
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("refused")
        service = CacheService("redis://localhost:6379/0", enabled=True)

        with patch("mesanet.core.cache.redis.from_url", return_value=client):
            await service.connect()

        assert service.is_available is False
        client.aclose.assert_awaited_once()


class TestConnectedCache:
    """Read-through behaviour with a working client."""

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, connected_cache, mock_redis) -> None:
        mock_redis.get.return_value = json.dumps({"name": "ADMIN"})

        assert await connected_cache.get("roles:all") == {"name": "ADMIN"}

    @pytest.mark.asyncio
    async def test_set_uses_default_ttl(self, connected_cache, mock_redis) -> None:
        await connected_cache.set("roles:all", [{"name": "ADMIN"}])

        mock_redis.setex.assert_awaited_once_with(
            "roles:all", 60, json.dumps([{"name": "ADMIN"}], default=str)
        )

    @pytest.mark.asyncio
    async def test_hit_skips_factory(self, connected_cache, mock_redis) -> None:
        mock_redis.get.return_value = json.dumps(["cached"])
        factory = AsyncMock(return_value=["fresh"])

        assert await connected_cache.get_or_set("key", factory, ttl=5) == ["cached"]
        factory.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_miss_stores_factory_value(self, connected_cache, mock_redis) -> None:
        mock_redis.get.return_value = None
        factory = AsyncMock(return_value=["fresh"])

        assert await connected_cache.get_or_set("key", factory, ttl=5) == ["fresh"]
        mock_redis.setex.assert_awaited_once_with("key", 5, json.dumps(["fresh"], default=str))

    @pytest.mark.asyncio
    async def test_errors_never_propagate(self, connected_cache, mock_redis) -> None:
        mock_redis.get.side_effect = RedisError("timeout")
        mock_redis.setex.side_effect = RedisError("timeout")
        mock_redis.delete.side_effect = RedisError("timeout")

        assert await connected_cache.get("key") is None
        await connected_cache.set("key", 1)
        await connected_cache.delete("key")

    @pytest.mark.asyncio
    async def test_close_releases_client(self, connected_cache, mock_redis) -> None:
        await connected_cache.close()

        mock_redis.aclose.assert_awaited_once()
        assert connected_cache.is_available is False
