"""
Unit tests for the Redis view cache and the view invalidator.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from socialblog.clients import redis_client
from socialblog.invalidation import HOME, RedisViewInvalidator, post_path, profile_path
from tests.conftest import FakeRedis


class TestViewCache:
    @pytest.mark.asyncio
    async def test_cache_round_trip_per_variant(self, fake_redis: FakeRedis) -> None:
        await redis_client.cache_view(HOME, [{"id": "1"}], "page=1&limit=10")
        await redis_client.cache_view(HOME, [{"id": "2"}], "page=2&limit=10")

        assert await redis_client.get_cached_view(HOME, "page=1&limit=10") == [{"id": "1"}]
        assert await redis_client.get_cached_view(HOME, "page=2&limit=10") == [{"id": "2"}]
        assert await redis_client.get_cached_view(HOME, "page=3&limit=10") is None
        assert "view:/" in fake_redis.ttls

    @pytest.mark.asyncio
    async def test_uninitialised_redis_is_a_miss(self) -> None:
        redis_client.set_redis(None)
        assert await redis_client.get_cached_view(HOME) is None
        await redis_client.cache_view(HOME, {"x": 1})

    @pytest.mark.asyncio
    async def test_redis_error_is_a_miss(self) -> None:
        broken = AsyncMock()
        broken.hget.side_effect = RedisConnectionError("down")
        redis_client.set_redis(broken)
        try:
            assert await redis_client.get_cached_view(HOME) is None
        finally:
            redis_client.set_redis(None)


class TestRedisViewInvalidator:
    @pytest.mark.asyncio
    async def test_drops_every_variant_of_a_path(self, fake_redis: FakeRedis) -> None:
        await redis_client.cache_view(HOME, [], "page=1&limit=10")
        await redis_client.cache_view(HOME, [], "page=2&limit=10")
        await redis_client.cache_view(post_path("p1"), {})
        await redis_client.cache_view(profile_path("u1"), {})

        await RedisViewInvalidator().invalidate(HOME, post_path("p1"), HOME)

        assert set(fake_redis.hashes) == {"view:/profile/u1"}

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self) -> None:
        """A broken cache never fails the mutation that triggered it."""
        broken = AsyncMock()
        broken.delete.side_effect = RedisConnectionError("down")
        redis_client.set_redis(broken)
        try:
            await RedisViewInvalidator().invalidate(HOME)
        finally:
            redis_client.set_redis(None)

    @pytest.mark.asyncio
    async def test_without_redis_is_noop(self) -> None:
        redis_client.set_redis(None)
        await RedisViewInvalidator().invalidate(HOME, profile_path("u1"))
