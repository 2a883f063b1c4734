"""Tests for the Redis cache backend (fakeredis)."""

from unittest.mock import AsyncMock

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from campus.cache.errors import CacheBackendUnavailable, CacheError
from campus.cache.keys import KeyBuilder
from campus.cache.redis import RedisCacheBackend, escape_glob


@pytest.fixture
def redis_client() -> fakeredis.FakeAsyncRedis:
    return fakeredis.FakeAsyncRedis()


@pytest.fixture
def backend(redis_client: fakeredis.FakeAsyncRedis) -> RedisCacheBackend:
    return RedisCacheBackend(redis_client, scan_batch_size=2)


class TestRedisCacheBackend:
    """Test Redis backend operations."""

    @pytest.mark.asyncio
    async def test_set_get_roundtrip(self, backend: RedisCacheBackend) -> None:
        """Values are stored as JSON with a TTL."""
        await backend.set("campus:T1:course:1:detail", {"id": 1, "title": "Intro"}, 300)
        assert await backend.get("campus:T1:course:1:detail") == {"id": 1, "title": "Intro"}
        ttl = await backend.ttl("campus:T1:course:1:detail")
        assert 0 < ttl <= 300

    @pytest.mark.asyncio
    async def test_missing_key(self, backend: RedisCacheBackend) -> None:
        """Absent keys return None."""
        assert await backend.get("campus:T1:course:1:detail") is None

    @pytest.mark.asyncio
    async def test_corrupt_entry(self, backend: RedisCacheBackend, redis_client) -> None:
        """Non-JSON payloads raise CacheError."""
        await redis_client.set("campus:T1:course:1:detail", b"\xff not json")
        with pytest.raises(CacheError):
            await backend.get("campus:T1:course:1:detail")

    @pytest.mark.asyncio
    async def test_delete_prefix_is_tenant_scoped(
        self, backend: RedisCacheBackend, keys: KeyBuilder
    ) -> None:
        """SCAN-based delete removes only the named tenant's keys."""
        for i in range(5):
            await backend.set(keys.build("T1", "course", i, "detail"), i, 60)
        await backend.set(keys.build("T10", "course", 1, "detail"), "other", 60)

        deleted = await backend.delete_prefix(keys.prefix("T1"))

        assert deleted == 5
        assert await backend.get(keys.build("T10", "course", 1, "detail")) == "other"

    @pytest.mark.asyncio
    async def test_iter_keys(self, backend: RedisCacheBackend, keys: KeyBuilder) -> None:
        """Keys are yielded as strings."""
        await backend.set(keys.build("T1", "user", 7, "detail"), 1, 60)
        found = [key async for key in backend.iter_keys(keys.prefix("T1", "user"))]
        assert found == ["campus:T1:user:7:detail"]

    @pytest.mark.asyncio
    async def test_delete(self, backend: RedisCacheBackend) -> None:
        """delete returns the number of removed keys."""
        await backend.set("a", 1, 60)
        assert await backend.delete("a", "b") == 1
        assert await backend.delete() == 0

    @pytest.mark.asyncio
    async def test_ping(self, backend: RedisCacheBackend) -> None:
        """Ping succeeds against a live server."""
        assert await backend.ping() is True

    @pytest.mark.asyncio
    async def test_purge_expired_is_server_side(self, backend: RedisCacheBackend) -> None:
        """Redis expires keys itself; there is nothing to purge."""
        await backend.set("campus:T1:course:1:detail", 1, 60)
        assert await backend.purge_expired() == 0
        assert await backend.get("campus:T1:course:1:detail") == 1

    @pytest.mark.asyncio
    async def test_connection_errors_translated(self) -> None:
        """Redis errors surface as CacheBackendUnavailable."""
        client = AsyncMock()
        client.get.side_effect = RedisConnectionError("down")
        client.setex.side_effect = RedisConnectionError("down")
        client.ping.side_effect = RedisConnectionError("down")
        backend = RedisCacheBackend(client)

        with pytest.raises(CacheBackendUnavailable):
            await backend.get("k")
        with pytest.raises(CacheBackendUnavailable):
            await backend.set("k", 1, 60)
        assert await backend.ping() is False


class TestEscapeGlob:
    """Test SCAN pattern escaping."""

    def test_escapes_metacharacters(self) -> None:
        """Glob characters match literally."""
        assert escape_glob("campus:a*b?[c]\\:") == "campus:a\\*b\\?\\[c\\]\\\\:"

    def test_plain_prefix_unchanged(self) -> None:
        """Ordinary prefixes pass through."""
        assert escape_glob("campus:T1:") == "campus:T1:"
