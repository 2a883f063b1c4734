"""Tests for the secondary key index."""

import pytest

from campus.cache.errors import InvalidKeyError
from campus.cache.index import IndexedBackend, KeyIndex, with_prefix_support
from campus.cache.keys import KeyBuilder
from campus.cache.memory import InMemoryCacheBackend


class TestKeyIndex:
    """Test per-tenant key buckets."""

    def test_keys_bucketed_by_tenant(self, keys: KeyBuilder) -> None:
        """Each tenant gets its own bucket."""
        index = KeyIndex(keys)
        index.add(keys.build("T1", "course", "1"))
        index.add(keys.build("T10", "course", "1"))
        assert set(index.scopes()) == {"campus:T1:", "campus:T10:"}
        assert index.matching(keys.prefix("T1")) == [keys.build("T1", "course", "1")]

    def test_discard_drops_empty_bucket(self, keys: KeyBuilder) -> None:
        """Buckets disappear with their last key."""
        index = KeyIndex(keys)
        key = keys.build("T1", "course", "1")
        index.add(key)
        index.discard(key)
        index.discard(key)
        assert len(index) == 0
        assert index.scopes() == []

    def test_namespace_prefix_walks_all_buckets(self, keys: KeyBuilder) -> None:
        """The namespace prefix matches every tenant."""
        index = KeyIndex(keys)
        index.add(keys.build("T1", "course", "1"))
        index.add(keys.build("T2", "user", "1"))
        assert len(index.matching(keys.namespace_prefix())) == 2

    def test_prefix_must_name_a_scope(self, keys: KeyBuilder) -> None:
        """Unscoped prefixes are rejected rather than scanning everything."""
        with pytest.raises(InvalidKeyError):
            KeyIndex(keys).matching("other:")


class TestIndexedBackend:
    """Test prefix operations over a backend without enumeration."""

    @pytest.mark.asyncio
    async def test_delete_prefix_is_tenant_scoped(
        self, keys: KeyBuilder, memory_backend: InMemoryCacheBackend
    ) -> None:
        """Clearing T1 leaves T10 and T2 untouched."""
        backend = IndexedBackend(memory_backend, keys)
        for tenant in ("T1", "T10", "T2"):
            await backend.set(keys.build(tenant, "course", "1", "detail"), tenant, 60)
            await backend.set(keys.build(tenant, "user", "1", "detail"), tenant, 60)

        deleted = await backend.delete_prefix(keys.prefix("T1"))

        assert deleted == 2
        assert await backend.get(keys.build("T1", "course", "1", "detail")) is None
        assert await backend.get(keys.build("T10", "course", "1", "detail")) == "T10"
        assert await backend.get(keys.build("T2", "user", "1", "detail")) == "T2"

    @pytest.mark.asyncio
    async def test_delete_prefix_by_domain(
        self, keys: KeyBuilder, memory_backend: InMemoryCacheBackend
    ) -> None:
        """A domain prefix only deletes that domain."""
        backend = IndexedBackend(memory_backend, keys)
        await backend.set(keys.build("T1", "course", "1", "detail"), 1, 60)
        await backend.set(keys.build("T1", "dashboard", None, "stats"), 2, 60)

        assert await backend.delete_prefix(keys.prefix("T1", "course")) == 1
        assert await backend.get(keys.build("T1", "dashboard", None, "stats")) == 2

    @pytest.mark.asyncio
    async def test_iter_keys_skips_expired(
        self, keys: KeyBuilder, memory_backend: InMemoryCacheBackend, clock
    ) -> None:
        """Expired keys are pruned from the index while iterating."""
        backend = IndexedBackend(memory_backend, keys)
        await backend.set(keys.build("T1", "course", "1"), 1, 10)
        await backend.set(keys.build("T1", "course", "2"), 2, 100)
        clock.advance(50)

        found = [key async for key in backend.iter_keys(keys.prefix("T1"))]

        assert found == [keys.build("T1", "course", "2")]
        assert len(backend.index) == 1

    @pytest.mark.asyncio
    async def test_stats_include_index(
        self, keys: KeyBuilder, memory_backend: InMemoryCacheBackend
    ) -> None:
        """Stats report the indexed key count."""
        backend = IndexedBackend(memory_backend, keys)
        await backend.set(keys.build("T1", "course", "1"), 1, 60)
        stats = backend.stats()
        assert stats["backend"] == "memory"
        assert stats["indexed_keys"] == 1
        assert stats["indexed_scopes"] == 1

    def test_with_prefix_support(self, keys: KeyBuilder, memory_backend) -> None:
        """Only backends without prefix scan get wrapped."""
        wrapped = with_prefix_support(memory_backend, keys)
        assert isinstance(wrapped, IndexedBackend)
        assert with_prefix_support(wrapped, keys) is wrapped


class TestIndexFollowsBackend:
    """The index drops keys the backend expires or evicts by itself."""

    @pytest.mark.asyncio
    async def test_lru_eviction_shrinks_index(self, keys: KeyBuilder, clock) -> None:
        """A bounded backend never leaves more indexed keys than it holds."""
        backend = IndexedBackend(InMemoryCacheBackend(max_entries=2, clock=clock), keys)
        for i in range(1000):
            await backend.set(keys.build("T1", "course", str(i), "detail"), i, 60)

        assert len(backend.backend) == 2
        assert len(backend.index) == 2
        assert backend.index.matching(keys.prefix("T1")) == [
            keys.build("T1", "course", "998", "detail"),
            keys.build("T1", "course", "999", "detail"),
        ]

    @pytest.mark.asyncio
    async def test_purge_expired_empties_index(
        self, keys: KeyBuilder, memory_backend: InMemoryCacheBackend, clock
    ) -> None:
        """Keys nobody reads again leave the index on purge."""
        backend = IndexedBackend(memory_backend, keys)
        for i in range(500):
            await backend.set(keys.build(f"T{i % 5}", "course", str(i)), i, 60)
        await backend.set(keys.build("T1", "dashboard", None, "stats"), "kept", 7200)
        clock.advance(3600)

        assert await backend.purge_expired() == 500
        assert len(backend.index) == 1
        assert backend.index.scopes() == ["campus:T1:"]

    @pytest.mark.asyncio
    async def test_iter_keys_does_not_refresh_lru(self, keys: KeyBuilder, clock) -> None:
        """Listing keys leaves the eviction order untouched."""
        backend = IndexedBackend(InMemoryCacheBackend(max_entries=2, clock=clock), keys)
        oldest = keys.build("T1", "course", "1")
        newer = keys.build("T1", "course", "2")
        await backend.set(oldest, 1, 60)
        await backend.set(newer, 2, 60)

        assert [key async for key in backend.iter_keys(keys.prefix("T1"))] == [oldest, newer]
        await backend.set(keys.build("T1", "course", "3"), 3, 60)

        assert await backend.get(oldest) is None
        assert await backend.get(newer) == 2
        assert len(backend.index) == 2
