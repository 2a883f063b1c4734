"""Secondary key index for backends without server-side enumeration.

Every key written through IndexedBackend is recorded under its tenant
scope ("campus:T1:"). A prefix delete only looks inside the bucket of the
scope the prefix names, so clearing one tenant can never reach another
tenant's keys, whatever the backend holds.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from campus.cache.backend import CacheBackend, PrefixCapableBackend
from campus.cache.errors import InvalidKeyError
from campus.cache.keys import KeyBuilder

logger = logging.getLogger(__name__)


class KeyIndex:
    """Per-tenant sets of issued cache keys."""

    def __init__(self, keys: KeyBuilder) -> None:
        self._keys = keys
        self._buckets: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    @property
    def namespace_prefix(self) -> str:
        return self._keys.namespace_prefix()

    def add(self, key: str) -> None:
        self._buckets.setdefault(self._keys.scope_of(key), set()).add(key)

    def discard(self, key: str) -> None:
        scope = self._keys.scope_of(key)
        bucket = self._buckets.get(scope)
        if bucket is None:
            return
        bucket.discard(key)
        if not bucket:
            del self._buckets[scope]

    def matching(self, prefix: str) -> list[str]:
        """Indexed keys under prefix.

        A namespace-wide prefix ("campus:") walks every bucket; any narrower
        prefix must name a scope and only that bucket is inspected.
        """
        if prefix == self._keys.namespace_prefix():
            return sorted(key for bucket in self._buckets.values() for key in bucket)

        scope = self._keys.scope_of(prefix)
        if not scope:
            raise InvalidKeyError(f"Prefix {prefix!r} does not name a tenant scope")
        bucket = self._buckets.get(scope, set())
        return sorted(key for key in bucket if key.startswith(prefix))

    def scopes(self) -> list[str]:
        return sorted(self._buckets)


class IndexedBackend:
    """Adds prefix operations to a CacheBackend through a KeyIndex."""

    supports_prefix_scan = True

    def __init__(self, backend: CacheBackend, keys: KeyBuilder) -> None:
        self.backend = backend
        self.index = KeyIndex(keys)
        # Keys the backend expires or evicts on its own leave the index too
        add_listener = getattr(backend, "add_eviction_listener", None)
        if callable(add_listener):
            add_listener(self.index.discard)

    async def _is_live(self, key: str) -> bool:
        exists = getattr(self.backend, "exists", None)
        if callable(exists):
            return bool(await exists(key))
        return await self.backend.get(key) is not None

    async def get(self, key: str) -> Any | None:
        value = await self.backend.get(key)
        if value is None:
            # Expired or evicted underneath us
            self.index.discard(key)
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        await self.backend.set(key, value, ttl)
        self.index.add(key)

    async def delete(self, *keys: str) -> int:
        deleted = await self.backend.delete(*keys)
        for key in keys:
            self.index.discard(key)
        return deleted

    async def delete_prefix(self, prefix: str) -> int:
        matched = self.index.matching(prefix)
        if not matched:
            return 0
        deleted = await self.backend.delete(*matched)
        for key in matched:
            self.index.discard(key)
        logger.debug("Cache INVALIDATE: %s (%s keys)", prefix, deleted)
        return deleted

    async def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        for key in self.index.matching(prefix):
            if not await self._is_live(key):
                self.index.discard(key)
                continue
            yield key

    async def purge_expired(self) -> int:
        """Purge expired entries of the backend and drop them from the index."""
        purge = getattr(self.backend, "purge_expired", None)
        if callable(purge):
            return int(await purge())
        purged = 0
        for key in self.index.matching(self.index.namespace_prefix):
            if not await self._is_live(key):
                self.index.discard(key)
                purged += 1
        return purged

    async def ping(self) -> bool:
        return await self.backend.ping()

    async def close(self) -> None:
        await self.backend.close()

    def stats(self) -> dict[str, Any]:
        inner = getattr(self.backend, "stats", None)
        stats: dict[str, Any] = dict(inner()) if callable(inner) else {}
        stats["indexed_keys"] = len(self.index)
        stats["indexed_scopes"] = len(self.index.scopes())
        return stats


def with_prefix_support(backend: CacheBackend, keys: KeyBuilder) -> PrefixCapableBackend:
    """Return backend itself if it can scan prefixes, else an indexed wrapper."""
    if backend.supports_prefix_scan:
        return backend  # type: ignore[return-value]
    return IndexedBackend(backend, keys)
