"""In-process cache backend.

Entries expire passively: an expired entry is dropped the next time it is
read, when the backend is full, or on purge_expired(). An optional size
bound evicts the least recently used entry. There is no key enumeration;
wrap it with IndexedBackend for prefix deletes.

Listeners registered with add_eviction_listener are told about every key
the backend drops on its own (expiry or LRU), so a key index over this
backend stays in step with it.

Only suitable for a single process (tests, local development).
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from campus.cache.backend import CacheEntry

logger = logging.getLogger(__name__)

EvictionListener = Callable[[str], None]


class InMemoryCacheBackend:
    """Dictionary-backed TTL cache with optional LRU bound."""

    supports_prefix_scan = False

    def __init__(
        self,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._listeners: list[EvictionListener] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add_eviction_listener(self, listener: EvictionListener) -> None:
        self._listeners.append(listener)

    def _drop(self, key: str) -> None:
        del self._entries[key]
        for listener in self._listeners:
            listener(key)

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock()):
            self._drop(key)
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        entry = self._live_entry(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl=ttl)
        self._entries.move_to_end(key)
        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return

        # Expired entries go before live ones are evicted
        self._purge_expired()
        while len(self._entries) > self.max_entries:
            evicted = next(iter(self._entries))
            self._drop(evicted)
            logger.debug("Cache EVICT: %s", evicted)

    async def delete(self, *keys: str) -> int:
        deleted = 0
        for key in keys:
            if self._live_entry(key) is not None:
                deleted += 1
            self._entries.pop(key, None)
        return deleted

    async def exists(self, key: str) -> bool:
        """Whether key holds a live entry. Does not count as a use for LRU."""
        return self._live_entry(key) is not None

    def entry(self, key: str) -> CacheEntry | None:
        """Raw entry (including stored_at/ttl) for inspection."""
        return self._live_entry(key)

    def _purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            self._drop(key)
        return len(expired)

    async def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were dropped."""
        purged = self._purge_expired()
        if purged:
            logger.debug("Cache PURGE: %s expired entries", purged)
        return purged

    async def clear(self) -> None:
        self._entries.clear()

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "backend": "memory",
            "entries": len(self._entries),
            "max_entries": self.max_entries,
        }
