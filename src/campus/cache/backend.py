"""Key-value backend protocols.

Backends come in two capability levels:
- CacheBackend: exact get/set/delete
- PrefixCapableBackend: additionally deletes and enumerates by key prefix

Backends without server-side enumeration are upgraded through
campus.cache.index.IndexedBackend.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass
class CacheEntry:
    """A stored value and the time it was stored."""

    key: str
    value: Any
    stored_at: float
    ttl: int

    def is_fresh(self, now: float) -> bool:
        return now <= self.stored_at + self.ttl


@runtime_checkable
class CacheBackend(Protocol):
    """Exact-key operations every backend supports."""

    supports_prefix_scan: bool

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or expired."""
        ...

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store a value for ttl seconds."""
        ...

    async def delete(self, *keys: str) -> int:
        """Delete keys; returns how many existed."""
        ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


@runtime_checkable
class PrefixCapableBackend(CacheBackend, Protocol):
    """Backend that can find keys by prefix."""

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix; returns the number deleted."""
        ...

    def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        """Iterate over live keys starting with prefix."""
        ...
