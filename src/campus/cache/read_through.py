"""Read-through caching over a prefix-capable backend.

The cache never decides what a value is; callers pass a compute function
that is only invoked on a miss. Backend trouble degrades to computing the
value directly, so an unreachable Redis slows requests down but never
fails them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any
from urllib.parse import unquote

from campus.cache.backend import PrefixCapableBackend
from campus.cache.errors import CacheError, ComputeAbandoned
from campus.cache.keys import SEPARATOR, CacheDomain, KeyBuilder
from campus.cache.ttl import TTLClass, TTLPolicy
from campus.observability.metrics import CacheMetrics, get_metrics

logger = logging.getLogger(__name__)


def _domain_of(key: str) -> str:
    parts = key.split(SEPARATOR)
    return unquote(parts[2]) if len(parts) >= 3 else "unknown"


class ReadThroughCache:
    """get_or_compute plus thin pass-throughs to the backend."""

    def __init__(
        self,
        backend: PrefixCapableBackend,
        ttl_policy: TTLPolicy | None = None,
        *,
        single_flight: bool = False,
        metrics: CacheMetrics | None = None,
    ) -> None:
        self.backend = backend
        self.ttl_policy = ttl_policy or TTLPolicy()
        self.single_flight = single_flight
        self.metrics = metrics or get_metrics()
        self._inflight: dict[str, asyncio.Future[Any]] = {}

        self.hits = 0
        self.misses = 0
        self.stores = 0
        self.errors = 0

    async def get_or_compute(
        self,
        key: str,
        ttl: TTLClass | int,
        compute_fn: Callable[[], Any],
    ) -> Any:
        """Return the cached value for key, computing and storing it on a miss.

        Args:
            key: Full cache key from KeyBuilder
            ttl: TTL class or explicit seconds
            compute_fn: Zero-argument callable returning the value or an awaitable

        Exceptions raised by compute_fn propagate and nothing is stored.
        A None result is returned but not cached.
        """
        seconds = self.ttl_policy.seconds(ttl)
        domain = _domain_of(key)

        cached = await self._read(key)
        if cached is not None:
            self.hits += 1
            self.metrics.cache_hits_total.labels(domain=domain).inc()
            logger.debug("Cache HIT: %s", key)
            return cached

        self.misses += 1
        self.metrics.cache_misses_total.labels(domain=domain).inc()
        logger.debug("Cache MISS: %s", key)

        if not self.single_flight:
            return await self._compute_and_store(key, seconds, domain, compute_fn)

        pending = self._inflight.get(key)
        if pending is not None:
            try:
                return await asyncio.shield(pending)
            except ComputeAbandoned:
                # The leading request went away; this one still wants a value
                logger.debug("Cache compute for %s abandoned, computing again", key)
                return await self._compute_and_store(key, seconds, domain, compute_fn)

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await self._compute_and_store(key, seconds, domain, compute_fn)
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unwaited future does not warn
            future.exception()
            raise
        except BaseException:
            future.set_exception(ComputeAbandoned(key))
            future.exception()
            raise
        else:
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    async def _compute_and_store(
        self,
        key: str,
        seconds: int,
        domain: str,
        compute_fn: Callable[[], Any],
    ) -> Any:
        started = time.perf_counter()
        value = compute_fn()
        if inspect.isawaitable(value):
            value = await value
        self.metrics.cache_compute_seconds.labels(domain=domain).observe(
            time.perf_counter() - started
        )

        if value is not None:
            await self._write(key, value, seconds)
        return value

    async def _read(self, key: str) -> Any | None:
        try:
            return await self.backend.get(key)
        except CacheError as e:
            self._record_error("get")
            logger.warning("Cache read failed for %s, computing instead: %s", key, e)
            return None

    async def _write(self, key: str, value: Any, seconds: int) -> None:
        try:
            await self.backend.set(key, value, seconds)
        except (CacheError, TypeError) as e:
            # TypeError: value not serializable by the backend
            self._record_error("set")
            logger.warning("Cache write failed for %s: %s", key, e)
            return
        self.stores += 1

    def _record_error(self, operation: str) -> None:
        self.errors += 1
        self.metrics.cache_errors_total.labels(operation=operation).inc()

    async def get(self, key: str) -> Any | None:
        return await self.backend.get(key)

    async def set(self, key: str, value: Any, ttl: TTLClass | int) -> None:
        await self.backend.set(key, value, self.ttl_policy.seconds(ttl))

    async def delete(self, *keys: str) -> int:
        return await self.backend.delete(*keys)

    async def delete_prefix(self, prefix: str) -> int:
        return await self.backend.delete_prefix(prefix)

    def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        return self.backend.iter_keys(prefix)

    async def purge_expired(self) -> int:
        purge = getattr(self.backend, "purge_expired", None)
        return int(await purge()) if callable(purge) else 0

    async def ping(self) -> bool:
        return await self.backend.ping()

    async def close(self) -> None:
        await self.backend.close()

    def stats(self) -> dict[str, int]:
        """In-process counters since startup."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stores": self.stores,
            "errors": self.errors,
        }


class DomainCache:
    """Base for per-domain read-model caches.

    Subclasses own a key layout and a TTL class per entry, and expose one
    clear method per invalidation scope.
    """

    domain: CacheDomain

    def __init__(self, cache: ReadThroughCache, keys: KeyBuilder) -> None:
        self.cache = cache
        self.keys = keys

    def key(
        self,
        tenant_id: Any,
        subject: Any = None,
        qualifier: Any = None,
        *,
        domain: CacheDomain | None = None,
    ) -> str:
        return self.keys.build(tenant_id, domain or self.domain, subject, qualifier)

    async def _cached(self, key: str, ttl: TTLClass, compute_fn: Callable[[], Any]) -> Any:
        return await self.cache.get_or_compute(key, ttl, compute_fn)

    async def _delete_prefixes(self, *prefixes: str) -> int:
        deleted = 0
        for prefix in prefixes:
            deleted += await self.cache.delete_prefix(prefix)
        return deleted
