"""Redis cache backend for Campus.

Provides async Redis operations for cached read-models.
Uses redis-py async client for connection pooling.
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator, Awaitable
from typing import TYPE_CHECKING, Any, cast

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError

from campus.cache.errors import CacheBackendUnavailable, CacheError
from campus.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Module-level connection pool
_redis_client: Redis | None = None

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


async def get_redis() -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            decode_responses=False,  # values are orjson bytes
            socket_connect_timeout=5,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


def escape_glob(prefix: str) -> str:
    """Escape SCAN MATCH metacharacters so a prefix matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", prefix)


def _decode_key(key: bytes | str) -> str:
    return key.decode() if isinstance(key, bytes) else key


class RedisCacheBackend:
    """Cache backend on a shared Redis server.

    Redis enumerates keys server-side, so prefix deletes use SCAN + UNLINK
    instead of a secondary index. The scan is not transactional: keys
    written while it runs may survive.
    """

    supports_prefix_scan = True

    def __init__(self, client: Redis, scan_batch_size: int = 500) -> None:
        self.client = client
        self.scan_batch_size = scan_batch_size

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            raise CacheBackendUnavailable(f"GET {key} failed: {e}") from e

        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise CacheError(f"Corrupt cache entry {key}: {e}") from e

    async def set(self, key: str, value: Any, ttl: int) -> None:
        payload = orjson.dumps(value)
        try:
            await self.client.setex(key, ttl, payload)
        except RedisError as e:
            raise CacheBackendUnavailable(f"SETEX {key} failed: {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return cast(int, await self.client.delete(*keys))
        except RedisError as e:
            raise CacheBackendUnavailable(f"DEL failed: {e}") from e

    async def delete_prefix(self, prefix: str) -> int:
        """Delete all keys under prefix using SCAN + batched UNLINK.

        Returns the number of keys deleted.
        """
        pattern = f"{escape_glob(prefix)}*"
        deleted = 0
        chunk: list[bytes | str] = []
        try:
            async for key in self.client.scan_iter(match=pattern, count=self.scan_batch_size):
                chunk.append(key)
                if len(chunk) >= self.scan_batch_size:
                    deleted += cast(int, await self.client.unlink(*chunk))
                    chunk = []
            if chunk:
                deleted += cast(int, await self.client.unlink(*chunk))
        except RedisError as e:
            raise CacheBackendUnavailable(f"Prefix delete {prefix} failed: {e}") from e

        if deleted:
            logger.debug("Cache INVALIDATE: %s (%s keys)", prefix, deleted)
        return deleted

    async def iter_keys(self, prefix: str) -> AsyncIterator[str]:
        pattern = f"{escape_glob(prefix)}*"
        try:
            async for key in self.client.scan_iter(match=pattern, count=self.scan_batch_size):
                yield _decode_key(key)
        except RedisError as e:
            raise CacheBackendUnavailable(f"SCAN {prefix} failed: {e}") from e

    async def ttl(self, key: str) -> int:
        """Remaining TTL in seconds (-2 if the key is absent)."""
        try:
            return cast(int, await self.client.ttl(key))
        except RedisError as e:
            raise CacheBackendUnavailable(f"TTL {key} failed: {e}") from e

    async def purge_expired(self) -> int:
        """Redis reclaims expired keys server-side; nothing is left to purge."""
        return 0

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            await cast(Awaitable[bool], self.client.ping())
            return True
        except RedisError:
            return False

    async def close(self) -> None:
        await self.client.aclose()

    async def info(self) -> dict[str, Any]:
        """Server statistics for the operator API."""
        try:
            stats_info = await self.client.info("stats")
            memory_info = await self.client.info("memory")
        except RedisError as e:
            raise CacheBackendUnavailable(f"INFO failed: {e}") from e

        hits = int(stats_info.get("keyspace_hits", 0))
        misses = int(stats_info.get("keyspace_misses", 0))
        total = hits + misses
        return {
            "backend": "redis",
            "used_memory": memory_info.get("used_memory_human", "0B"),
            "keyspace_hits": hits,
            "keyspace_misses": misses,
            "hit_ratio": round(hits / total, 4) if total > 0 else 0.0,
        }
