"""Tenant-scoped cache layer for Campus.

Provides read-through caching of read-models with invalidation on writes:
- Keys namespaced by tenant, domain and entity so tenants never share entries
- Symbolic TTL classes instead of per-call constants
- Prefix deletes through Redis SCAN, or a key index for backends without it
- Route- and service-driven invalidation through one dispatcher
"""

from campus.cache.courses import CourseCache
from campus.cache.dashboard import DashboardCache
from campus.cache.errors import (
    CacheBackendUnavailable,
    CacheError,
    ComputeAbandoned,
    InvalidationFailure,
    InvalidKeyError,
    UnknownWarmerError,
)
from campus.cache.index import IndexedBackend, KeyIndex, with_prefix_support
from campus.cache.invalidation import (
    RULES,
    EntityKind,
    InvalidationDispatcher,
    InvalidationRule,
)
from campus.cache.keys import CacheDomain, KeyBuilder, ParsedKey, build_key, filters_hash
from campus.cache.manager import CacheManager
from campus.cache.memory import InMemoryCacheBackend
from campus.cache.read_through import ReadThroughCache
from campus.cache.redis import RedisCacheBackend, close_redis, get_redis
from campus.cache.runtime import CacheRuntime, close_runtime, get_runtime, init_runtime
from campus.cache.tenants import TenantCache
from campus.cache.ttl import TTLClass, TTLPolicy
from campus.cache.users import UserCache
from campus.cache.warmup import WarmerRegistry, load_warmer

__all__ = [
    # Keys and TTLs
    "CacheDomain",
    "KeyBuilder",
    "ParsedKey",
    "build_key",
    "filters_hash",
    "TTLClass",
    "TTLPolicy",
    # Backends
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "IndexedBackend",
    "KeyIndex",
    "with_prefix_support",
    "get_redis",
    "close_redis",
    # Read-models
    "ReadThroughCache",
    "CourseCache",
    "UserCache",
    "DashboardCache",
    "TenantCache",
    # Warm-up
    "WarmerRegistry",
    "load_warmer",
    # Invalidation
    "CacheManager",
    "EntityKind",
    "InvalidationDispatcher",
    "InvalidationRule",
    "RULES",
    # Runtime
    "CacheRuntime",
    "init_runtime",
    "get_runtime",
    "close_runtime",
    # Errors
    "CacheError",
    "CacheBackendUnavailable",
    "InvalidKeyError",
    "InvalidationFailure",
    "ComputeAbandoned",
    "UnknownWarmerError",
]
