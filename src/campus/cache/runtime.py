"""Process-wide cache wiring.

One CacheRuntime per process holds the backend, the read-through cache,
the per-domain caches, the manager and the dispatcher, all built from
settings. The app lifespan and the CLI call init_runtime / close_runtime;
everything else calls get_runtime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from campus.cache.backend import CacheBackend, PrefixCapableBackend
from campus.cache.courses import CourseCache
from campus.cache.dashboard import DashboardCache
from campus.cache.index import with_prefix_support
from campus.cache.invalidation import InvalidationDispatcher
from campus.cache.keys import KeyBuilder
from campus.cache.manager import CacheManager
from campus.cache.memory import InMemoryCacheBackend
from campus.cache.read_through import ReadThroughCache
from campus.cache.redis import RedisCacheBackend, close_redis, get_redis
from campus.cache.tenants import TenantCache
from campus.cache.ttl import TTLPolicy
from campus.cache.users import UserCache
from campus.cache.warmup import WarmerRegistry
from campus.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

_runtime: CacheRuntime | None = None


@dataclass
class CacheRuntime:
    keys: KeyBuilder
    backend: PrefixCapableBackend
    cache: ReadThroughCache
    courses: CourseCache
    users: UserCache
    dashboard: DashboardCache
    tenants: TenantCache
    manager: CacheManager
    dispatcher: InvalidationDispatcher

    async def close(self) -> None:
        await self.cache.close()


def build_runtime(backend: CacheBackend, settings: Settings | None = None) -> CacheRuntime:
    """Wire every cache component around a backend."""
    settings = settings or default_settings
    keys = KeyBuilder(settings.cache_namespace)
    prefix_backend = with_prefix_support(backend, keys)
    cache = ReadThroughCache(
        prefix_backend,
        TTLPolicy.from_settings(settings),
        single_flight=settings.cache_single_flight,
    )
    courses = CourseCache(cache, keys)
    users = UserCache(cache, keys)
    dashboard = DashboardCache(cache, keys)
    tenants = TenantCache(cache, keys)
    warmers = WarmerRegistry()
    warmers.load(settings.cache_warmers)
    manager = CacheManager(courses, users, dashboard, tenants, cache, warmers=warmers)
    dispatcher = InvalidationDispatcher(manager, route_rules=settings.invalidation_route_rules)
    return CacheRuntime(
        keys=keys,
        backend=prefix_backend,
        cache=cache,
        courses=courses,
        users=users,
        dashboard=dashboard,
        tenants=tenants,
        manager=manager,
        dispatcher=dispatcher,
    )


async def create_backend(settings: Settings) -> CacheBackend:
    """Backend selected by settings.cache_backend ("redis" or "memory")."""
    if settings.cache_backend == "memory":
        return InMemoryCacheBackend(max_entries=settings.cache_memory_max_entries)
    if settings.cache_backend == "redis":
        client = await get_redis()
        return RedisCacheBackend(client, scan_batch_size=settings.cache_scan_batch_size)
    raise ValueError(f"Unknown cache backend: {settings.cache_backend!r}")


async def init_runtime(
    settings: Settings | None = None,
    backend: CacheBackend | None = None,
) -> CacheRuntime:
    """Build and install the process runtime (idempotent)."""
    global _runtime
    if _runtime is not None:
        return _runtime

    settings = settings or default_settings
    if backend is None:
        backend = await create_backend(settings)
    _runtime = build_runtime(backend, settings)
    logger.info(
        "Cache runtime initialized (backend=%s, namespace=%s, single_flight=%s)",
        settings.cache_backend,
        settings.cache_namespace,
        settings.cache_single_flight,
    )
    return _runtime


def get_runtime() -> CacheRuntime:
    if _runtime is None:
        raise RuntimeError("Cache runtime is not initialized; call init_runtime() first")
    return _runtime


def set_runtime(runtime: CacheRuntime | None) -> None:
    """Install a runtime directly (tests, embedding applications)."""
    global _runtime
    _runtime = runtime


async def close_runtime() -> None:
    global _runtime
    if _runtime is None:
        return
    runtime, _runtime = _runtime, None
    if isinstance(runtime.cache.backend, RedisCacheBackend):
        # Client is shared through the module-level pool
        await close_redis()
    else:
        await runtime.close()
