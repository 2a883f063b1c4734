"""Cache manager: one clear operation per kind of write.

Each clear fans out to the per-domain caches whose read-models the write
can have changed. Clears never raise; they return False when a step
failed. A failed clear is logged with domain="cache_invalidation" and
counted, and the stale entries age out through their TTL.

The manager also runs registered warmers and backs the operator surfaces
(stats, key inspection, expiry purge, namespace flush).
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from campus.cache.courses import CourseCache
from campus.cache.dashboard import DashboardCache
from campus.cache.errors import CacheError, InvalidationFailure, InvalidKeyError
from campus.cache.keys import CacheDomain
from campus.cache.read_through import ReadThroughCache
from campus.cache.tenants import TenantCache
from campus.cache.ttl import TTLClass
from campus.cache.users import UserCache
from campus.cache.warmup import WarmerRegistry
from campus.observability.metrics import CacheMetrics, get_metrics
from campus.tenancy.context import normalize_id

logger = logging.getLogger(__name__)

ClearStep = Callable[[], Awaitable[int]]


class CacheManager:
    """Facade over the per-domain caches used by invalidation and operators."""

    def __init__(
        self,
        courses: CourseCache,
        users: UserCache,
        dashboard: DashboardCache,
        tenants: TenantCache,
        cache: ReadThroughCache,
        metrics: CacheMetrics | None = None,
        warmers: WarmerRegistry | None = None,
    ) -> None:
        self.courses = courses
        self.users = users
        self.dashboard = dashboard
        self.tenants = tenants
        self.cache = cache
        self.keys = courses.keys
        self.metrics = metrics or get_metrics()
        self.warmers = warmers if warmers is not None else WarmerRegistry()

    async def _clear(self, kind: str, description: str, *steps: ClearStep) -> bool:
        """Run every step; failures of one step do not skip the others.

        Returns True when every step succeeded.
        """
        deleted = 0
        failures: list[InvalidationFailure] = []
        for step in steps:
            try:
                deleted += await step()
            except Exception as e:
                failures.append(InvalidationFailure(kind, str(e)))

        if failures:
            self.metrics.cache_invalidation_failures_total.labels(kind=kind).inc()
            for failure in failures:
                logger.error(
                    "Failed to clear %s cache",
                    description,
                    extra={"domain": "cache_invalidation", "kind": kind, "error": str(failure)},
                )
            return False

        self.metrics.cache_invalidations_total.labels(kind=kind).inc()
        logger.info("Cleared %s cache (%s keys)", description, deleted)
        return True

    async def clear_course_related_cache(self, course_id: Any, tenant_id: Any) -> bool:
        return await self._clear(
            "course",
            f"course {course_id} of tenant {tenant_id}",
            lambda: self.courses.clear_course(tenant_id, course_id),
            lambda: self.dashboard.clear_dashboard(tenant_id),
        )

    async def clear_user_related_cache(self, user_id: Any, tenant_id: Any) -> bool:
        return await self._clear(
            "user",
            f"user {user_id} of tenant {tenant_id}",
            lambda: self.users.clear_user(tenant_id, user_id),
            lambda: self.users.clear_tenant_users(tenant_id),
            lambda: self.dashboard.clear_dashboard(tenant_id),
        )

    async def clear_progress_related_cache(
        self, user_id: Any, course_id: Any, tenant_id: Any
    ) -> bool:
        return await self._clear(
            "progress",
            f"progress of user {user_id} in course {course_id}, tenant {tenant_id}",
            lambda: self.users.clear_course_progress(tenant_id, user_id, course_id),
            lambda: self.courses.clear_course_stats(tenant_id, course_id),
            lambda: self.dashboard.clear_dashboard(tenant_id),
        )

    async def clear_purchase_related_cache(
        self, user_id: Any, course_id: Any, tenant_id: Any
    ) -> bool:
        return await self._clear(
            "purchase",
            f"purchase of course {course_id} by user {user_id}, tenant {tenant_id}",
            lambda: self.users.clear_user(tenant_id, user_id),
            lambda: self.courses.clear_course(tenant_id, course_id),
            lambda: self.dashboard.clear_dashboard(tenant_id),
        )

    async def clear_certificate_related_cache(
        self, user_id: Any, course_id: Any, tenant_id: Any
    ) -> bool:
        return await self._clear(
            "certificate",
            f"certificate for user {user_id} in course {course_id}, tenant {tenant_id}",
            lambda: self.users.clear_user(tenant_id, user_id),
            lambda: self.courses.clear_course(tenant_id, course_id),
            lambda: self.dashboard.clear_dashboard(tenant_id),
        )

    async def clear_user_auth_cache(self, user_id: Any, tenant_id: Any) -> bool:
        return await self._clear(
            "auth",
            f"roles and permissions of user {user_id}, tenant {tenant_id}",
            lambda: self.users.clear_user_auth(tenant_id, user_id),
        )

    async def clear_tenant_cache(self, tenant_id: Any) -> bool:
        """Every key of the tenant, whatever domain wrote it.

        Host-name and slug lookups that resolved to the tenant live in the
        global scope and are deleted first, while the tenant still records them.
        """
        return await self._clear(
            "tenant",
            f"all entries of tenant {tenant_id}",
            lambda: self.tenants.clear_lookups(tenant_id),
            lambda: self.cache.delete_prefix(self.keys.prefix(tenant_id)),
        )

    async def warm_up_tenant_cache(
        self, tenant_id: Any, only: Iterable[str] | None = None
    ) -> dict[str, bool]:
        """Run the registered warmers for a tenant.

        A failing warmer is logged and does not stop the others. Returns
        whether each warmer succeeded.

        Raises:
            InvalidKeyError: If tenant_id is empty
            UnknownWarmerError: If only names an unregistered warmer
        """
        tenant = normalize_id(tenant_id)
        if tenant is None:
            raise InvalidKeyError("Tenant id is required to warm the cache")
        results: dict[str, bool] = {}
        for name, warmer in self.warmers.select(only):
            try:
                outcome = warmer(self, tenant)
                if inspect.isawaitable(outcome):
                    await outcome
                results[name] = True
            except Exception as e:
                logger.error(
                    "Failed to warm up %s cache for tenant %s",
                    name,
                    tenant,
                    extra={"domain": "cache_warmup", "warmer": name, "error": str(e)},
                )
                results[name] = False
            self.metrics.cache_warmups_total.labels(
                warmer=name, outcome="success" if results[name] else "failure"
            ).inc()

        if not results:
            logger.info("No cache warmers registered, nothing to warm for tenant %s", tenant)
        else:
            logger.info(
                "Warmed up cache for tenant %s (%s of %s warmers succeeded)",
                tenant,
                sum(results.values()),
                len(results),
            )
        return results

    # Operator helpers

    async def get_cache_stats(self) -> dict[str, Any]:
        """Backend statistics plus in-process read-through counters."""
        stats: dict[str, Any] = {
            "namespace": self.keys.namespace,
            "read_through": self.cache.stats(),
        }
        backend = self.cache.backend
        try:
            info = getattr(backend, "info", None)
            if callable(info):
                stats["backend"] = await info()
            else:
                local_stats = getattr(backend, "stats", None)
                stats["backend"] = local_stats() if callable(local_stats) else {}
        except CacheError as e:
            logger.error("Failed to get cache stats: %s", e)
            stats["backend"] = {"error": "Failed to retrieve cache statistics", "message": str(e)}
        return stats

    async def list_tenant_keys(
        self,
        tenant_id: Any,
        domain: CacheDomain | str | None = None,
        limit: int = 100,
    ) -> list[str]:
        """Live keys of a tenant, optionally narrowed to one domain.

        Raises:
            ValueError: If domain is not a known CacheDomain
        """
        if domain is not None:
            domain = CacheDomain(domain)
        prefix = self.keys.prefix(tenant_id, domain)

        found: list[str] = []
        async for key in self.cache.iter_keys(prefix):
            found.append(key)
            if len(found) >= limit:
                break
        return sorted(found)

    def _own_key(self, key: str) -> str:
        parsed = self.keys.parse(key)
        if parsed is None or not parsed.tenant_id:
            raise InvalidKeyError(f"Key {key!r} is not a {self.keys.namespace} cache key")
        return key

    async def get_value(self, key: str) -> Any | None:
        """Stored value of one key of this namespace.

        Raises:
            InvalidKeyError: If key does not belong to this namespace
        """
        return await self.cache.get(self._own_key(key))

    async def set_value(
        self, key: str, value: Any, ttl: TTLClass | int = TTLClass.VERY_LONG
    ) -> None:
        await self.cache.set(self._own_key(key), value, ttl)
        logger.info("Cache value set by operator: %s", key)

    async def delete_key(self, key: str) -> bool:
        deleted = await self.cache.delete(self._own_key(key)) > 0
        logger.info("Cache key deleted by operator: %s (existed=%s)", key, deleted)
        return deleted

    async def clear_expired_cache(self) -> int:
        """Drop expired entries the backend still holds; returns how many."""
        purged = await self.cache.purge_expired()
        logger.info("Cache cleanup completed, removed %s expired entries", purged)
        return purged

    async def flush_namespace(self) -> int:
        """Delete every key of this service's namespace (other namespaces untouched)."""
        deleted = await self.cache.delete_prefix(self.keys.namespace_prefix())
        logger.warning("Flushed cache namespace %s (%s keys)", self.keys.namespace, deleted)
        return deleted
