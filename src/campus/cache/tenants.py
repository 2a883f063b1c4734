"""Tenant records, tenant settings and host-name / slug lookups.

Host-name and slug lookups run before a tenant is known, so they are stored
under the global scope rather than inside a tenant:
    campus:!global:tenant:<domain>:by_domain
    campus:!global:tenant:<slug>:by_slug

Each lookup that resolves to a tenant is also recorded in a key the tenant
owns (campus:<tenant>:tenant::lookups), so clearing the tenant reaches its
global lookups too.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from campus.cache.errors import CacheError
from campus.cache.keys import CacheDomain, KeyBuilder
from campus.cache.read_through import DomainCache, ReadThroughCache
from campus.cache.ttl import TTLClass

logger = logging.getLogger(__name__)


def record_tenant_id(record: Any) -> Any | None:
    """Tenant id of a looked-up tenant record ("id" or "tenant_id")."""
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get("id", record.get("tenant_id"))
    return getattr(record, "id", getattr(record, "tenant_id", None))


class TenantCache(DomainCache):
    domain = CacheDomain.TENANT

    def __init__(
        self,
        cache: ReadThroughCache,
        keys: KeyBuilder,
        owner_of: Callable[[Any], Any] = record_tenant_id,
    ) -> None:
        super().__init__(cache, keys)
        self.owner_of = owner_of

    async def tenant(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        return await self._cached(self.key(tenant_id, "", "detail"), TTLClass.LONG, compute_fn)

    async def settings(
        self,
        tenant_id: Any,
        compute_fn: Callable[[], Any],
        group: str | None = None,
    ) -> Any:
        """All settings of a tenant, or one settings group."""
        qualifier = f"settings.{group}" if group else "settings"
        return await self._cached(self.key(tenant_id, "", qualifier), TTLClass.LONG, compute_fn)

    def domain_key(self, domain: str) -> str:
        return self.keys.build_global(CacheDomain.TENANT, domain.lower(), "by_domain")

    def slug_key(self, slug: str) -> str:
        return self.keys.build_global(CacheDomain.TENANT, slug, "by_slug")

    def lookups_key(self, tenant_id: Any) -> str:
        return self.key(tenant_id, "", "lookups")

    async def by_domain(self, domain: str, compute_fn: Callable[[], Any]) -> Any:
        key = self.domain_key(domain)
        return await self._cached(key, TTLClass.VERY_LONG, self._owned(key, compute_fn))

    async def by_slug(self, slug: str, compute_fn: Callable[[], Any]) -> Any:
        key = self.slug_key(slug)
        return await self._cached(key, TTLClass.VERY_LONG, self._owned(key, compute_fn))

    def _owned(self, key: str, compute_fn: Callable[[], Any]) -> Callable[[], Any]:
        """Wrap a lookup compute so its result's tenant records the lookup key."""

        async def compute() -> Any:
            record = compute_fn()
            if inspect.isawaitable(record):
                record = await record
            owner = self.owner_of(record)
            if owner is not None:
                await self._remember_lookup(owner, key)
            return record

        return compute

    async def _remember_lookup(self, tenant_id: Any, key: str) -> None:
        owned_key = self.lookups_key(tenant_id)
        try:
            owned = set(await self.cache.get(owned_key) or [])
            if key in owned:
                return
            owned.add(key)
            await self.cache.set(owned_key, sorted(owned), TTLClass.VERY_LONG)
        except CacheError as e:
            logger.warning("Failed to record lookup %s for tenant %s: %s", key, tenant_id, e)

    async def clear_tenant(self, tenant_id: Any) -> int:
        deleted = await self.clear_lookups(tenant_id)
        return deleted + await self._delete_prefixes(
            self.keys.prefix(tenant_id, CacheDomain.TENANT)
        )

    async def clear_lookups(self, tenant_id: Any) -> int:
        """Delete the global host-name and slug lookups that resolved to the tenant."""
        owned_key = self.lookups_key(tenant_id)
        owned = await self.cache.get(owned_key) or []
        deleted = await self.cache.delete(*owned) if owned else 0
        await self.cache.delete(owned_key)
        return deleted

    async def clear_domain_lookup(self, domain: str) -> int:
        return await self.cache.delete(self.domain_key(domain))

    async def clear_slug_lookup(self, slug: str) -> int:
        return await self.cache.delete(self.slug_key(slug))
