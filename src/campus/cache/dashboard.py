"""Tenant admin dashboard aggregates."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from campus.cache.keys import CacheDomain
from campus.cache.read_through import DomainCache
from campus.cache.ttl import TTLClass


class DashboardCache(DomainCache):
    domain = CacheDomain.DASHBOARD

    async def stats(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        return await self._cached(self.key(tenant_id, "", "stats"), TTLClass.STATS, compute_fn)

    async def revenue_analytics(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        return await self._cached(self.key(tenant_id, "", "revenue"), TTLClass.STATS, compute_fn)

    async def user_engagement(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        return await self._cached(self.key(tenant_id, "", "engagement"), TTLClass.STATS, compute_fn)

    async def course_performance(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, "", "course_performance")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def recent_activities(
        self, tenant_id: Any, compute_fn: Callable[[], Any], limit: int = 10
    ) -> Any:
        key = self.key(tenant_id, "", f"activities.{limit}")
        return await self._cached(key, TTLClass.SHORT, compute_fn)

    async def warm_up(
        self,
        tenant_id: Any,
        *,
        stats: Callable[[], Any],
        revenue: Callable[[], Any],
        engagement: Callable[[], Any],
        performance: Callable[[], Any],
    ) -> None:
        """Fill the four dashboard aggregates of a tenant."""
        await self.stats(tenant_id, stats)
        await self.revenue_analytics(tenant_id, revenue)
        await self.user_engagement(tenant_id, engagement)
        await self.course_performance(tenant_id, performance)

    async def clear_dashboard(self, tenant_id: Any) -> int:
        return await self._delete_prefixes(self.keys.prefix(tenant_id, CacheDomain.DASHBOARD))
