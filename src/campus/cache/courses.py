"""Course read-models: catalogue lists, course details, statistics,
enrolments, categories and live sessions.

Key layout (tenant T1, course 42):
    campus:T1:course::list.<filters hash>   filtered catalogue page
    campus:T1:course:42:detail              course with relations
    campus:T1:course:42:stats               enrolment/revenue aggregates
    campus:T1:course:42:sessions.live       upcoming live sessions
    campus:T1:enrollment:42:students        enrolled students
    campus:T1:category::tree                category tree
    campus:T1:session:<session>:attendance  attendance of one session
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from campus.cache.keys import CacheDomain, filters_hash
from campus.cache.read_through import DomainCache
from campus.cache.ttl import TTLClass

logger = logging.getLogger(__name__)


def list_qualifier(filters: Mapping[str, Any] | None) -> str:
    digest = filters_hash(filters)
    return f"list.{digest}" if digest else "list"


class CourseCache(DomainCache):
    domain = CacheDomain.COURSE

    async def course_list(
        self,
        tenant_id: Any,
        compute_fn: Callable[[], Any],
        filters: Mapping[str, Any] | None = None,
    ) -> Any:
        """Catalogue listing for one filter combination."""
        key = self.key(tenant_id, "", list_qualifier(filters))
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def course(self, tenant_id: Any, course_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, course_id, "detail")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def course_stats(
        self, tenant_id: Any, course_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        key = self.key(tenant_id, course_id, "stats")
        return await self._cached(key, TTLClass.STATS, compute_fn)

    async def enrolled_students(
        self, tenant_id: Any, course_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        key = self.key(tenant_id, course_id, "students", domain=CacheDomain.ENROLLMENT)
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def categories(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, "", "tree", domain=CacheDomain.CATEGORY)
        return await self._cached(key, TTLClass.LONG, compute_fn)

    async def live_sessions(
        self, tenant_id: Any, course_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        # Polled by clients while a session runs
        key = self.key(tenant_id, course_id, "sessions.live")
        return await self._cached(key, TTLClass.SHORT, compute_fn)

    async def session_attendance(
        self, tenant_id: Any, session_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        key = self.key(tenant_id, session_id, "attendance", domain=CacheDomain.SESSION)
        return await self._cached(key, TTLClass.SHORT, compute_fn)

    async def clear_course(self, tenant_id: Any, course_id: Any) -> int:
        """Drop everything cached about one course plus the collections listing it."""
        deleted = await self.cache.delete(
            self.key(tenant_id, course_id, "detail"),
            self.key(tenant_id, course_id, "stats"),
        )
        deleted += await self._delete_prefixes(
            self.keys.prefix(tenant_id, CacheDomain.COURSE, course_id),
            self.keys.prefix(tenant_id, CacheDomain.ENROLLMENT, course_id),
            self.keys.prefix(tenant_id, CacheDomain.COURSE, ""),
            self.keys.prefix(tenant_id, CacheDomain.CATEGORY),
        )
        logger.debug("Cleared course %s of tenant %s (%s keys)", course_id, tenant_id, deleted)
        return deleted

    async def clear_course_stats(self, tenant_id: Any, course_id: Any) -> int:
        return await self.cache.delete(self.key(tenant_id, course_id, "stats"))

    async def clear_course_lists(self, tenant_id: Any) -> int:
        return await self._delete_prefixes(self.keys.prefix(tenant_id, CacheDomain.COURSE, ""))

    async def clear_tenant_courses(self, tenant_id: Any) -> int:
        return await self._delete_prefixes(
            self.keys.prefix(tenant_id, CacheDomain.COURSE),
            self.keys.prefix(tenant_id, CacheDomain.CATEGORY),
            self.keys.prefix(tenant_id, CacheDomain.ENROLLMENT),
            self.keys.prefix(tenant_id, CacheDomain.SESSION),
        )
