"""User read-models and per-user course progress.

Key layout (tenant T1, user 7, course 42):
    campus:T1:user:7:detail
    campus:T1:user:7:dashboard
    campus:T1:user:7:courses
    campus:T1:user:7:certificates
    campus:T1:user:7:purchases
    campus:T1:user:7:permissions
    campus:T1:user:7:roles
    campus:T1:user::list.<filters hash>
    campus:T1:user::instructors
    campus:T1:user::students
    campus:T1:user::email.<address>
    campus:T1:progress:7:42
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from campus.cache.courses import list_qualifier
from campus.cache.keys import CacheDomain
from campus.cache.read_through import DomainCache
from campus.cache.ttl import TTLClass


class UserCache(DomainCache):
    domain = CacheDomain.USER

    async def user(self, tenant_id: Any, user_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, user_id, "detail")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def user_list(
        self,
        tenant_id: Any,
        compute_fn: Callable[[], Any],
        filters: Mapping[str, Any] | None = None,
    ) -> Any:
        key = self.key(tenant_id, "", list_qualifier(filters))
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def user_dashboard(
        self, tenant_id: Any, user_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        key = self.key(tenant_id, user_id, "dashboard")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def enrolled_courses(
        self, tenant_id: Any, user_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        key = self.key(tenant_id, user_id, "courses")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def certificates(
        self, tenant_id: Any, user_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        key = self.key(tenant_id, user_id, "certificates")
        return await self._cached(key, TTLClass.LONG, compute_fn)

    async def purchases(self, tenant_id: Any, user_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, user_id, "purchases")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def instructors(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, "", "instructors")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def students(self, tenant_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, "", "students")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def permissions(
        self, tenant_id: Any, user_id: Any, compute_fn: Callable[[], Any]
    ) -> Any:
        """Permission names of a user, direct and through roles."""
        key = self.key(tenant_id, user_id, "permissions")
        return await self._cached(key, TTLClass.LONG, compute_fn)

    async def roles(self, tenant_id: Any, user_id: Any, compute_fn: Callable[[], Any]) -> Any:
        key = self.key(tenant_id, user_id, "roles")
        return await self._cached(key, TTLClass.LONG, compute_fn)

    async def has_permission(
        self, tenant_id: Any, user_id: Any, permission: str, compute_fn: Callable[[], Any]
    ) -> bool:
        return permission in (await self.permissions(tenant_id, user_id, compute_fn) or [])

    async def has_role(
        self, tenant_id: Any, user_id: Any, role: str, compute_fn: Callable[[], Any]
    ) -> bool:
        return role in (await self.roles(tenant_id, user_id, compute_fn) or [])

    async def user_by_email(
        self, tenant_id: Any, email: str, compute_fn: Callable[[], Any]
    ) -> Any:
        key = self.key(tenant_id, "", f"email.{email.strip().lower()}")
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def course_progress(
        self,
        tenant_id: Any,
        user_id: Any,
        course_id: Any,
        compute_fn: Callable[[], Any],
    ) -> Any:
        key = self.key(tenant_id, user_id, course_id, domain=CacheDomain.PROGRESS)
        return await self._cached(key, TTLClass.DEFAULT, compute_fn)

    async def clear_user(self, tenant_id: Any, user_id: Any) -> int:
        """Everything under the user subject, including all of the user's progress."""
        return await self._delete_prefixes(
            self.keys.prefix(tenant_id, CacheDomain.USER, user_id),
            self.keys.prefix(tenant_id, CacheDomain.PROGRESS, user_id),
        )

    async def clear_tenant_users(self, tenant_id: Any) -> int:
        """User collections (lists, instructors, students) of the tenant."""
        return await self._delete_prefixes(self.keys.prefix(tenant_id, CacheDomain.USER, ""))

    async def clear_user_auth(self, tenant_id: Any, user_id: Any) -> int:
        """The user record with its permissions and roles."""
        return await self.cache.delete(
            self.key(tenant_id, user_id, "detail"),
            self.key(tenant_id, user_id, "permissions"),
            self.key(tenant_id, user_id, "roles"),
        )

    async def clear_course_progress(self, tenant_id: Any, user_id: Any, course_id: Any) -> int:
        return await self.cache.delete(
            self.key(tenant_id, user_id, course_id, domain=CacheDomain.PROGRESS),
            self.key(tenant_id, user_id, "dashboard"),
        )
