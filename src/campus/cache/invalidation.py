"""Write-driven cache invalidation.

After a successful write the dispatcher works out which read-models the
write can have changed and asks the CacheManager to clear them.

Two entry points share one rule table:
- on_write_completed: called by CacheInvalidationMiddleware after every
  2xx POST/PUT/PATCH/DELETE, from the route name and route parameters
- entity_changed: called by services at the end of a mutating method,
  for writes that happen outside a matching route

Route names are split into tokens on ". - _ : /" and whitespace, and a rule
applies when one of its words is a token. "courses.update" matches the
course rule; "discourse.update" matches nothing. An exact route table
(setting invalidation_route_rules) overrides token matching for the
routes it names.

Example:
    dispatcher = InvalidationDispatcher(manager)

    await dispatcher.on_write_completed(
        "PUT", "courses.update", {"course": "42"}, None, "T1", 200
    )
    await dispatcher.entity_changed("progress", "T1", user="7", course="42")
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from campus.cache.manager import CacheManager
from campus.observability.logging import LogContext
from campus.tenancy.context import normalize_id, resolve_tenant

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("campus.audit")

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

_TOKEN_SPLIT = re.compile(r"[.\-_:/\s]+")


class EntityKind(str, Enum):
    """Kinds of write that invalidate cached read-models."""

    COURSE = "course"
    USER = "user"
    PROGRESS = "progress"
    PURCHASE = "purchase"
    CERTIFICATE = "certificate"
    TENANT = "tenant"
    DASHBOARD = "dashboard"
    AUTH = "auth"


def tokenize(route_name: str | None) -> set[str]:
    """Split a route name into its words."""
    if not route_name:
        return set()
    return {token for token in _TOKEN_SPLIT.split(route_name) if token}


def param_aliases(name: str) -> tuple[str, str, str]:
    """Accepted spellings of an id parameter: course, courseId, course_id."""
    return name, f"{name}Id", f"{name}_id"


def lookup_param(params: Mapping[str, Any], name: str) -> str | None:
    for alias in param_aliases(name):
        value = normalize_id(params.get(alias))
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class InvalidationRule:
    """Which route words select an entity kind, and which ids it needs."""

    kind: EntityKind
    route_tokens: frozenset[str]
    params: tuple[str, ...] = ()

    def matches(self, tokens: set[str]) -> bool:
        return not self.route_tokens.isdisjoint(tokens)

    def extract_ids(self, params: Mapping[str, Any]) -> dict[str, str] | None:
        """Ids this rule needs, or None if any of them is missing."""
        ids: dict[str, str] = {}
        for name in self.params:
            value = lookup_param(params, name)
            if value is None:
                return None
            ids[name] = value
        return ids


RULES: tuple[InvalidationRule, ...] = (
    InvalidationRule(EntityKind.COURSE, frozenset({"course", "courses"}), ("course",)),
    InvalidationRule(EntityKind.USER, frozenset({"user", "users"}), ("user",)),
    InvalidationRule(EntityKind.PROGRESS, frozenset({"progress"}), ("user", "course")),
    InvalidationRule(
        EntityKind.PURCHASE, frozenset({"purchase", "purchases"}), ("user", "course")
    ),
    InvalidationRule(
        EntityKind.CERTIFICATE, frozenset({"certificate", "certificates"}), ("user", "course")
    ),
    InvalidationRule(EntityKind.TENANT, frozenset({"tenant", "tenants", "settings"})),
    InvalidationRule(EntityKind.DASHBOARD, frozenset({"dashboard"})),
    InvalidationRule(
        EntityKind.AUTH,
        frozenset({"role", "roles", "permission", "permissions"}),
        ("user",),
    ),
)

_Clear = Callable[[CacheManager, str, dict[str, str]], Awaitable[bool]]

_CLEARS: dict[EntityKind, _Clear] = {
    EntityKind.COURSE: lambda m, t, ids: m.clear_course_related_cache(ids["course"], t),
    EntityKind.USER: lambda m, t, ids: m.clear_user_related_cache(ids["user"], t),
    EntityKind.PROGRESS: lambda m, t, ids: m.clear_progress_related_cache(
        ids["user"], ids["course"], t
    ),
    EntityKind.PURCHASE: lambda m, t, ids: m.clear_purchase_related_cache(
        ids["user"], ids["course"], t
    ),
    EntityKind.CERTIFICATE: lambda m, t, ids: m.clear_certificate_related_cache(
        ids["user"], ids["course"], t
    ),
    EntityKind.TENANT: lambda m, t, ids: m.clear_tenant_cache(t),
    EntityKind.DASHBOARD: lambda m, t, ids: m.clear_tenant_cache(t),
    EntityKind.AUTH: lambda m, t, ids: m.clear_user_auth_cache(ids["user"], t),
}


class InvalidationDispatcher:
    """Maps completed writes to CacheManager clear operations."""

    def __init__(
        self,
        manager: CacheManager,
        route_rules: Mapping[str, Iterable[str]] | None = None,
        rules: Iterable[InvalidationRule] = RULES,
    ) -> None:
        self.manager = manager
        self.rules = tuple(rules)
        self._by_kind = {rule.kind: rule for rule in self.rules}
        # Unknown kinds fail here, at startup, not on a request
        self.route_rules: dict[str, frozenset[EntityKind]] = {
            name: frozenset(EntityKind(kind) for kind in kinds)
            for name, kinds in (route_rules or {}).items()
        }

    def matching_rules(self, route_name: str | None) -> list[InvalidationRule]:
        """Rules selected by a route name, in rule table order."""
        if route_name and route_name in self.route_rules:
            kinds = self.route_rules[route_name]
            return [rule for rule in self.rules if rule.kind in kinds]
        tokens = tokenize(route_name)
        return [rule for rule in self.rules if rule.matches(tokens)]

    async def on_write_completed(
        self,
        method: str,
        route_name: str | None,
        route_params: Mapping[str, Any] | None,
        request_body: Mapping[str, Any] | None,
        user_tenant_id: Any,
        status_code: int,
    ) -> list[EntityKind]:
        """Clear what a completed HTTP write can have made stale.

        Never raises. Returns the entity kinds whose clears succeeded; a
        kind whose clear failed is neither returned nor audited.
        """
        if method.upper() not in WRITE_METHODS or not 200 <= status_code < 300:
            return []

        applied: list[EntityKind] = []
        try:
            ctx = resolve_tenant(route_params, request_body, user_tenant_id)
            if ctx is None:
                logger.debug("No tenant for %s %s, skipping cache invalidation", method, route_name)
                return applied
            if not route_name:
                logger.debug("Unnamed route, skipping cache invalidation")
                return applied

            params = route_params or {}
            with LogContext(tenant_id=ctx.tenant_id, route_name=route_name):
                for rule in self.matching_rules(route_name):
                    ids = rule.extract_ids(params)
                    if ids is None:
                        logger.debug(
                            "Route %s matches %s but lacks %s",
                            route_name,
                            rule.kind.value,
                            rule.params,
                        )
                        continue
                    if await _CLEARS[rule.kind](self.manager, ctx.tenant_id, ids):
                        applied.append(rule.kind)
                    else:
                        logger.warning(
                            "Clear of %s cache failed after %s %s",
                            rule.kind.value,
                            method.upper(),
                            route_name,
                        )

                if applied:
                    audit_logger.info(
                        "Cache invalidated for tenant %s after %s %s",
                        ctx.tenant_id,
                        method.upper(),
                        route_name,
                        extra={
                            "tenant_source": ctx.source.value,
                            "kinds": [kind.value for kind in applied],
                        },
                    )
        except Exception as e:
            logger.error(
                "Cache invalidation failed",
                exc_info=True,
                extra={"domain": "cache_invalidation", "route_name": route_name, "error": str(e)},
            )
        return applied

    async def entity_changed(self, kind: EntityKind | str, tenant_id: Any, **ids: Any) -> bool:
        """Clear what a service-side write to one entity can have made stale.

        Ids use the same names and aliases as route parameters (course,
        courseId, course_id). Never raises; returns whether the clear ran
        and succeeded.
        """
        try:
            kind = EntityKind(kind)
            tenant = normalize_id(tenant_id)
            if tenant is None:
                logger.debug("No tenant for %s change, skipping cache invalidation", kind.value)
                return False

            rule = self._by_kind[kind]
            resolved = rule.extract_ids(ids)
            if resolved is None:
                logger.debug(
                    "%s change lacks %s, skipping cache invalidation", kind.value, rule.params
                )
                return False

            with LogContext(tenant_id=tenant):
                if not await _CLEARS[kind](self.manager, tenant, resolved):
                    logger.warning("Clear of %s cache failed", kind.value)
                    return False
                audit_logger.info(
                    "Cache invalidated for tenant %s after %s change",
                    tenant,
                    kind.value,
                    extra={"kinds": [kind.value], **resolved},
                )
            return True
        except Exception as e:
            logger.error(
                "Cache invalidation failed",
                exc_info=True,
                extra={"domain": "cache_invalidation", "kind": str(kind), "error": str(e)},
            )
            return False
