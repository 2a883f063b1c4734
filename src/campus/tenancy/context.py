"""Tenant resolution for cache invalidation.

Provides:
- TenantContext: Immutable tenant identity of one request
- TenantSource: Where the tenant identity was found
- resolve_tenant: Find the tenant of a write from its route, body and user

The context is passed explicitly to the code that needs it. Resolution by
request host name is not supported.

Example:
    from campus.tenancy.context import resolve_tenant

    ctx = resolve_tenant({"tenantId": "acme"}, None, None)
    assert ctx.tenant_id == "acme"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class TenantSource(str, Enum):
    ROUTE = "route"
    BODY = "body"
    USER = "user"


@dataclass(frozen=True)
class TenantContext:
    """Tenant identity of the current request.

    Attributes:
        tenant_id: Tenant identifier, always a non-empty string
        source: Where tenant_id was taken from
    """

    tenant_id: str
    source: TenantSource

    def to_dict(self) -> dict[str, Any]:
        return {"tenant_id": self.tenant_id, "source": self.source.value}


def normalize_id(value: Any) -> str | None:
    """Stringify and strip an id; None when it is absent or unusable."""
    # bool is an int subclass and never an id
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def resolve_tenant(
    route_params: Mapping[str, Any] | None,
    request_body: Mapping[str, Any] | None,
    user_tenant_id: Any = None,
) -> TenantContext | None:
    """Resolve the tenant of a request.

    Checks in order: route param "tenant", route param "tenantId",
    body field "tenant_id", then the authenticated user's tenant.

    Returns:
        TenantContext, or None if no source carries a usable tenant id
    """
    candidates: list[tuple[Any, TenantSource]] = []
    if route_params:
        candidates.append((route_params.get("tenant"), TenantSource.ROUTE))
        candidates.append((route_params.get("tenantId"), TenantSource.ROUTE))
    if isinstance(request_body, Mapping):
        candidates.append((request_body.get("tenant_id"), TenantSource.BODY))
    candidates.append((user_tenant_id, TenantSource.USER))

    for value, source in candidates:
        tenant_id = normalize_id(value)
        if tenant_id is not None:
            return TenantContext(tenant_id=tenant_id, source=source)
    return None
