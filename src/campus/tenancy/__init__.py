"""Tenant identity for cache scoping.

Example:
    from campus.tenancy import resolve_tenant

    ctx = resolve_tenant(request.path_params, body, user_tenant_id)
"""

from campus.tenancy.context import (
    TenantContext,
    TenantSource,
    normalize_id,
    resolve_tenant,
)

__all__ = [
    "TenantContext",
    "TenantSource",
    "normalize_id",
    "resolve_tenant",
]
