"""Operator endpoints for the tenant cache.

- GET    /cache/stats                                  backend and hit/miss statistics
- GET    /cache/tenants/{tenant_id}/keys               live keys of a tenant
- DELETE /cache/tenants/{tenant_id}                    clear everything of a tenant
- DELETE /cache/tenants/{tenant_id}/courses/{course_id}
- DELETE /cache/tenants/{tenant_id}/users/{user_id}
- POST   /cache/tenants/{tenant_id}/warm               run registered warmers
- GET    /cache/keys/{key}                             inspect one key
- PUT    /cache/keys/{key}                             set one key
- DELETE /cache/keys/{key}                             delete one key
- POST   /cache/expired/clear                          drop expired entries
- POST   /cache/flush                                  delete the whole namespace
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from campus.api.deps import get_cache_manager
from campus.cache.keys import CacheDomain
from campus.cache.manager import CacheManager

router = APIRouter(prefix="/cache", tags=["cache"])


class TenantKeys(BaseModel):
    """Keys found under a tenant prefix."""

    tenant_id: str
    domain: str | None = None
    count: int
    keys: list[str]


class ClearResult(BaseModel):
    tenant_id: str
    scope: str
    target: str | None = None
    cleared: bool = True


class WarmResult(BaseModel):
    tenant_id: str
    warmers: dict[str, bool]


class KeyValue(BaseModel):
    key: str
    value: Any


class SetKeyRequest(BaseModel):
    value: Any
    ttl: int = Field(default=3600, ge=1, description="Seconds")


class Purged(BaseModel):
    removed: int


@router.get("/stats", name="cache_stats")
async def get_cache_stats(manager: CacheManager = Depends(get_cache_manager)) -> dict[str, Any]:
    """Backend statistics and in-process read-through counters."""
    return await manager.get_cache_stats()


@router.get("/tenants/{tenant_id}/keys", response_model=TenantKeys, name="cache_tenant_keys")
async def list_tenant_keys(
    tenant_id: str,
    domain: str | None = Query(default=None, description="Restrict to one cache domain"),
    limit: int = Query(default=100, ge=1, le=1000),
    manager: CacheManager = Depends(get_cache_manager),
) -> TenantKeys:
    if domain is not None and domain not in {d.value for d in CacheDomain}:
        raise HTTPException(status_code=400, detail=f"Unknown cache domain: {domain}")
    keys = await manager.list_tenant_keys(tenant_id, domain, limit=limit)
    return TenantKeys(tenant_id=tenant_id, domain=domain, count=len(keys), keys=keys)


@router.delete("/tenants/{tenant_id}", response_model=ClearResult, name="cache_clear_tenant")
async def clear_tenant(
    tenant_id: str,
    manager: CacheManager = Depends(get_cache_manager),
) -> ClearResult:
    cleared = await manager.clear_tenant_cache(tenant_id)
    return ClearResult(tenant_id=tenant_id, scope="tenant", cleared=cleared)


@router.delete(
    "/tenants/{tenant_id}/courses/{course_id}",
    response_model=ClearResult,
    name="cache_clear_course",
)
async def clear_course(
    tenant_id: str,
    course_id: str,
    manager: CacheManager = Depends(get_cache_manager),
) -> ClearResult:
    cleared = await manager.clear_course_related_cache(course_id, tenant_id)
    return ClearResult(tenant_id=tenant_id, scope="course", target=course_id, cleared=cleared)


@router.delete(
    "/tenants/{tenant_id}/users/{user_id}",
    response_model=ClearResult,
    name="cache_clear_user",
)
async def clear_user(
    tenant_id: str,
    user_id: str,
    manager: CacheManager = Depends(get_cache_manager),
) -> ClearResult:
    cleared = await manager.clear_user_related_cache(user_id, tenant_id)
    return ClearResult(tenant_id=tenant_id, scope="user", target=user_id, cleared=cleared)


@router.post("/tenants/{tenant_id}/warm", response_model=WarmResult, name="cache_warm")
async def warm_tenant(
    tenant_id: str,
    only: list[str] | None = Query(default=None, description="Run only these warmers"),
    manager: CacheManager = Depends(get_cache_manager),
) -> WarmResult:
    results = await manager.warm_up_tenant_cache(tenant_id, only=only)
    return WarmResult(tenant_id=tenant_id, warmers=results)


@router.get("/keys/{key:path}", response_model=KeyValue, name="cache_get_key")
async def get_key(
    key: str,
    manager: CacheManager = Depends(get_cache_manager),
) -> KeyValue:
    value = await manager.get_value(key)
    if value is None:
        raise HTTPException(status_code=404, detail=f"Key not found: {key}")
    return KeyValue(key=key, value=value)


@router.put("/keys/{key:path}", response_model=KeyValue, name="cache_set_key")
async def set_key(
    key: str,
    body: SetKeyRequest,
    manager: CacheManager = Depends(get_cache_manager),
) -> KeyValue:
    await manager.set_value(key, body.value, body.ttl)
    return KeyValue(key=key, value=body.value)


@router.delete("/keys/{key:path}", status_code=204, name="cache_delete_key")
async def delete_key(
    key: str,
    manager: CacheManager = Depends(get_cache_manager),
) -> None:
    if not await manager.delete_key(key):
        raise HTTPException(status_code=404, detail=f"Key not found: {key}")


@router.post("/expired/clear", response_model=Purged, name="cache_clear_expired")
async def clear_expired(manager: CacheManager = Depends(get_cache_manager)) -> Purged:
    return Purged(removed=await manager.clear_expired_cache())


@router.post("/flush", response_model=Purged, name="cache_flush")
async def flush(manager: CacheManager = Depends(get_cache_manager)) -> Purged:
    """Delete every key of this service's namespace."""
    return Purged(removed=await manager.flush_namespace())
