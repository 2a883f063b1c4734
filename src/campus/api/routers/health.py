"""Health and metrics endpoints.

- /health  - Cache backend connectivity (503 when unreachable)
- /metrics - Prometheus exposition format
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.responses import Response

from campus.api.deps import get_cache_runtime
from campus.cache.runtime import CacheRuntime
from campus.observability.metrics import get_metrics

router = APIRouter(tags=["health"])

PING_TIMEOUT = 5.0  # seconds


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def check_cache(runtime: CacheRuntime) -> ComponentHealth:
    """Ping the cache backend."""
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(runtime.cache.ping(), timeout=PING_TIMEOUT)
        message = None if healthy else "Cache backend ping failed"
    except asyncio.TimeoutError:
        healthy, message = False, "Cache backend ping timed out"
    except Exception as e:
        healthy, message = False, str(e)

    return ComponentHealth(
        name="cache",
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        latency_ms=(time.monotonic() - start) * 1000,
        message=message,
    )


@router.get("/health", name="health")
async def health(runtime: CacheRuntime = Depends(get_cache_runtime)) -> JSONResponse:
    component = await check_cache(runtime)
    status_code = 200 if component.status is HealthStatus.HEALTHY else 503
    return JSONResponse(
        status_code=status_code,
        content={"status": component.status.value, "components": [component.to_dict()]},
    )


@router.get("/metrics", response_class=Response, name="metrics")
async def get_prometheus_metrics() -> Response:
    """Return Prometheus metrics in exposition format."""
    return Response(
        content=get_metrics().generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
