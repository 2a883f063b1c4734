"""FastAPI application for the Campus cache service.

Serves the operator API (stats, key listing, targeted clears), health and
metrics. CacheInvalidationMiddleware is installed so that writes routed
through this app invalidate like any other Campus service; applications
embedding the cache layer add the same middleware to their own app.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from campus.api.middleware import CacheInvalidationMiddleware, CorrelationMiddleware
from campus.api.routers import cache, health
from campus.cache.errors import CacheBackendUnavailable, InvalidKeyError, UnknownWarmerError
from campus.cache.runtime import close_runtime, init_runtime
from campus.config import Settings, settings as default_settings
from campus.observability import configure_logging, get_metrics

logger = logging.getLogger(__name__)


async def backend_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Cache backend unavailable: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Cache backend unavailable"})


async def bad_request_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(json_format=settings.log_json, level=settings.log_level)
        get_metrics()

        logger.info("Starting %s (%s)", settings.app_name, settings.env)
        await init_runtime(settings)

        yield

        logger.info("Shutting down %s", settings.app_name)
        await close_runtime()

    app = FastAPI(
        title="Campus Cache",
        description="Tenant-scoped read-model cache and invalidation",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CorrelationMiddleware is outermost so invalidation logs carry the request id
    app.add_middleware(CacheInvalidationMiddleware)
    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(CacheBackendUnavailable, backend_unavailable_handler)
    app.add_exception_handler(InvalidKeyError, bad_request_handler)
    app.add_exception_handler(UnknownWarmerError, bad_request_handler)

    app.include_router(health.router)
    app.include_router(cache.router)

    return app
