"""Post-response cache invalidation hook.

After the handler of a write request returns a 2xx response, hands the
matched route's name, its path parameters, the JSON body and the
authenticated user's tenant to the InvalidationDispatcher. Failures are
logged and never change the response.
"""

from __future__ import annotations

import logging
from typing import Any

import orjson
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from starlette.types import ASGIApp

from campus.cache.invalidation import WRITE_METHODS, InvalidationDispatcher
from campus.cache.runtime import get_runtime

logger = logging.getLogger(__name__)


async def read_json_body(request: Request) -> dict[str, Any] | None:
    """JSON object body of the request; None for other or malformed bodies."""
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = await request.body()
        parsed = orjson.loads(body) if body else None
    except Exception as e:
        logger.debug("Ignoring unreadable request body: %s", e)
        return None
    return parsed if isinstance(parsed, dict) else None


def matched_route(request: Request) -> tuple[str | None, dict[str, Any]]:
    """Name and path parameters of the route that handled the request."""
    route = request.scope.get("route")
    if route is not None:
        return getattr(route, "name", None), dict(request.path_params)

    # Routers that do not record the endpoint route in the scope
    app = request.scope.get("app")
    for candidate in getattr(app, "routes", []):
        match, child_scope = candidate.matches(request.scope)
        if match == Match.FULL:
            return getattr(candidate, "name", None), dict(child_scope.get("path_params", {}))
    return None, dict(request.path_params)


def user_tenant_id(request: Request) -> Any:
    """Tenant of the authenticated user stored on request.state.user, if any."""
    user = getattr(request.state, "user", None)
    if user is None:
        return None
    if isinstance(user, dict):
        return user.get("tenant_id") or (user.get("claims") or {}).get("tenant_id")
    tenant_id = getattr(user, "tenant_id", None)
    if tenant_id is None:
        claims = getattr(user, "claims", None) or {}
        tenant_id = claims.get("tenant_id")
    return tenant_id


class CacheInvalidationMiddleware(BaseHTTPMiddleware):
    """Clears stale read-model caches after successful writes.

    Read requests pass straight through.
    """

    def __init__(self, app: ASGIApp, dispatcher: InvalidationDispatcher | None = None) -> None:
        super().__init__(app)
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> InvalidationDispatcher:
        if self._dispatcher is not None:
            return self._dispatcher
        return get_runtime().dispatcher

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method.upper() not in WRITE_METHODS:
            return await call_next(request)

        body = await read_json_body(request)
        response = await call_next(request)

        if 200 <= response.status_code < 300:
            route_name: str | None = None
            try:
                route_name, path_params = matched_route(request)
                await self.dispatcher.on_write_completed(
                    request.method,
                    route_name,
                    path_params,
                    body,
                    user_tenant_id(request),
                    response.status_code,
                )
            except Exception as e:
                logger.error(
                    "Cache invalidation failed",
                    exc_info=True,
                    extra={
                        "domain": "cache_invalidation",
                        "route_name": route_name,
                        "error": str(e),
                    },
                )

        return response
