"""Tests for the post-response invalidation middleware."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.testclient import TestClient

from campus.api.middleware.invalidation import CacheInvalidationMiddleware
from campus.cache.invalidation import InvalidationDispatcher
from campus.cache.runtime import CacheRuntime


def authenticate(request: Request) -> None:
    """Stand-in auth: the x-user-tenant header becomes request.state.user."""
    tenant = request.headers.get("x-user-tenant")
    if tenant:
        request.state.user = SimpleNamespace(tenant_id=tenant)


def build_app(dispatcher: InvalidationDispatcher | AsyncMock) -> FastAPI:
    app = FastAPI()
    app.add_middleware(CacheInvalidationMiddleware, dispatcher=dispatcher)

    @app.get("/tenants/{tenantId}/courses/{course}", name="courses.show")
    async def show_course(tenantId: str, course: str) -> dict:
        return {"course": course}

    @app.put("/tenants/{tenantId}/courses/{course}", name="courses.update")
    async def update_course(tenantId: str, course: str) -> dict:
        return {"course": course}

    @app.post("/courses/{course}/reject", name="courses.reject")
    async def reject_course(course: str) -> dict:
        raise HTTPException(status_code=422, detail="invalid")

    @app.post("/users/{user}", name="users.update", dependencies=[Depends(authenticate)])
    async def update_user(user: str, payload: dict) -> dict:
        return {"user": user, "received": payload}

    @app.patch("/progress/{userId}", name="progress.update")
    async def update_progress(userId: str) -> dict:
        return {"user": userId}

    return app


@pytest.fixture
def dispatcher() -> AsyncMock:
    return AsyncMock(spec=InvalidationDispatcher)


@pytest.fixture
def client(dispatcher: AsyncMock) -> TestClient:
    return TestClient(build_app(dispatcher))


class TestCacheInvalidationMiddleware:
    """Test what the middleware hands to the dispatcher."""

    def test_successful_write_dispatched(self, client: TestClient, dispatcher: AsyncMock) -> None:
        """Route name and path params of a 2xx write reach the dispatcher."""
        response = client.put("/tenants/T1/courses/C1")

        assert response.status_code == 200
        dispatcher.on_write_completed.assert_awaited_once_with(
            "PUT", "courses.update", {"tenantId": "T1", "course": "C1"}, None, None, 200
        )

    def test_reads_not_dispatched(self, client: TestClient, dispatcher: AsyncMock) -> None:
        """GET requests pass straight through."""
        assert client.get("/tenants/T1/courses/C1").status_code == 200
        dispatcher.on_write_completed.assert_not_awaited()

    def test_failed_write_not_dispatched(self, client: TestClient, dispatcher: AsyncMock) -> None:
        """Non-2xx responses do not invalidate."""
        assert client.post("/courses/C1/reject").status_code == 422
        dispatcher.on_write_completed.assert_not_awaited()

    def test_json_body_and_user_tenant(self, client: TestClient, dispatcher: AsyncMock) -> None:
        """The JSON body and authenticated tenant are passed; the handler still sees the body."""
        response = client.post(
            "/users/U1", json={"tenant_id": "TB", "name": "x"}, headers={"x-user-tenant": "TU"}
        )

        assert response.json()["received"] == {"tenant_id": "TB", "name": "x"}
        args = dispatcher.on_write_completed.await_args.args
        assert args[1] == "users.update"
        assert args[2] == {"user": "U1"}
        assert args[3] == {"tenant_id": "TB", "name": "x"}
        assert args[4] == "TU"

    def test_non_json_body_ignored(self, client: TestClient, dispatcher: AsyncMock) -> None:
        """Form bodies count as absent."""
        client.patch("/progress/U1", data={"tenant_id": "T1"})
        args = dispatcher.on_write_completed.await_args.args
        assert args[3] is None

    def test_dispatcher_errors_do_not_change_response(
        self, client: TestClient, dispatcher: AsyncMock
    ) -> None:
        """The response survives a failing dispatcher."""
        dispatcher.on_write_completed.side_effect = RuntimeError("boom")
        response = client.put("/tenants/T1/courses/C1")
        assert response.status_code == 200
        assert response.json() == {"course": "C1"}


class TestEndToEnd:
    """Middleware over a real dispatcher and in-memory backend."""

    def test_put_course_empties_course_cache(self, runtime: CacheRuntime) -> None:
        """Read, update, read again: the second read recomputes."""
        import asyncio

        compute = MagicMock(side_effect=[{"v": 1}, {"v": 2}])
        client = TestClient(build_app(runtime.dispatcher))

        assert asyncio.run(runtime.courses.course("T1", "C1", compute)) == {"v": 1}
        assert client.put("/tenants/T1/courses/C1").status_code == 200
        assert asyncio.run(runtime.manager.list_tenant_keys("T1", "course")) == []
        assert asyncio.run(runtime.courses.course("T1", "C1", compute)) == {"v": 2}

    def test_unresolved_tenant_deletes_nothing(self, runtime: CacheRuntime) -> None:
        """No tenant anywhere: no backend delete happens."""
        backend = runtime.cache.backend
        backend.delete = AsyncMock(wraps=backend.delete)
        backend.delete_prefix = AsyncMock(wraps=backend.delete_prefix)
        client = TestClient(build_app(runtime.dispatcher))

        assert client.post("/users/U1", json={"name": "x"}).status_code == 200

        backend.delete.assert_not_awaited()
        backend.delete_prefix.assert_not_awaited()
