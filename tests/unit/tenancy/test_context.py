"""Tests for tenant resolution."""

import pytest

from campus.tenancy.context import TenantContext, TenantSource, normalize_id, resolve_tenant


class TestResolveTenant:
    """Test tenant resolution order and normalization."""

    def test_route_tenant_first(self) -> None:
        """The route's tenant param wins over everything else."""
        ctx = resolve_tenant({"tenant": "A", "tenantId": "B"}, {"tenant_id": "C"}, "D")
        assert ctx == TenantContext(tenant_id="A", source=TenantSource.ROUTE)

    def test_route_tenant_id_alias(self) -> None:
        """tenantId is checked after tenant."""
        ctx = resolve_tenant({"tenantId": "B"}, {"tenant_id": "C"}, "D")
        assert ctx is not None
        assert ctx.tenant_id == "B"

    def test_body_before_user(self) -> None:
        """The body field beats the authenticated user."""
        ctx = resolve_tenant({}, {"tenant_id": 12}, "D")
        assert ctx == TenantContext(tenant_id="12", source=TenantSource.BODY)

    def test_user_tenant_last(self) -> None:
        """The authenticated user's tenant is the fallback."""
        ctx = resolve_tenant(None, None, 5)
        assert ctx == TenantContext(tenant_id="5", source=TenantSource.USER)

    def test_unresolved(self) -> None:
        """No source gives None."""
        assert resolve_tenant({"course": "C1"}, {"name": "x"}, None) is None

    def test_blank_values_skipped(self) -> None:
        """Blank values fall through to the next source."""
        ctx = resolve_tenant({"tenant": " "}, {"tenant_id": ""}, "U")
        assert ctx is not None
        assert ctx.source is TenantSource.USER

    def test_non_mapping_body_ignored(self) -> None:
        """JSON arrays carry no tenant."""
        assert resolve_tenant(None, ["tenant_id"], None) is None  # type: ignore[arg-type]

    def test_to_dict(self) -> None:
        """Contexts serialize for logs."""
        ctx = TenantContext(tenant_id="T1", source=TenantSource.BODY)
        assert ctx.to_dict() == {"tenant_id": "T1", "source": "body"}


class TestNormalizeId:
    """Test id normalization."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(" T1 ", "T1"), (7, "7"), (None, None), ("", None), (True, None), (False, None)],
    )
    def test_normalize(self, value: object, expected: str | None) -> None:
        """Ids are stringified and stripped; unusable values become None."""
        assert normalize_id(value) == expected
