from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tourdesk import audit
from tourdesk.core.auth import issue_access_token
from tourdesk.core.config import get_settings
from tourdesk.core.database import build_session_factory
from tourdesk.main import create_app
from tourdesk.middleware.rate_limit import reset_rate_limiter
from tourdesk.platform.security.context import Principal


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    reset_rate_limiter()
    audit.clear()
    yield
    audit.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    app = create_app(engine=engine, session_factory=build_session_factory(engine))
    with TestClient(app) as test_client:
        yield test_client
    engine.dispose()


def _auth(principal_id: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_access_token(Principal(id=principal_id, role=role))}"}


def _admin() -> dict[str, str]:
    return _auth("1", "admin")


def _permission_id(client: TestClient, module: str, action: str) -> str:
    response = client.get("/api/admin/permissions", params={"module": module}, headers=_admin())
    assert response.status_code == 200
    return next(row["id"] for row in response.json() if row["action"] == action)


def test_admin_lists_seeded_permissions(client: TestClient) -> None:
    response = client.get("/api/admin/permissions", params={"module": "leads"}, headers=_admin())

    assert response.status_code == 200
    assert sorted(row["action"] for row in response.json()) == ["create", "delete", "manage", "read", "update"]
    assert {row["name"] for row in response.json()} >= {"leads:read", "leads:manage"}


def test_permissions_grouped_by_module(client: TestClient) -> None:
    response = client.get("/api/admin/permissions/by-module", headers=_admin())

    assert response.status_code == 200
    groups = {group["module"]: group["permissions"] for group in response.json()}
    assert "customers" in groups
    assert all(permission["module"] == "customers" for permission in groups["customers"])


def test_create_permission_and_reject_duplicate(client: TestClient) -> None:
    created = client.post(
        "/api/admin/permissions",
        json={"module": "vouchers", "action": "read", "description": "Read vouchers"},
        headers=_admin(),
    )
    duplicate = client.post("/api/admin/permissions", json={"module": "vouchers", "action": "read"}, headers=_admin())
    invalid = client.post("/api/admin/permissions", json={"module": "vouchers", "action": "approve"}, headers=_admin())

    assert created.status_code == 201
    assert created.json()["name"] == "vouchers:read"
    assert duplicate.status_code == 409
    assert invalid.status_code == 422
    assert audit.entries(action="authz.permission.created")


def test_grant_and_revoke_take_effect_on_next_request(client: TestClient) -> None:
    finance = _auth("55", "finance")
    assert client.get("/api/payments", headers=finance).status_code == 403

    permission_id = _permission_id(client, "payments", "read")
    granted = client.post("/api/admin/roles/finance/permissions", json={"permission_id": permission_id}, headers=_admin())
    again = client.post("/api/admin/roles/finance/permissions", json={"permission_id": permission_id}, headers=_admin())

    assert granted.status_code == 201
    assert granted.json()["module"] == "payments"
    assert again.status_code == 201
    assert client.get("/api/payments", headers=finance).status_code == 200

    revoked = client.delete(f"/api/admin/roles/finance/permissions/{permission_id}", headers=_admin())
    missing = client.delete(f"/api/admin/roles/finance/permissions/{permission_id}", headers=_admin())

    assert revoked.status_code == 204
    assert missing.status_code == 404
    assert client.get("/api/payments", headers=finance).status_code == 403
    assert [entry["action"] for entry in audit.entries(entity_type="authz.role_permission")] == [
        "authz.grant.added",
        "authz.grant.removed",
    ]


def test_role_summary_and_role_permissions(client: TestClient) -> None:
    summary = client.get("/api/admin/roles/summary", headers=_admin())
    customer = client.get("/api/admin/roles/customer/permissions", headers=_admin())

    assert summary.status_code == 200
    by_role = {row["role"]: row["permissions"] for row in summary.json()}
    assert "customers:read" in by_role["customer"]
    assert "leads:read" not in by_role["customer"]
    assert {row["module"] for row in customer.json()} >= {"customers", "reservations"}


def test_non_admin_roles_are_gated_on_roles_module(client: TestClient) -> None:
    customer = client.get("/api/admin/permissions", headers=_auth("42", "customer"))
    manager_read = client.get("/api/admin/roles/summary", headers=_auth("5", "manager"))
    manager_write = client.post(
        "/api/admin/permissions",
        json={"module": "vouchers", "action": "read"},
        headers=_auth("5", "manager"),
    )

    assert customer.status_code == 403
    assert customer.json()["details"]["reason"] == "no module access"
    assert manager_read.status_code == 200
    assert manager_write.status_code == 403
    assert manager_write.json()["details"]["reason"] == "insufficient permission"


def test_me_permissions_lists_visible_modules(client: TestClient) -> None:
    response = client.get("/api/me/permissions", headers=_auth("42", "customer"))

    assert response.status_code == 200
    body = response.json()
    assert body["principal_id"] == "42"
    assert body["is_admin"] is False
    modules = {row["module"]: row["actions"] for row in body["modules"]}
    assert modules["support_tickets"] == ["create", "read"]
    assert "users" not in modules


def test_me_permissions_requires_token(client: TestClient) -> None:
    response = client.get("/api/me/permissions")

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"


def test_admin_errors_use_the_error_envelope(client: TestClient) -> None:
    client.post("/api/admin/permissions", json={"module": "vouchers", "action": "read"}, headers=_admin())
    duplicate = client.post(
        "/api/admin/permissions",
        json={"module": "vouchers", "action": "read"},
        headers={**_admin(), "X-Correlation-Id": "dup-1"},
    )
    missing = client.get("/api/admin/permissions/00000000-0000-0000-0000-000000000000", headers=_admin())

    assert duplicate.status_code == 409
    assert duplicate.json() == {
        "code": "CONFLICT",
        "message": "permission already exists",
        "details": None,
        "correlation_id": "dup-1",
    }
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"
    assert missing.json()["message"] == "permission not found"
    assert missing.headers.get("x-correlation-id") == missing.json()["correlation_id"]
