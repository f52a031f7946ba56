from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tourdesk.core.auth import issue_access_token
from tourdesk.core.config import get_settings
from tourdesk.core.database import build_session_factory
from tourdesk.main import create_app
from tourdesk.middleware.rate_limit import reset_rate_limiter
from tourdesk.platform.security.context import Principal


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


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


def test_metrics_endpoint_exposes_http_and_authz_metrics(client: TestClient) -> None:
    assert client.get("/health").status_code == 200
    assert client.get("/api/leads/lead-9", headers=_auth("7", "agent")).status_code == 404
    assert client.get("/api/leads", headers=_auth("42", "customer")).status_code == 403

    metrics = client.get("/metrics", headers=_auth("1", "admin"))
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "authz_decisions_total" in body
    assert 'authz_policy_store_init_total{status="succeeded"}' in body

    assert 'path="/health"' in body
    assert 'path="/api/leads/{id}"' in body
    assert 'reason="no module access"' in body


def test_metrics_require_settings_read(client: TestClient) -> None:
    agent = client.get("/metrics", headers=_auth("7", "agent"))
    manager = client.get("/metrics", headers=_auth("5", "manager"))
    anonymous = client.get("/metrics")

    assert agent.status_code == 403
    assert manager.status_code == 200
    assert anonymous.status_code == 401


def test_metrics_disabled_returns_not_found(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics", headers=_auth("1", "admin"))

    assert response.status_code == 404
