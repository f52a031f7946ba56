from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tourdesk.core.auth import issue_access_token
from tourdesk.core.config import get_settings
from tourdesk.core.database import build_session_factory
from tourdesk.crm.models import Lead
from tourdesk.main import create_app
from tourdesk.middleware.rate_limit import reset_rate_limiter
from tourdesk.platform.security.context import Principal


@pytest.fixture(autouse=True)
def configure_rate_limiter_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "false")
    monkeypatch.setenv("RATE_LIMIT_MUTATIONS_PER_MINUTE", "3")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_factory = build_session_factory(engine)
    app = create_app(engine=engine, session_factory=session_factory)
    with TestClient(app) as test_client:
        with session_factory() as session:
            session.add(Lead(id="lead-1", name="Lisbon tour", agent_id="7"))
            session.commit()
        yield test_client
    engine.dispose()


def _auth(principal_id: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_access_token(Principal(id=principal_id, role=role))}"}


def test_mutating_endpoints_are_rate_limited(client: TestClient) -> None:
    headers = {**_auth("7", "agent"), "X-Correlation-Id": "corr-rate-1"}
    responses = [
        client.patch("/api/leads/lead-1", json={"status": f"step-{index}"}, headers=headers) for index in range(5)
    ]

    assert [response.status_code for response in responses[:3]] == [200, 200, 200]
    limited = [response for response in responses if response.status_code == 429]
    assert limited

    first_limited = limited[0]
    body = first_limited.json()
    assert body["code"] == "RATE_LIMITED"
    assert body["message"] == "Too many requests"
    assert body["correlation_id"] == "corr-rate-1"
    assert first_limited.headers.get("x-correlation-id") == "corr-rate-1"
    assert int(first_limited.headers["Retry-After"]) >= 1


def test_buckets_are_per_principal(client: TestClient) -> None:
    for _ in range(4):
        client.patch("/api/leads/lead-1", json={"status": "busy"}, headers=_auth("7", "agent"))

    response = client.patch("/api/leads/lead-1", json={"status": "admin"}, headers=_auth("1", "admin"))

    assert response.status_code == 200


def test_get_endpoints_are_not_rate_limited(client: TestClient) -> None:
    headers = _auth("7", "agent")

    responses = [client.get("/api/leads", headers=headers) for _ in range(10)]

    assert all(response.status_code == 200 for response in responses)
