from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tourdesk.context import reset_correlation_id, set_correlation_id
from tourdesk.core.auth import issue_access_token
from tourdesk.core.config import get_settings
from tourdesk.core.database import build_session_factory
from tourdesk.logging import JsonLogFormatter
from tourdesk.main import create_app
from tourdesk.middleware.rate_limit import reset_rate_limiter
from tourdesk.platform.security.context import Principal


@pytest.fixture(autouse=True)
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
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


def test_logs_include_correlation_id_and_principal_for_http(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)

    response = client.get(
        f"/api/leads/{uuid.uuid4()}",
        headers={**_auth("7", "agent"), "X-Correlation-Id": "abc-123"},
    )
    assert response.status_code == 404

    records = [
        record for record in caplog.records if record.name == "tourdesk.request" and record.getMessage() == "http.request"
    ]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/api/leads/{id}"
        and getattr(record, "status_code", None) == 404
        and getattr(record, "principal_id", None) == "7"
        and getattr(record, "role", None) == "agent"
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_denials_are_logged_at_warning_with_decision_fields(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO)

    response = client.get("/api/leads", headers={**_auth("42", "customer"), "X-Correlation-Id": "deny-1"})
    assert response.status_code == 403

    request_records = [record for record in caplog.records if record.name == "tourdesk.request"]
    assert any(record.levelno == logging.WARNING and record.status_code == 403 for record in request_records)

    decisions = [record for record in caplog.records if record.name == "tourdesk.authz.gate"]
    assert any(
        getattr(record, "authz_module", None) == "leads"
        and getattr(record, "action", None) == "read"
        and getattr(record, "outcome", None) == "deny"
        and getattr(record, "reason", None) == "no module access"
        and getattr(record, "correlation_id", None) == "deny-1"
        for record in decisions
    )


def test_json_formatter_keeps_only_structured_fields() -> None:
    token = set_correlation_id("fmt-1")
    try:
        record = logging.getLogger("tourdesk.authz.gate").makeRecord(
            "tourdesk.authz.gate",
            logging.INFO,
            __file__,
            1,
            "authz.decision",
            (),
            None,
            extra={"authz_module": "leads", "outcome": "deny", "password": "hunter2"},
        )
    finally:
        reset_correlation_id(token)

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "authz.decision"
    assert payload["correlation_id"] == "fmt-1"
    assert payload["fields"] == {"authz_module": "leads", "outcome": "deny"}
