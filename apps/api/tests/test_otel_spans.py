from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tourdesk.core.auth import issue_access_token
from tourdesk.core.config import get_settings
from tourdesk.core.database import build_session_factory
from tourdesk.main import create_app
from tourdesk.middleware.rate_limit import reset_rate_limiter
from tourdesk.otel import setup_inmemory_otel
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
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel()
    exporter.clear()
    return exporter


@pytest.fixture()
def client(span_exporter: InMemorySpanExporter) -> Generator[TestClient, None, None]:
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


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/api/leads", headers={**_auth("7", "agent"), "X-Correlation-Id": "otel-corr-1"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_access_checks_are_traced(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    client.get("/api/leads", headers=_auth("7", "agent"))
    client.delete("/api/leads/lead-1", headers=_auth("7", "agent"))

    checks = [span for span in span_exporter.get_finished_spans() if span.name == "authz.check"]
    outcomes = {(span.attributes.get("authz.module"), span.attributes.get("authz.action"), span.attributes.get("authz.outcome")) for span in checks}

    assert ("leads", "read", "allow") in outcomes
    assert ("leads", "delete", "deny") in outcomes
