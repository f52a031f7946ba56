from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

authz_decisions_total = Counter(
    "authz_decisions_total",
    "Access gate decisions by module, action and outcome",
    ["module", "action", "outcome", "reason"],
)

authz_db_queries_count_total = Counter(
    "authz_db_queries_count_total",
    "Authorization DB query count",
)

authz_scope_excluded_total = Counter(
    "authz_scope_excluded_total",
    "Row lookups rejected by the scoping predicate",
    ["module", "operation"],
)

authz_policy_store_init_total = Counter(
    "authz_policy_store_init_total",
    "Policy store initialization attempts by status",
    ["status"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_authz_decision(module: str, action: str | None, outcome: str, reason: str | None) -> None:
    authz_decisions_total.labels(
        module=module,
        action=action or "*",
        outcome=outcome,
        reason=reason or "",
    ).inc()


def observe_authz_db_queries_count(count: int = 1) -> None:
    if count > 0:
        authz_db_queries_count_total.inc(count)


def observe_scope_excluded(module: str, operation: str) -> None:
    authz_scope_excluded_total.labels(module=module, operation=operation).inc()


def observe_policy_store_init(status: str) -> None:
    authz_policy_store_init_total.labels(status=status).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
