from __future__ import annotations

import re
import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from tourdesk.context import reset_correlation_id, set_correlation_id


_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _incoming_correlation_id(request: Request) -> str | None:
    for header in ("x-correlation-id", "x-request-id"):
        value = request.headers.get(header)
        if value and _ACCEPTED_ID.match(value):
            return value
    return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds one correlation id per request to logs, spans, errors and the response."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = _incoming_correlation_id(request) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers["x-correlation-id"] = correlation_id
        return response
