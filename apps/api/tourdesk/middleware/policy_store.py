from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from tourdesk.api.errors import error_response
from tourdesk.platform.security.errors import PolicyUnavailableError


class PolicyStoreMiddleware(BaseHTTPMiddleware):
    """Holds ``/api`` requests until the permission store has been provisioned."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        if not request.url.path.startswith("/api"):
            return await call_next(request)

        initializer = getattr(request.app.state, "policy_initializer", None)
        if initializer is not None:
            try:
                await initializer.ensure_initialized()
            except PolicyUnavailableError as exc:
                return error_response(request, status_code=exc.status_code, code=exc.code, message=exc.message)
        return await call_next(request)
