from __future__ import annotations

from typing import Any


class AuthorizationError(Exception):
    """Base error for gate, resolver and scoping failures."""

    status_code = 500
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class UnauthenticatedError(AuthorizationError):
    """Raised when no valid principal is attached to the request."""

    status_code = 401
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(AuthorizationError):
    """Raised when the principal lacks a module or action grant."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str, *, module: str, action: str | None, reason: str) -> None:
        self.module = module
        self.action = action
        self.reason = reason
        super().__init__(message, details={"module": module, "action": action, "reason": reason})


class PolicyUnavailableError(AuthorizationError):
    """Raised when the permission store cannot be read or was never provisioned."""

    status_code = 500
    code = "POLICY_UNAVAILABLE"

    def __init__(self, message: str = "Permission system not initialized. Please contact administrator.") -> None:
        super().__init__(message)


class NotFoundError(AuthorizationError):
    """Raised for rows that are absent or excluded by the scoping predicate."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "record not found") -> None:
        super().__init__(message)


class ScopeConfigurationError(AuthorizationError):
    """Raised when a scope predicate references a column the model does not have."""

    status_code = 500
    code = "SCOPE_MISCONFIGURED"
