from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from starlette.requests import Request

from tourdesk.core.config import Settings, get_settings
from tourdesk.platform.security.context import Principal


logger = logging.getLogger("tourdesk.auth")


def extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    return auth_header.replace("Bearer ", "", 1) if auth_header.startswith("Bearer ") else ""


def verify_token(token: str, settings: Settings | None = None) -> Principal | None:
    """Decode a bearer token into a ``Principal``; ``None`` when it cannot be trusted."""

    if not token:
        return None
    settings = settings or get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.info("auth.token_rejected", extra={"reason": str(exc)})
        return None

    subject = payload.get("sub", payload.get("userId"))
    role = payload.get("role")
    if subject is None or not isinstance(role, str) or not role.strip():
        logger.info("auth.token_rejected", extra={"reason": "missing subject or role claim"})
        return None
    return Principal(id=str(subject), role=role.strip())


async def get_principal(request: Request) -> Principal | None:
    principal = verify_token(extract_bearer_token(request))
    request.state.principal = principal
    return principal


def issue_access_token(
    principal: Principal,
    *,
    email: str | None = None,
    expires_minutes: int | None = None,
    settings: Settings | None = None,
) -> str:
    settings = settings or get_settings()
    lifetime = settings.jwt_expires_minutes if expires_minutes is None else expires_minutes
    claims: dict[str, Any] = {
        "sub": principal.id,
        "role": principal.role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=lifetime),
    }
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
