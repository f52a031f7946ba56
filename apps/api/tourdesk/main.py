from contextlib import asynccontextmanager
from functools import partial
import logging

from fastapi import FastAPI
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from tourdesk.api.errors import authorization_error_handler, http_exception_handler
from tourdesk.api.routes import router as api_router
from tourdesk.authz.seed import DEFAULT_ROLE_GRANTS, provision_policy_store
from tourdesk.core.config import Settings, get_settings
from tourdesk.core.database import build_engine, build_session_factory
from tourdesk.logging import configure_logging
from tourdesk.middleware.correlation_id import CorrelationIdMiddleware
from tourdesk.middleware.policy_store import PolicyStoreMiddleware
from tourdesk.middleware.rate_limit import MutationRateLimitMiddleware
from tourdesk.middleware.request_logging import RequestLoggingMiddleware
from tourdesk.otel import instrument_app, setup_otel
from tourdesk.platform.security import (
    AccessGate,
    AuthorizationError,
    DbPermissionMatrix,
    InMemoryPermissionMatrix,
    PermissionMatrix,
    PermissionResolver,
    PolicyStoreInitializer,
    PolicyUnavailableError,
    ScopePolicy,
)


configure_logging()
logger = logging.getLogger("tourdesk.lifecycle")


def build_permission_matrix(settings: Settings, session_factory: sessionmaker[Session]) -> PermissionMatrix:
    backend = settings.authz_policy_backend.lower()
    if backend == "db":
        return DbPermissionMatrix(session_factory)
    if backend == "inmemory":
        return InMemoryPermissionMatrix(DEFAULT_ROLE_GRANTS)
    raise ValueError(f"unsupported authz_policy_backend: {settings.authz_policy_backend!r}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await app.state.policy_initializer.ensure_initialized()
    except PolicyUnavailableError:
        # Requests under /api retry provisioning through PolicyStoreMiddleware.
        logger.warning("authz.policy_store_warmup_failed", extra={"status": "failed"})
    yield


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    session_factory: sessionmaker[Session] | None = None,
    matrix: PermissionMatrix | None = None,
    scope_policy: ScopePolicy | None = None,
    initializer: PolicyStoreInitializer | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    engine = engine or build_engine(settings.database_url)
    session_factory = session_factory or build_session_factory(engine)
    matrix = matrix or build_permission_matrix(settings, session_factory)

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.access_gate = AccessGate(PermissionResolver(matrix), admin_role=settings.authz_admin_role)
    app.state.scope_policy = scope_policy or ScopePolicy(admin_role=settings.authz_admin_role)
    app.state.policy_initializer = initializer or PolicyStoreInitializer(
        partial(provision_policy_store, engine, session_factory, seed=settings.authz_seed_on_startup)
    )

    app.add_exception_handler(AuthorizationError, authorization_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_middleware(PolicyStoreMiddleware)
    app.add_middleware(MutationRateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(api_router)

    setup_otel(settings.otel_enabled)
    instrument_app(app)
    return app


app = create_app()
