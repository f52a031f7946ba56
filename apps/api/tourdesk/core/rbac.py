from collections.abc import Callable

from fastapi import Depends, Request

from tourdesk.core.auth import get_principal
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.errors import UnauthenticatedError
from tourdesk.platform.security.gate import AccessGate
from tourdesk.platform.security.policies import ResourceAction
from tourdesk.platform.security.rls import ScopePolicy


def get_access_gate(request: Request) -> AccessGate:
    return request.app.state.access_gate


def get_scope_policy(request: Request) -> ScopePolicy:
    return request.app.state.scope_policy


def require_authenticated(principal: Principal | None = Depends(get_principal)) -> Principal:
    if principal is None:
        raise UnauthenticatedError()
    return principal


def require_permission(module: str, action: str) -> Callable[..., Principal]:
    def checker(
        principal: Principal | None = Depends(get_principal),
        gate: AccessGate = Depends(get_access_gate),
    ) -> Principal:
        return gate.enforce(principal, module, action)

    return checker


def require_module_access(module: str) -> Callable[..., Principal]:
    def checker(
        principal: Principal | None = Depends(get_principal),
        gate: AccessGate = Depends(get_access_gate),
    ) -> Principal:
        return gate.enforce(principal, module, None)

    return checker


def require_read(module: str) -> Callable[..., Principal]:
    return require_permission(module, ResourceAction.READ)


def require_create(module: str) -> Callable[..., Principal]:
    return require_permission(module, ResourceAction.CREATE)


def require_update(module: str) -> Callable[..., Principal]:
    return require_permission(module, ResourceAction.UPDATE)


def require_delete(module: str) -> Callable[..., Principal]:
    return require_permission(module, ResourceAction.DELETE)


def require_manage(module: str) -> Callable[..., Principal]:
    return require_permission(module, ResourceAction.MANAGE)
