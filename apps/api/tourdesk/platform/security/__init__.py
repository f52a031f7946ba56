from tourdesk.platform.security.bootstrap import PolicyStoreInitializer
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.errors import (
    AuthorizationError,
    ForbiddenError,
    NotFoundError,
    PolicyUnavailableError,
    ScopeConfigurationError,
    UnauthenticatedError,
)
from tourdesk.platform.security.gate import AccessDecision, AccessGate, DenyReason, Outcome
from tourdesk.platform.security.policies import (
    DbPermissionMatrix,
    InMemoryPermissionMatrix,
    PermissionMatrix,
    PermissionResolver,
    ResourceAction,
)
from tourdesk.platform.security.repository import ScopedRepository
from tourdesk.platform.security.rls import (
    DEFAULT_SCOPE_RULES,
    UNRESTRICTED,
    AllOf,
    AnyOf,
    ColumnEquals,
    Predicate,
    ScopePolicy,
    ScopeRule,
    Unrestricted,
    owned_by,
    owned_by_any,
)

__all__ = [
    "AccessDecision",
    "AccessGate",
    "AllOf",
    "AnyOf",
    "AuthorizationError",
    "ColumnEquals",
    "DEFAULT_SCOPE_RULES",
    "DbPermissionMatrix",
    "DenyReason",
    "ForbiddenError",
    "InMemoryPermissionMatrix",
    "NotFoundError",
    "Outcome",
    "PermissionMatrix",
    "PermissionResolver",
    "PolicyStoreInitializer",
    "PolicyUnavailableError",
    "Predicate",
    "Principal",
    "ResourceAction",
    "ScopeConfigurationError",
    "ScopePolicy",
    "ScopeRule",
    "ScopedRepository",
    "UNRESTRICTED",
    "UnauthenticatedError",
    "Unrestricted",
    "owned_by",
    "owned_by_any",
]
