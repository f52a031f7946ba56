from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from tourdesk import audit
from tourdesk.metrics import observe_authz_decision
from tourdesk.otel import get_tracer
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.errors import ForbiddenError, PolicyUnavailableError, UnauthenticatedError
from tourdesk.platform.security.policies import PermissionResolver


logger = logging.getLogger("tourdesk.authz.gate")
tracer = get_tracer("tourdesk.authz")


class Outcome(StrEnum):
    ALLOW = "allow"
    DENY = "deny"
    POLICY_UNAVAILABLE = "policy_unavailable"


class DenyReason(StrEnum):
    UNAUTHENTICATED = "authentication required"
    NO_MODULE_ACCESS = "no module access"
    INSUFFICIENT_PERMISSION = "insufficient permission"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    outcome: Outcome
    module: str
    action: str | None
    reason: DenyReason | None = None
    message: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == Outcome.ALLOW


class AccessGate:
    """Coarse module/action check run before any resource logic.

    Sequence: unauthenticated -> admin bypass -> module visibility -> action
    grant. Every non-allow outcome carries an explicit reason.
    """

    def __init__(self, resolver: PermissionResolver, *, admin_role: str = "admin") -> None:
        self._resolver = resolver
        self._admin_role = admin_role

    @property
    def admin_role(self) -> str:
        return self._admin_role

    @property
    def resolver(self) -> PermissionResolver:
        return self._resolver

    def is_admin(self, principal: Principal) -> bool:
        return principal.role == self._admin_role

    def check(self, principal: Principal | None, module: str, action: str | None) -> AccessDecision:
        with tracer.start_as_current_span("authz.check") as span:
            span.set_attribute("authz.module", module)
            span.set_attribute("authz.action", action or "*")
            decision = self._evaluate(principal, module, action)
            span.set_attribute("authz.outcome", decision.outcome.value)
        self._record(principal, decision)
        return decision

    def check_module(self, principal: Principal | None, module: str) -> AccessDecision:
        return self.check(principal, module, None)

    def enforce(self, principal: Principal | None, module: str, action: str | None) -> Principal:
        decision = self.check(principal, module, action)
        if decision.outcome == Outcome.POLICY_UNAVAILABLE:
            raise PolicyUnavailableError()
        if decision.reason == DenyReason.UNAUTHENTICATED or principal is None:
            raise UnauthenticatedError()
        if not decision.allowed:
            raise ForbiddenError(
                decision.message or "Access denied",
                module=module,
                action=action,
                reason=decision.reason.value if decision.reason else "denied",
            )
        return principal

    def _evaluate(self, principal: Principal | None, module: str, action: str | None) -> AccessDecision:
        if principal is None:
            return AccessDecision(
                outcome=Outcome.DENY,
                module=module,
                action=action,
                reason=DenyReason.UNAUTHENTICATED,
                message="Authentication required",
            )

        if self.is_admin(principal):
            return AccessDecision(outcome=Outcome.ALLOW, module=module, action=action)

        try:
            visible_modules = self._resolver.modules_with_any_grant(principal.role)
            if module not in visible_modules:
                return AccessDecision(
                    outcome=Outcome.DENY,
                    module=module,
                    action=action,
                    reason=DenyReason.NO_MODULE_ACCESS,
                    message=f"Access denied. No permissions for module: {module}",
                )
            if action is not None and not self._resolver.has_permission(principal.role, module, action):
                return AccessDecision(
                    outcome=Outcome.DENY,
                    module=module,
                    action=action,
                    reason=DenyReason.INSUFFICIENT_PERMISSION,
                    message=f"Access denied. Required permission: {module}:{action}",
                )
        except PolicyUnavailableError as exc:
            return AccessDecision(
                outcome=Outcome.POLICY_UNAVAILABLE,
                module=module,
                action=action,
                message=exc.message,
            )

        return AccessDecision(outcome=Outcome.ALLOW, module=module, action=action)

    def _record(self, principal: Principal | None, decision: AccessDecision) -> None:
        reason = decision.reason.value if decision.reason else None
        observe_authz_decision(decision.module, decision.action, decision.outcome.value, reason)

        fields = {
            "principal_id": principal.id if principal else None,
            "role": principal.role if principal else None,
            "authz_module": decision.module,
            "action": decision.action,
            "outcome": decision.outcome.value,
            "reason": reason,
        }
        if decision.outcome == Outcome.ALLOW:
            logger.debug("authz.decision", extra=fields)
            return
        if decision.outcome == Outcome.POLICY_UNAVAILABLE:
            logger.error("authz.decision", extra=fields)
        else:
            logger.info("authz.decision", extra=fields)

        audit.record(
            actor_user_id=principal.id if principal else "anonymous",
            entity_type="security.authz",
            entity_id=decision.module,
            action="authz.denied",
            before=None,
            after={
                "role": principal.role if principal else None,
                "module": decision.module,
                "action": decision.action,
                "outcome": decision.outcome.value,
                "reason": reason,
            },
        )
