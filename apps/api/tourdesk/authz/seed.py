from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session, sessionmaker

import tourdesk.crm.models  # noqa: F401
from tourdesk.authz.models import Permission, PolicyStoreState, RolePermission
from tourdesk.core.database import Base
from tourdesk.platform.security.policies import ResourceAction


logger = logging.getLogger("tourdesk.authz.seed")

DEFAULT_MODULES: tuple[str, ...] = (
    "customers",
    "leads",
    "reservations",
    "payments",
    "invoices",
    "support_tickets",
    "sales_cases",
    "properties",
    "owners",
    "operations",
    "attendance",
    "notifications",
    "settings",
    "categories",
    "items",
    "suppliers",
    "departments",
    "activities",
    "users",
    "roles",
)

DEFAULT_ACTIONS: tuple[str, ...] = tuple(action.value for action in ResourceAction)

# Set once default grants exist; later edits, including revoking everything, are kept.
DEFAULT_GRANTS_MARKER = "default_grants_seeded"

_READ = (ResourceAction.READ,)
_WORK = (ResourceAction.READ, ResourceAction.CREATE, ResourceAction.UPDATE)

DEFAULT_ROLE_GRANTS: dict[str, dict[str, tuple[str, ...]]] = {
    "admin": {module: DEFAULT_ACTIONS for module in DEFAULT_MODULES},
    "manager": {module: _READ for module in DEFAULT_MODULES},
    "agent": {
        "customers": _WORK,
        "leads": _WORK,
        "reservations": _READ,
        "support_tickets": _WORK,
        "sales_cases": _WORK,
        "properties": _READ,
        "activities": _WORK,
        "notifications": _READ,
    },
    "sales": {
        "customers": _READ,
        "leads": _WORK,
        "support_tickets": _READ,
        "sales_cases": _WORK,
        "notifications": _READ,
    },
    "operations": {
        "operations": _WORK,
        "reservations": _READ,
        "suppliers": _READ,
        "notifications": _READ,
    },
    "customer": {
        "customers": _READ,
        "reservations": _READ,
        "payments": _READ,
        "invoices": _READ,
        "support_tickets": (ResourceAction.READ, ResourceAction.CREATE),
        "notifications": _READ,
    },
}


def permission_name(module: str, action: str) -> str:
    return f"{module}:{action}"


def ensure_permissions(session: Session, modules: Iterable[str], actions: Iterable[str]) -> dict[tuple[str, str], Permission]:
    """Create missing ``(module, action)`` rows and return all of them keyed by pair."""

    existing = {(row.module, row.action): row for row in session.scalars(select(Permission)).all()}
    for module in modules:
        for action in actions:
            key = (module, str(action))
            if key in existing:
                continue
            permission = Permission(
                name=permission_name(*key),
                module=module,
                action=str(action),
                description=f"{str(action).capitalize()} access to {module}",
            )
            session.add(permission)
            existing[key] = permission
    session.flush()
    return existing


def seed_default_permissions(
    session: Session,
    grants: Mapping[str, Mapping[str, Iterable[str]]] | None = None,
) -> int:
    """Seed permissions and, on first provisioning only, the role grants.

    A store that already holds grants but predates the marker is marked and
    left untouched. Returns the number of role grants written.
    """

    grants = DEFAULT_ROLE_GRANTS if grants is None else grants
    permissions = ensure_permissions(session, DEFAULT_MODULES, DEFAULT_ACTIONS)

    if session.get(PolicyStoreState, DEFAULT_GRANTS_MARKER) is not None:
        session.commit()
        return 0
    if session.scalar(select(func.count()).select_from(RolePermission)):
        _mark_seeded(session, "existing")
        session.commit()
        return 0

    written = 0
    for role, modules in grants.items():
        for module, actions in modules.items():
            for action in actions:
                key = (module, str(action))
                permission = permissions.get(key)
                if permission is None:
                    permission = ensure_permissions(session, [module], [str(action)])[key]
                    permissions[key] = permission
                session.add(RolePermission(role=role, permission_id=permission.id))
                written += 1
    _mark_seeded(session, "defaults")
    session.commit()
    logger.info("authz.seeded", extra={"status": "seeded"})
    return written


def provision_policy_store(engine: Engine, session_factory: sessionmaker[Session], *, seed: bool = True) -> None:
    """Create the schema and, when requested, seed the default grants."""

    Base.metadata.create_all(bind=engine)
    if not seed:
        return
    with session_factory() as session:
        seed_default_permissions(session)


def _mark_seeded(session: Session, value: str) -> None:
    session.add(PolicyStoreState(key=DEFAULT_GRANTS_MARKER, value=value))
