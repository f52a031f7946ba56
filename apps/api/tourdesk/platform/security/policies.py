from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql import Select

from tourdesk.authz.models import Permission, RolePermission
from tourdesk.metrics import observe_authz_db_queries_count
from tourdesk.platform.security.errors import PolicyUnavailableError


logger = logging.getLogger("tourdesk.authz.policy")


class ResourceAction(StrEnum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


class PermissionMatrix(Protocol):
    """Read side of the persisted (role, module, action) grant table."""

    def actions_for(self, role: str, module: str) -> frozenset[str]:
        ...

    def modules_for(self, role: str) -> frozenset[str]:
        ...


class InMemoryPermissionMatrix:
    """Fabricated grant table, indexed role -> module -> actions.

    Passing ``None`` builds an unprovisioned matrix whose lookups raise
    ``PolicyUnavailableError``; an empty mapping is a provisioned matrix
    with no grants.
    """

    def __init__(self, grants: Mapping[str, Mapping[str, Iterable[str]]] | None = None) -> None:
        self._provisioned = grants is not None
        self._index: dict[str, dict[str, frozenset[str]]] = {}
        for role, modules in (grants or {}).items():
            self._index[role] = {
                module: frozenset(str(action) for action in actions)
                for module, actions in modules.items()
                if actions
            }

    @classmethod
    def from_grants(cls, grants: Iterable[tuple[str, str, str]]) -> InMemoryPermissionMatrix:
        index: dict[str, dict[str, set[str]]] = {}
        for role, module, action in grants:
            index.setdefault(role, {}).setdefault(module, set()).add(action)
        return cls(index)

    def actions_for(self, role: str, module: str) -> frozenset[str]:
        self._ensure_provisioned()
        return self._index.get(role, {}).get(module, frozenset())

    def modules_for(self, role: str) -> frozenset[str]:
        self._ensure_provisioned()
        return frozenset(self._index.get(role, {}))

    def _ensure_provisioned(self) -> None:
        if not self._provisioned:
            raise PolicyUnavailableError()


class DbPermissionMatrix:
    """Grant table backed by the ``permissions`` / ``role_permissions`` tables."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def actions_for(self, role: str, module: str) -> frozenset[str]:
        stmt = (
            select(Permission.action)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role == role, Permission.module == module)
        )
        return frozenset(str(action) for action in self._fetch(stmt))

    def modules_for(self, role: str) -> frozenset[str]:
        stmt = (
            select(Permission.module)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role == role)
            .distinct()
        )
        return frozenset(str(module) for module in self._fetch(stmt))

    def _fetch(self, stmt: Select[Any]) -> list[Any]:
        try:
            with self._session_factory() as session:
                rows = list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            logger.error("authz.policy_store_unavailable", extra={"error": str(exc)})
            raise PolicyUnavailableError() from exc
        observe_authz_db_queries_count(1)
        return rows


class PermissionResolver:
    """Answers grant questions against an injected permission matrix.

    No administrator bypass here; the access gate applies it.
    """

    def __init__(self, matrix: PermissionMatrix) -> None:
        self._matrix = matrix

    def has_permission(self, role: str, module: str, action: str) -> bool:
        _require_role(role)
        granted = self._matrix.actions_for(role, module)
        return action in granted or ResourceAction.MANAGE in granted

    def modules_with_any_grant(self, role: str) -> frozenset[str]:
        _require_role(role)
        return self._matrix.modules_for(role)

    def granted_actions(self, role: str, module: str) -> frozenset[str]:
        _require_role(role)
        return self._matrix.actions_for(role, module)


def _require_role(role: str) -> None:
    if not isinstance(role, str) or not role.strip():
        raise ValueError("role must be a non-empty string")
