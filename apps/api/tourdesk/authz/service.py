from __future__ import annotations

import logging
import uuid
from itertools import groupby

from fastapi import HTTPException, status
from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tourdesk import audit
from tourdesk.authz.models import Permission, RolePermission
from tourdesk.authz.schemas import (
    ModuleGrantRead,
    ModulePermissionsRead,
    MyPermissionsRead,
    PermissionCreate,
    PermissionRead,
    RolePermissionRead,
    RolePermissionsSummary,
)
from tourdesk.authz.seed import permission_name
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.gate import AccessGate


logger = logging.getLogger("tourdesk.authz.admin")


class PermissionAdminService:
    def list_permissions(self, session: Session, module: str | None = None) -> list[PermissionRead]:
        stmt = select(Permission).order_by(Permission.module.asc(), Permission.action.asc())
        if module is not None:
            stmt = stmt.where(Permission.module == module)
        rows = session.scalars(stmt).all()
        return [PermissionRead.model_validate(row) for row in rows]

    def list_permissions_by_module(self, session: Session) -> list[ModulePermissionsRead]:
        permissions = self.list_permissions(session)
        return [
            ModulePermissionsRead(module=module, permissions=list(items))
            for module, items in groupby(permissions, key=lambda permission: permission.module)
        ]

    def get_permission(self, session: Session, permission_id: uuid.UUID) -> PermissionRead:
        return PermissionRead.model_validate(self._get_permission(session, permission_id))

    def create_permission(self, session: Session, dto: PermissionCreate, *, actor: Principal) -> PermissionRead:
        module = dto.module.strip()
        permission = Permission(
            name=(dto.name or permission_name(module, dto.action)).strip(),
            module=module,
            action=dto.action,
            description=dto.description,
        )
        session.add(permission)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="permission already exists")
        session.refresh(permission)

        audit.record(
            actor_user_id=actor.id,
            entity_type="authz.permission",
            entity_id=str(permission.id),
            action="authz.permission.created",
            before=None,
            after={"module": permission.module, "action": permission.action},
        )
        return PermissionRead.model_validate(permission)

    def list_role_permissions(self, session: Session, role: str) -> list[RolePermissionRead]:
        stmt = (
            select(RolePermission, Permission)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role == role)
            .order_by(Permission.module.asc(), Permission.action.asc())
        )
        return [_role_permission_read(mapping, permission) for mapping, permission in session.execute(stmt).all()]

    def role_permissions_summary(self, session: Session) -> list[RolePermissionsSummary]:
        stmt = (
            select(RolePermission.role, Permission.module, Permission.action)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .order_by(RolePermission.role.asc(), Permission.module.asc(), Permission.action.asc())
        )
        rows = session.execute(stmt).all()
        return [
            RolePermissionsSummary(
                role=role,
                permissions=[permission_name(module, action) for _, module, action in items],
            )
            for role, items in groupby(rows, key=lambda row: row[0])
        ]

    def grant_permission(
        self,
        session: Session,
        role: str,
        permission_id: uuid.UUID,
        *,
        actor: Principal,
    ) -> RolePermissionRead:
        role = _normalize_role(role)
        permission = self._get_permission(session, permission_id)

        mapping = session.scalar(
            select(RolePermission).where(
                and_(RolePermission.role == role, RolePermission.permission_id == permission_id)
            )
        )
        if mapping is None:
            mapping = RolePermission(role=role, permission_id=permission_id)
            session.add(mapping)
            session.commit()
            session.refresh(mapping)
            logger.info(
                "authz.grant_added",
                extra={"principal_id": actor.id, "role": role, "authz_module": permission.module, "action": permission.action},
            )
            audit.record(
                actor_user_id=actor.id,
                entity_type="authz.role_permission",
                entity_id=f"{role}:{permission.id}",
                action="authz.grant.added",
                before=None,
                after={"role": role, "module": permission.module, "action": permission.action},
            )

        return _role_permission_read(mapping, permission)

    def revoke_permission(self, session: Session, role: str, permission_id: uuid.UUID, *, actor: Principal) -> None:
        role = _normalize_role(role)
        mapping = session.scalar(
            select(RolePermission).where(
                and_(RolePermission.role == role, RolePermission.permission_id == permission_id)
            )
        )
        if mapping is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="role-permission mapping not found")

        revoked = {"role": role, "module": mapping.permission.module, "action": mapping.permission.action}
        session.delete(mapping)
        session.commit()
        logger.info(
            "authz.grant_removed",
            extra={"principal_id": actor.id, "role": role, "authz_module": revoked["module"], "action": revoked["action"]},
        )
        audit.record(
            actor_user_id=actor.id,
            entity_type="authz.role_permission",
            entity_id=f"{role}:{permission_id}",
            action="authz.grant.removed",
            before=revoked,
            after=None,
        )

    def my_permissions(self, gate: AccessGate, principal: Principal) -> MyPermissionsRead:
        resolver = gate.resolver
        modules = sorted(resolver.modules_with_any_grant(principal.role))
        return MyPermissionsRead(
            principal_id=principal.id,
            role=principal.role,
            is_admin=gate.is_admin(principal),
            modules=[
                ModuleGrantRead(module=module, actions=sorted(resolver.granted_actions(principal.role, module)))
                for module in modules
            ],
        )

    @staticmethod
    def _get_permission(session: Session, permission_id: uuid.UUID) -> Permission:
        permission = session.scalar(select(Permission).where(Permission.id == permission_id))
        if permission is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="permission not found")
        return permission


def _normalize_role(role: str) -> str:
    normalized = role.strip()
    if not normalized:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="role must not be empty")
    return normalized


def _role_permission_read(mapping: RolePermission, permission: Permission) -> RolePermissionRead:
    return RolePermissionRead(
        role=mapping.role,
        permission_id=permission.id,
        module=permission.module,
        action=permission.action,
        created_at=mapping.created_at,
    )


permission_admin_service = PermissionAdminService()
