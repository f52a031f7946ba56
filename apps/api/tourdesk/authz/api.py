from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tourdesk.authz.schemas import (
    GrantPermissionRequest,
    ModulePermissionsRead,
    MyPermissionsRead,
    PermissionCreate,
    PermissionRead,
    RolePermissionRead,
    RolePermissionsSummary,
)
from tourdesk.authz.service import permission_admin_service
from tourdesk.core.database import get_db
from tourdesk.core.rbac import (
    get_access_gate,
    require_authenticated,
    require_create,
    require_delete,
    require_read,
    require_update,
)
from tourdesk.platform.security.context import Principal
from tourdesk.platform.security.gate import AccessGate


ADMIN_MODULE = "roles"

admin_router = APIRouter(prefix="/api/admin", tags=["admin.authz"])
me_router = APIRouter(prefix="/api/me", tags=["auth"])


@admin_router.get("/permissions", response_model=list[PermissionRead])
def list_permissions(
    module: str | None = Query(default=None),
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_read(ADMIN_MODULE)),
) -> list[PermissionRead]:
    return permission_admin_service.list_permissions(db, module=module)


@admin_router.get("/permissions/by-module", response_model=list[ModulePermissionsRead])
def list_permissions_by_module(
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_read(ADMIN_MODULE)),
) -> list[ModulePermissionsRead]:
    return permission_admin_service.list_permissions_by_module(db)


@admin_router.get("/permissions/{permission_id}", response_model=PermissionRead)
def get_permission(
    permission_id: uuid.UUID,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_read(ADMIN_MODULE)),
) -> PermissionRead:
    return permission_admin_service.get_permission(db, permission_id)


@admin_router.post("/permissions", response_model=PermissionRead, status_code=status.HTTP_201_CREATED)
def create_permission(
    dto: PermissionCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_create(ADMIN_MODULE)),
) -> PermissionRead:
    return permission_admin_service.create_permission(db, dto, actor=principal)


@admin_router.get("/roles/summary", response_model=list[RolePermissionsSummary])
def role_permissions_summary(
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_read(ADMIN_MODULE)),
) -> list[RolePermissionsSummary]:
    return permission_admin_service.role_permissions_summary(db)


@admin_router.get("/roles/{role}/permissions", response_model=list[RolePermissionRead])
def list_role_permissions(
    role: str,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_read(ADMIN_MODULE)),
) -> list[RolePermissionRead]:
    return permission_admin_service.list_role_permissions(db, role)


@admin_router.post(
    "/roles/{role}/permissions",
    response_model=RolePermissionRead,
    status_code=status.HTTP_201_CREATED,
)
def grant_role_permission(
    role: str,
    dto: GrantPermissionRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_update(ADMIN_MODULE)),
) -> RolePermissionRead:
    return permission_admin_service.grant_permission(db, role, dto.permission_id, actor=principal)


@admin_router.delete("/roles/{role}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_role_permission(
    role: str,
    permission_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_delete(ADMIN_MODULE)),
) -> None:
    permission_admin_service.revoke_permission(db, role, permission_id, actor=principal)


@me_router.get("/permissions", response_model=MyPermissionsRead)
def my_permissions(
    principal: Principal = Depends(require_authenticated),
    gate: AccessGate = Depends(get_access_gate),
) -> MyPermissionsRead:
    return permission_admin_service.my_permissions(gate, principal)
