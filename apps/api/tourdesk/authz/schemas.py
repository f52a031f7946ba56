from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ACTION_PATTERN = "^(read|create|update|delete|manage)$"


class PermissionCreate(BaseModel):
    module: str = Field(min_length=1, max_length=64)
    action: str = Field(pattern=ACTION_PATTERN)
    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None


class PermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    module: str
    action: str
    description: str | None
    created_at: datetime
    updated_at: datetime


class ModulePermissionsRead(BaseModel):
    module: str
    permissions: list[PermissionRead]


class GrantPermissionRequest(BaseModel):
    permission_id: UUID


class RolePermissionRead(BaseModel):
    role: str
    permission_id: UUID
    module: str
    action: str
    created_at: datetime


class RolePermissionsSummary(BaseModel):
    role: str
    permissions: list[str]


class ModuleGrantRead(BaseModel):
    module: str
    actions: list[str]


class MyPermissionsRead(BaseModel):
    principal_id: str
    role: str
    is_admin: bool
    modules: list[ModuleGrantRead]
