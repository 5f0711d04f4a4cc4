"""Schemas for role administration and the permission snapshot."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.auth.permissions import ModulePermission, ViewType


class RoleCreate(BaseModel):
    name: str


class RoleRename(BaseModel):
    name: str


class RoleOut(BaseModel):
    id: str
    name: str
    is_super_admin: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ModulePermissionEntry(BaseModel):
    """One row of a role's permission matrix as submitted by an admin."""
    module: str
    view_type: ViewType = ViewType.NONE
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False


class RolePermissionOut(BaseModel):
    id: str
    role_id: str
    module: str
    view_type: ViewType
    can_create: bool
    can_edit: bool
    can_delete: bool

    model_config = {"from_attributes": True}


class RolePermissionsUpdate(BaseModel):
    entries: list[ModulePermissionEntry] = Field(default_factory=list)


class RoleAssignment(BaseModel):
    role_id: str | None = None


class SubUserCreate(BaseModel):
    """Profile for an identity already issued by the auth provider."""
    user_id: str
    name: str | None = None
    email: EmailStr | None = None
    role_id: str | None = None


class SubUserUpdate(BaseModel):
    name: str | None = None
    role_id: str | None = None


class UserProfileOut(BaseModel):
    user_id: str
    name: str | None = None
    email: str | None = None
    role_id: str | None = None
    created_by_user_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PermissionsOut(BaseModel):
    """What a front end needs to gate its screens."""
    user_id: str
    loaded: bool
    is_super_admin: bool
    modules: dict[str, ModulePermission]
    can_manage_users: bool
    can_manage_roles: bool
    error: str | None = None
