"""Role administration router (super admin only).

Endpoints:
    GET    /api/roles/                        List roles
    POST   /api/roles/                        Create role
    PATCH  /api/roles/{id}                    Rename role
    DELETE /api/roles/{id}                    Delete role (blocked while in use)
    GET    /api/roles/{id}/permissions        Stored module grants
    PUT    /api/roles/{id}/permissions        Upsert module grants
    POST   /api/roles/users                   Create a sub-user profile
    PATCH  /api/roles/users/{user_id}         Rename a sub-user or change its role
    PUT    /api/roles/users/{user_id}/role    Assign (or clear) a user's role
    GET    /api/roles/users/{creator_id}/team Profiles created by a user
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import AuthorizationContext
from app.auth.deps import require_super_admin
from app.database import get_db
from app.schemas.roles import (
    RoleAssignment,
    RoleCreate,
    RoleOut,
    RolePermissionOut,
    RolePermissionsUpdate,
    RoleRename,
    SubUserCreate,
    SubUserUpdate,
    UserProfileOut,
)
from app.services import roles as role_service

router = APIRouter()


@router.get("/", response_model=list[RoleOut])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    return [RoleOut.model_validate(r) for r in await role_service.list_roles(db, ctx)]


@router.post("/", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    return RoleOut.model_validate(await role_service.create_role(db, ctx, body.name))


@router.patch("/{role_id}", response_model=RoleOut)
async def rename_role(
    role_id: str,
    body: RoleRename,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    role = await role_service.rename_role(db, ctx, role_id, body.name)
    return RoleOut.model_validate(role)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    await role_service.delete_role(db, ctx, role_id)


@router.get("/{role_id}/permissions", response_model=list[RolePermissionOut])
async def get_role_permissions(
    role_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    rows = await role_service.get_role_permissions(db, ctx, role_id)
    return [RolePermissionOut.model_validate(r) for r in rows]


@router.put("/{role_id}/permissions", response_model=list[RolePermissionOut])
async def update_role_permissions(
    role_id: str,
    body: RolePermissionsUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    rows = await role_service.upsert_module_permissions(db, ctx, role_id, body.entries)
    return [RolePermissionOut.model_validate(r) for r in rows]


@router.post("/users", response_model=UserProfileOut, status_code=201)
async def create_sub_user(
    body: SubUserCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    profile = await role_service.create_sub_user(
        db, ctx, body.user_id, name=body.name, email=body.email, role_id=body.role_id
    )
    return UserProfileOut.model_validate(profile)


@router.patch("/users/{user_id}", response_model=UserProfileOut)
async def update_sub_user(
    user_id: str,
    body: SubUserUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    profile = await role_service.update_sub_user(
        db, ctx, user_id, name=body.name, role_id=body.role_id
    )
    return UserProfileOut.model_validate(profile)


@router.put("/users/{user_id}/role", response_model=UserProfileOut)
async def assign_user_role(
    user_id: str,
    body: RoleAssignment,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    profile = await role_service.assign_user_role(db, ctx, user_id, body.role_id)
    return UserProfileOut.model_validate(profile)


@router.get("/users/{creator_id}/team", response_model=list[UserProfileOut])
async def list_sub_users(
    creator_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_super_admin),
):
    profiles = await role_service.list_sub_users(db, ctx, creator_id)
    return [UserProfileOut.model_validate(p) for p in profiles]
