"""Role administration: roles, their permission matrix, and user profiles.

Every operation requires a super-admin context. Input is validated before
the first store call, so a rejected request writes nothing.

Changes that alter someone's effective permissions commit their own
transaction and only then retire the cached snapshots.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import AuthorizationContext
from app.auth.permissions import KNOWN_MODULES, ModulePermission, is_known_module
from app.auth.resolver import invalidate_all_permissions, invalidate_user_permissions
from app.database import store_errors
from app.middleware.exceptions import (
    AdminValidationError,
    BusinessLogicError,
    ResourceNotFoundError,
)
from app.models.role import Role, RolePermission
from app.models.user_profile import UserProfile
from app.schemas.roles import ModulePermissionEntry
from app.utils.activity import log_activity

logger = logging.getLogger(__name__)

ROLE_NAME_MAX_LENGTH = 100
PROFILE_NAME_MAX_LENGTH = 255


# ── Validation ──────────────────────────────────────────────

def validate_role_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise AdminValidationError("Role name is required", field="name")
    if len(name) > ROLE_NAME_MAX_LENGTH:
        raise AdminValidationError(
            f"Role name must be at most {ROLE_NAME_MAX_LENGTH} characters",
            field="name",
        )
    return name


def validate_entries(entries: Iterable[ModulePermissionEntry]) -> list[ModulePermissionEntry]:
    """Reject unknown or repeated modules; returns the entries as a list."""
    entries = list(entries)
    seen: set[str] = set()
    for entry in entries:
        if not is_known_module(entry.module):
            raise AdminValidationError(
                f"Unknown module '{entry.module}'. Must be one of: {', '.join(KNOWN_MODULES)}",
                field="module",
            )
        if entry.module in seen:
            raise AdminValidationError(
                f"Module '{entry.module}' listed more than once", field="module"
            )
        seen.add(entry.module)
    return entries


# ── Helpers ─────────────────────────────────────────────────

async def _get_role(db: AsyncSession, role_id: str) -> Role:
    with store_errors("load role"):
        role = await db.get(Role, role_id)
    if role is None:
        raise ResourceNotFoundError("Role", role_id)
    return role


async def _commit(db: AsyncSession, operation: str) -> None:
    with store_errors(operation):
        await db.commit()


async def _get_profile(db: AsyncSession, user_id: str) -> UserProfile:
    with store_errors("load user profile"):
        profile = await db.get(UserProfile, user_id)
    if profile is None:
        raise ResourceNotFoundError("User profile", user_id)
    return profile


async def _ensure_name_free(db: AsyncSession, name: str, exclude_id: str | None = None) -> None:
    query = select(Role.id).where(func.lower(Role.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Role.id != exclude_id)
    with store_errors("check role name"):
        taken = (await db.execute(query)).first()
    if taken is not None:
        raise BusinessLogicError(
            f"A role named '{name}' already exists", error_code="DUPLICATE_ROLE"
        )


# ── Roles ───────────────────────────────────────────────────

async def create_role(db: AsyncSession, ctx: AuthorizationContext, name: str) -> Role:
    """Create a regular (never super-admin) role."""
    ctx.require_super_admin()
    name = validate_role_name(name)
    await _ensure_name_free(db, name)

    role = Role(name=name, is_super_admin=False)
    with store_errors("create role"):
        db.add(role)
        await db.flush()
    await log_activity(
        db, ctx.user_id,
        action="role_created", entity_type="role", entity_id=role.id,
        summary=f"Created role {name}",
    )
    logger.info(f"Role '{name}' created by {ctx.user_id}")
    return role


async def list_roles(db: AsyncSession, ctx: AuthorizationContext) -> list[Role]:
    ctx.require_super_admin()
    with store_errors("list roles"):
        result = await db.execute(select(Role).order_by(Role.name))
    return list(result.scalars().all())


async def rename_role(
    db: AsyncSession, ctx: AuthorizationContext, role_id: str, name: str
) -> Role:
    ctx.require_super_admin()
    name = validate_role_name(name)
    role = await _get_role(db, role_id)
    if role.name == name:
        return role
    await _ensure_name_free(db, name, exclude_id=role.id)

    previous = role.name
    role.name = name
    with store_errors("rename role"):
        await db.flush()
    await log_activity(
        db, ctx.user_id,
        action="role_renamed", entity_type="role", entity_id=role.id,
        details={"from": previous, "to": name},
    )
    return role


async def delete_role(db: AsyncSession, ctx: AuthorizationContext, role_id: str) -> None:
    """Delete a role and its grants; refused while any profile holds it."""
    ctx.require_super_admin()
    role = await _get_role(db, role_id)
    if role.is_super_admin:
        raise BusinessLogicError(
            "Super admin roles cannot be deleted", error_code="SUPER_ADMIN_ROLE"
        )

    with store_errors("delete role"):
        holders = (
            await db.execute(
                select(func.count()).select_from(UserProfile).where(UserProfile.role_id == role.id)
            )
        ).scalar_one()
        if holders:
            raise BusinessLogicError(
                f"Role '{role.name}' is assigned to {holders} user(s)",
                error_code="ROLE_IN_USE",
            )
        await db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
        await db.delete(role)
        await db.flush()

    await log_activity(
        db, ctx.user_id,
        action="role_deleted", entity_type="role", entity_id=role_id,
        summary=f"Deleted role {role.name}",
    )
    logger.info(f"Role '{role.name}' deleted by {ctx.user_id}")


# ── Permission matrix ───────────────────────────────────────

async def get_role_permissions(
    db: AsyncSession, ctx: AuthorizationContext, role_id: str
) -> list[RolePermission]:
    """Stored grants for a role (empty for super-admin roles)."""
    ctx.require_super_admin()
    await _get_role(db, role_id)
    with store_errors("load role permissions"):
        result = await db.execute(
            select(RolePermission)
            .where(RolePermission.role_id == role_id)
            .order_by(RolePermission.module)
        )
    return list(result.scalars().all())


async def upsert_module_permissions(
    db: AsyncSession,
    ctx: AuthorizationContext,
    role_id: str,
    entries: Iterable[ModulePermissionEntry],
) -> list[RolePermission]:
    """Insert or update one row per (role, module) in a single transaction.

    Modules not named in `entries` keep their stored rows.
    """
    ctx.require_super_admin()
    entries = validate_entries(entries)
    role = await _get_role(db, role_id)
    if role.is_super_admin:
        raise BusinessLogicError(
            "Super admin permissions are implicit and cannot be edited",
            error_code="SUPER_ADMIN_ROLE",
        )

    with store_errors("update role permissions"):
        existing = {
            row.module: row
            for row in (
                await db.execute(
                    select(RolePermission).where(RolePermission.role_id == role.id)
                )
            ).scalars().all()
        }
        for entry in entries:
            grant = ModulePermission(
                view_type=entry.view_type,
                can_create=entry.can_create,
                can_edit=entry.can_edit,
                can_delete=entry.can_delete,
            )
            row = existing.get(entry.module)
            if row is None:
                row = RolePermission(role_id=role.id, module=entry.module)
                db.add(row)
                existing[entry.module] = row
            row.view_type = grant.view_type
            row.can_create = grant.can_create
            row.can_edit = grant.can_edit
            row.can_delete = grant.can_delete
        await db.flush()

    await log_activity(
        db, ctx.user_id,
        action="permissions_updated", entity_type="role", entity_id=role.id,
        details={"modules": [e.module for e in entries]},
    )
    await _commit(db, "update role permissions")
    await invalidate_all_permissions()
    return sorted(existing.values(), key=lambda r: r.module)


# ── Users ───────────────────────────────────────────────────

def validate_profile_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise AdminValidationError("Name cannot be blank", field="name")
    if len(name) > PROFILE_NAME_MAX_LENGTH:
        raise AdminValidationError(
            f"Name must be at most {PROFILE_NAME_MAX_LENGTH} characters", field="name"
        )
    return name


async def create_sub_user(
    db: AsyncSession,
    ctx: AuthorizationContext,
    user_id: str,
    name: str | None = None,
    email: str | None = None,
    role_id: str | None = None,
) -> UserProfile:
    """Create the profile for an identity the provider has already issued.

    The caller is recorded as its creator. Without a name, the local part
    of the email is used.
    """
    ctx.require_super_admin()
    user_id = (user_id or "").strip()
    if not user_id:
        raise AdminValidationError("User id is required", field="user_id")
    if name is None and email:
        name = email.split("@")[0]
    name = validate_profile_name(name) if name is not None else None

    if role_id is not None:
        await _get_role(db, role_id)
    with store_errors("load user profile"):
        existing = await db.get(UserProfile, user_id)
    if existing is not None:
        raise BusinessLogicError(
            f"User {user_id} already has a profile", error_code="USER_EXISTS"
        )

    profile = UserProfile(
        user_id=user_id,
        name=name,
        email=email,
        role_id=role_id,
        created_by_user_id=ctx.user_id,
    )
    with store_errors("create user profile"):
        db.add(profile)
        await db.flush()
    await log_activity(
        db, ctx.user_id,
        action="user_created", entity_type="user", entity_id=user_id,
        summary=f"Created user {name or user_id}",
        details={"role_id": role_id},
    )
    await _commit(db, "create user profile")
    await invalidate_user_permissions(user_id)
    logger.info(f"User {user_id} created by {ctx.user_id}")
    return profile


async def update_sub_user(
    db: AsyncSession,
    ctx: AuthorizationContext,
    user_id: str,
    name: str | None = None,
    role_id: str | None = None,
) -> UserProfile:
    """Rename a profile and/or move it to another role.

    Omitted fields are left alone; clearing a role goes through
    `assign_user_role(..., None)`.
    """
    ctx.require_super_admin()
    if name is not None:
        name = validate_profile_name(name)
    profile = await _get_profile(db, user_id)
    if role_id is not None:
        await _get_role(db, role_id)

    changes = {}
    if name is not None and name != profile.name:
        changes["name"] = name
    if role_id is not None and role_id != profile.role_id:
        changes["role_id"] = role_id
    if not changes:
        return profile

    for field, value in changes.items():
        setattr(profile, field, value)
    with store_errors("update user profile"):
        await db.flush()
    await log_activity(
        db, ctx.user_id,
        action="user_updated", entity_type="user", entity_id=user_id,
        details=changes,
    )
    await _commit(db, "update user profile")
    await invalidate_user_permissions(user_id)
    return profile


async def assign_user_role(
    db: AsyncSession,
    ctx: AuthorizationContext,
    user_id: str,
    role_id: str | None,
) -> UserProfile:
    """Point a profile at a role (or at none); evicts that user's snapshot."""
    ctx.require_super_admin()
    profile = await _get_profile(db, user_id)
    if role_id is not None:
        await _get_role(db, role_id)

    profile.role_id = role_id
    with store_errors("assign role"):
        await db.flush()
    await log_activity(
        db, ctx.user_id,
        action="role_assigned", entity_type="user", entity_id=user_id,
        details={"role_id": role_id},
    )
    await _commit(db, "assign role")
    await invalidate_user_permissions(user_id)
    return profile


async def list_sub_users(
    db: AsyncSession, ctx: AuthorizationContext, creator_id: str
) -> list[UserProfile]:
    """Profiles created by `creator_id` (its team)."""
    ctx.require_super_admin()
    with store_errors("list sub-users"):
        result = await db.execute(
            select(UserProfile)
            .where(UserProfile.created_by_user_id == creator_id)
            .order_by(UserProfile.name)
        )
    return list(result.scalars().all())
