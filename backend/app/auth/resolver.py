"""Permission resolution: user id → UserPermissions snapshot.

Flow:
  1. Load the user's profile together with its role.
  2. No profile          → ProfileNotFoundError
     No role             → empty permissions (everything denied)
     Super-admin role    → full grant on every known module, without
                           reading role_permissions at all
     Otherwise           → the role's stored rows, indexed by module;
                           modules without a row fall back to denied

The resolver is a pure read with no caching of its own. The Redis-backed
`cached_resolve_permissions` is the variant request handlers use, and the
invalidate_* helpers retire it once a role or assignment change commits.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.auth.permissions import ModulePermission, UserPermissions
from app.config import settings
from app.database import store_errors
from app.middleware.exceptions import ProfileNotFoundError
from app.models.role import RolePermission
from app.models.user_profile import UserProfile
from app.utils.cache import bump_version, cached, get_versions, invalidate_cache

logger = logging.getLogger(__name__)


# Version counters live outside the "perms:" namespace so evicting
# snapshots never resets them.
PERMISSIONS_VERSION_KEY = "perms-version"


def user_version_key(user_id: str) -> str:
    return f"{PERMISSIONS_VERSION_KEY}:{user_id}"


async def permissions_cache_key(db: AsyncSession, user_id: str) -> str:
    """`perms:<global version>.<user version>:<user_id>`.

    The versions are read before the database is, so a snapshot resolved
    from pre-commit rows is stored under a key that the post-commit bump
    has already retired.
    """
    global_version, user_version = await get_versions(
        PERMISSIONS_VERSION_KEY, user_version_key(user_id)
    )
    return f"perms:{global_version}.{user_version}:{user_id}"


async def resolve_permissions(db: AsyncSession, user_id: str) -> UserPermissions:
    """Resolve the effective permissions for `user_id`.

    Raises:
        ProfileNotFoundError: no profile exists for the user.
        StoreUnavailableError: the store could not be queried.
    """
    with store_errors("load permissions"):
        result = await db.execute(
            select(UserProfile)
            .options(joinedload(UserProfile.role))
            .where(UserProfile.user_id == user_id)
        )
        profile = result.scalar_one_or_none()
    if profile is None:
        raise ProfileNotFoundError(user_id)

    role = profile.role
    if role is None:
        logger.info(f"User {user_id} has no role assigned")
        return UserPermissions.empty()

    if role.is_super_admin:
        return UserPermissions.super_admin()

    with store_errors("load permissions"):
        rows = await db.execute(
            select(RolePermission)
            .where(RolePermission.role_id == role.id)
            .order_by(RolePermission.module)
        )
    modules = {
        row.module: ModulePermission(
            view_type=row.view_type,
            can_create=bool(row.can_create),
            can_edit=bool(row.can_edit),
            can_delete=bool(row.can_delete),
        )
        for row in rows.scalars().all()
    }
    return UserPermissions(is_super_admin=False, modules=modules)


@cached(
    ttl=settings.permissions_cache_ttl,
    key_builder=permissions_cache_key,
    model=UserPermissions,
)
async def cached_resolve_permissions(db: AsyncSession, user_id: str) -> UserPermissions:
    """`resolve_permissions` behind the Redis cache (see `permissions_cache_key`)."""
    return await resolve_permissions(db, user_id)


async def invalidate_user_permissions(user_id: str) -> None:
    """Retire `user_id`'s cached snapshot. Call only after the change commits."""
    await bump_version(user_version_key(user_id))
    await invalidate_cache(f"perms:*:{user_id}")


async def invalidate_all_permissions() -> None:
    """Retire every cached snapshot (a role's grants changed)."""
    await bump_version(PERMISSIONS_VERSION_KEY)
    await invalidate_cache("perms:*")
