"""Management CLI for roles and the permission cache.

Usage:
    python -m app.cli seed-roles                       # Create the Super Admin role
    python -m app.cli list-roles                       # Show roles and their holders
    python -m app.cli create-user <user_id> <name> [role]  # Create a profile (e.g. the first admin)
    python -m app.cli assign-role <user_id> <role>     # Point a profile at a role
    python -m app.cli clear-cache                      # Evict cached permission snapshots
"""

import asyncio
import sys

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from app.auth.resolver import invalidate_all_permissions, invalidate_user_permissions
from app.config import settings
from app.models.role import Role
from app.models.user_profile import UserProfile

SUPER_ADMIN_ROLE = "Super Admin"


def _session() -> Session:
    return Session(create_engine(settings.database_url_sync))


def seed_roles():
    """Create the super-admin role if no role by that name exists."""
    with _session() as db:
        existing = db.execute(
            select(Role).where(func.lower(Role.name) == SUPER_ADMIN_ROLE.lower())
        ).scalar_one_or_none()
        if existing:
            print(f"  {SUPER_ADMIN_ROLE} already exists ({existing.id})")
            return
        role = Role(name=SUPER_ADMIN_ROLE, is_super_admin=True)
        db.add(role)
        db.commit()
        print(f"  Created {SUPER_ADMIN_ROLE} ({role.id})")


def list_roles():
    with _session() as db:
        rows = db.execute(
            select(Role, func.count(UserProfile.user_id))
            .outerjoin(UserProfile, UserProfile.role_id == Role.id)
            .group_by(Role.id)
            .order_by(Role.name)
        ).all()
    for role, holders in rows:
        flag = " [super admin]" if role.is_super_admin else ""
        print(f"  {role.name}{flag}: {holders} user(s)")
    print(f"\n{len(rows)} role(s)")


def _find_role(db: Session, role_name: str) -> Role:
    role = db.execute(
        select(Role).where(func.lower(Role.name) == role_name.lower())
    ).scalar_one_or_none()
    if role is None:
        print(f"  No role named '{role_name}'")
        sys.exit(1)
    return role


def create_user(user_id: str, name: str, role_name: str | None = None):
    with _session() as db:
        if db.get(UserProfile, user_id) is not None:
            print(f"  {user_id} already has a profile")
            sys.exit(1)
        role = _find_role(db, role_name) if role_name else None
        db.add(UserProfile(user_id=user_id, name=name, role_id=role.id if role else None))
        label = role.name if role else "no role"
        db.commit()
    asyncio.run(invalidate_user_permissions(user_id))
    print(f"  Created {user_id} ({label})")


def assign_role(user_id: str, role_name: str):
    with _session() as db:
        profile = db.get(UserProfile, user_id)
        if profile is None:
            print(f"  No profile for user {user_id}")
            sys.exit(1)
        role = _find_role(db, role_name)
        profile.role_id = role.id
        name = role.name
        db.commit()
    asyncio.run(invalidate_user_permissions(user_id))
    print(f"  {user_id} → {name}")


def clear_cache():
    asyncio.run(invalidate_all_permissions())
    print("  Permission cache cleared")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "seed-roles":
        seed_roles()
    elif cmd == "list-roles":
        list_roles()
    elif cmd == "create-user" and len(sys.argv) in (4, 5):
        create_user(*sys.argv[2:])
    elif cmd == "assign-role" and len(sys.argv) == 4:
        assign_role(sys.argv[2], sys.argv[3])
    elif cmd == "clear-cache":
        clear_cache()
    else:
        print("Usage: python -m app.cli [seed-roles|list-roles|create-user <user_id> <name> [role]|assign-role <user_id> <role>|clear-cache]")
