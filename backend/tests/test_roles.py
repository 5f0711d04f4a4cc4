"""Tests for role administration."""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.permissions import ViewType
from app.middleware.exceptions import (
    AdminValidationError,
    BusinessLogicError,
    PermissionDeniedError,
    ResourceNotFoundError,
)
from app.models.role import Role, RolePermission
from app.models.user_profile import UserProfile
from app.schemas.roles import ModulePermissionEntry
from app.services import roles as role_service
from conftest import SALES_REP_GRANTS


@pytest_asyncio.fixture
async def admin_ctx(super_admin, make_context):
    return await make_context("admin")


@pytest.mark.asyncio
class TestCreateRole:

    async def test_creates_regular_role(self, db_session, admin_ctx):
        role = await role_service.create_role(db_session, admin_ctx, "  Sales Manager  ")
        assert role.name == "Sales Manager"
        assert role.is_super_admin is False

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 101])
    async def test_invalid_names_rejected_before_store(self, admin_ctx, name):
        db = AsyncMock(spec=AsyncSession)
        with pytest.raises(AdminValidationError) as exc_info:
            await role_service.create_role(db, admin_ctx, name)
        assert exc_info.value.field == "name"
        assert db.mock_calls == []

    async def test_duplicate_name_is_case_insensitive(self, db_session, admin_ctx):
        await role_service.create_role(db_session, admin_ctx, "Support")
        with pytest.raises(BusinessLogicError) as exc_info:
            await role_service.create_role(db_session, admin_ctx, "SUPPORT")
        assert exc_info.value.error_code == "DUPLICATE_ROLE"

    async def test_requires_super_admin(self, db_session, sales_rep_world, make_context):
        ctx = await make_context("u1")
        with pytest.raises(PermissionDeniedError):
            await role_service.create_role(db_session, ctx, "Sneaky")

    async def test_list_roles_ordered_by_name(self, db_session, admin_ctx):
        await role_service.create_role(db_session, admin_ctx, "Zeta")
        await role_service.create_role(db_session, admin_ctx, "Alpha")
        names = [r.name for r in await role_service.list_roles(db_session, admin_ctx)]
        assert names == sorted(names)
        assert {"Alpha", "Zeta", "Super Admin"} <= set(names)


@pytest.mark.asyncio
class TestUpsertPermissions:

    async def test_inserts_then_updates_one_row_per_module(self, db_session, admin_ctx):
        role = await role_service.create_role(db_session, admin_ctx, "Rep")

        with patch("app.services.roles.invalidate_all_permissions", new=AsyncMock()) as evict:
            await role_service.upsert_module_permissions(
                db_session, admin_ctx, role.id,
                [ModulePermissionEntry(module="leads", view_type="assigned", can_create=True)],
            )
            rows = await role_service.upsert_module_permissions(
                db_session, admin_ctx, role.id,
                [
                    ModulePermissionEntry(module="leads", view_type="all", can_edit=True),
                    ModulePermissionEntry(module="customers", view_type="assigned"),
                ],
            )

        assert evict.await_count == 2
        assert [r.module for r in rows] == ["customers", "leads"]
        count = (
            await db_session.execute(
                select(func.count()).select_from(RolePermission).where(RolePermission.role_id == role.id)
            )
        ).scalar_one()
        assert count == 2

        stored = {r.module: r for r in await role_service.get_role_permissions(db_session, admin_ctx, role.id)}
        assert stored["leads"].view_type == ViewType.ALL
        assert stored["leads"].can_edit is True
        assert stored["leads"].can_create is False

    async def test_action_flags_dropped_without_view(self, db_session, admin_ctx):
        role = await role_service.create_role(db_session, admin_ctx, "Viewer")
        rows = await role_service.upsert_module_permissions(
            db_session, admin_ctx, role.id,
            [ModulePermissionEntry(module="leads", view_type="none", can_delete=True)],
        )
        assert rows[0].can_delete is False

    async def test_unknown_module_rejected_before_writing(self, db_session, admin_ctx):
        role = await role_service.create_role(db_session, admin_ctx, "Rep")
        with pytest.raises(AdminValidationError):
            await role_service.upsert_module_permissions(
                db_session, admin_ctx, role.id,
                [
                    ModulePermissionEntry(module="leads", view_type="all"),
                    ModulePermissionEntry(module="activities", view_type="all"),
                ],
            )
        assert await role_service.get_role_permissions(db_session, admin_ctx, role.id) == []

    async def test_duplicate_module_rejected(self, db_session, admin_ctx):
        role = await role_service.create_role(db_session, admin_ctx, "Rep")
        with pytest.raises(AdminValidationError):
            await role_service.upsert_module_permissions(
                db_session, admin_ctx, role.id,
                [
                    ModulePermissionEntry(module="leads", view_type="all"),
                    ModulePermissionEntry(module="leads", view_type="none"),
                ],
            )

    async def test_super_admin_role_refused(self, db_session, admin_ctx, super_admin):
        with pytest.raises(BusinessLogicError):
            await role_service.upsert_module_permissions(
                db_session, admin_ctx, super_admin.role_id,
                [ModulePermissionEntry(module="leads", view_type="none")],
            )

    async def test_unknown_role(self, db_session, admin_ctx):
        with pytest.raises(ResourceNotFoundError):
            await role_service.upsert_module_permissions(db_session, admin_ctx, "missing", [])


@pytest.mark.asyncio
class TestRenameAndDelete:

    async def test_rename(self, db_session, admin_ctx):
        role = await role_service.create_role(db_session, admin_ctx, "Rep")
        renamed = await role_service.rename_role(db_session, admin_ctx, role.id, "Account Rep")
        assert renamed.name == "Account Rep"

    async def test_rename_to_taken_name(self, db_session, admin_ctx):
        role = await role_service.create_role(db_session, admin_ctx, "Rep")
        with pytest.raises(BusinessLogicError):
            await role_service.rename_role(db_session, admin_ctx, role.id, "super admin")

    async def test_delete_cascades_permission_rows(self, db_session, admin_ctx, make_role):
        role = await make_role("Temp", SALES_REP_GRANTS)

        await role_service.delete_role(db_session, admin_ctx, role.id)

        assert await db_session.get(Role, role.id) is None
        orphans = (
            await db_session.execute(select(RolePermission).where(RolePermission.role_id == role.id))
        ).scalars().all()
        assert orphans == []
        with pytest.raises(ResourceNotFoundError):
            await role_service.get_role_permissions(db_session, admin_ctx, role.id)

    async def test_delete_blocked_while_assigned(self, db_session, admin_ctx, sales_rep_world):
        with pytest.raises(BusinessLogicError) as exc_info:
            await role_service.delete_role(db_session, admin_ctx, sales_rep_world["role"].id)
        assert exc_info.value.error_code == "ROLE_IN_USE"

    async def test_super_admin_role_cannot_be_deleted(self, db_session, admin_ctx, super_admin):
        with pytest.raises(BusinessLogicError):
            await role_service.delete_role(db_session, admin_ctx, super_admin.role_id)


@pytest.mark.asyncio
class TestUsers:

    async def test_assign_role_evicts_cached_snapshot(self, db_session, admin_ctx, make_role, make_profile):
        role = await make_role("Rep", SALES_REP_GRANTS)
        await make_profile("u9")

        with patch("app.services.roles.invalidate_user_permissions", new=AsyncMock()) as evict:
            profile = await role_service.assign_user_role(db_session, admin_ctx, "u9", role.id)

        assert profile.role_id == role.id
        evict.assert_awaited_once_with("u9")

    async def test_clear_role(self, db_session, admin_ctx, sales_rep_world):
        profile = await role_service.assign_user_role(db_session, admin_ctx, "u1", None)
        assert profile.role_id is None

    async def test_assign_unknown_role_or_user(self, db_session, admin_ctx, make_profile):
        await make_profile("u9")
        with pytest.raises(ResourceNotFoundError):
            await role_service.assign_user_role(db_session, admin_ctx, "u9", "missing")
        with pytest.raises(ResourceNotFoundError):
            await role_service.assign_user_role(db_session, admin_ctx, "nobody", None)

    async def test_list_sub_users(self, db_session, admin_ctx, make_profile):
        await make_profile("t1", created_by_user_id="admin", name="Bea")
        await make_profile("t2", created_by_user_id="admin", name="Al")
        await make_profile("t3", created_by_user_id="someone-else")

        team = await role_service.list_sub_users(db_session, admin_ctx, "admin")

        assert [p.user_id for p in team] == ["t2", "t1"]
        assert all(isinstance(p, UserProfile) for p in team)

    async def test_create_sub_user(self, db_session, admin_ctx, make_role):
        role = await make_role("Rep", SALES_REP_GRANTS)

        with patch("app.services.roles.invalidate_user_permissions", new=AsyncMock()) as evict:
            profile = await role_service.create_sub_user(
                db_session, admin_ctx, "u9", email="dana@example.com", role_id=role.id
            )

        assert profile.name == "dana"
        assert profile.role_id == role.id
        assert profile.created_by_user_id == "admin"
        evict.assert_awaited_once_with("u9")
        team = await role_service.list_sub_users(db_session, admin_ctx, "admin")
        assert [p.user_id for p in team] == ["u9"]

    async def test_create_existing_user_rejected(self, db_session, admin_ctx, make_profile):
        await make_profile("u9")
        with pytest.raises(BusinessLogicError) as exc_info:
            await role_service.create_sub_user(db_session, admin_ctx, "u9", name="Dana")
        assert exc_info.value.error_code == "USER_EXISTS"

    @pytest.mark.parametrize("user_id", ["", "   ", None])
    async def test_create_requires_user_id(self, admin_ctx, user_id):
        db = AsyncMock(spec=AsyncSession)
        with pytest.raises(AdminValidationError) as exc_info:
            await role_service.create_sub_user(db, admin_ctx, user_id, name="Dana")
        assert exc_info.value.field == "user_id"
        assert db.mock_calls == []

    async def test_create_with_unknown_role(self, db_session, admin_ctx):
        with pytest.raises(ResourceNotFoundError):
            await role_service.create_sub_user(db_session, admin_ctx, "u9", role_id="missing")
        assert await db_session.get(UserProfile, "u9") is None

    async def test_user_admin_requires_super_admin(self, db_session, sales_rep_world, make_context):
        ctx = await make_context("u1")
        with pytest.raises(PermissionDeniedError):
            await role_service.create_sub_user(db_session, ctx, "u9", name="Dana")
        with pytest.raises(PermissionDeniedError):
            await role_service.update_sub_user(db_session, ctx, "u2", name="Renamed")

    async def test_update_sub_user(self, db_session, admin_ctx, make_role, make_profile):
        old_role = await make_role("Rep", SALES_REP_GRANTS)
        new_role = await make_role("Manager", {"leads": {"view_type": "all"}})
        await make_profile("u9", old_role, name="Dana")

        with patch("app.services.roles.invalidate_user_permissions", new=AsyncMock()) as evict:
            profile = await role_service.update_sub_user(
                db_session, admin_ctx, "u9", name="  Dana Scully  ", role_id=new_role.id
            )

        assert profile.name == "Dana Scully"
        assert profile.role_id == new_role.id
        evict.assert_awaited_once_with("u9")

    async def test_update_without_changes_keeps_cache(self, db_session, admin_ctx, make_role, make_profile):
        role = await make_role("Rep", SALES_REP_GRANTS)
        await make_profile("u9", role, name="Dana")

        with patch("app.services.roles.invalidate_user_permissions", new=AsyncMock()) as evict:
            profile = await role_service.update_sub_user(
                db_session, admin_ctx, "u9", name="Dana", role_id=role.id
            )

        assert profile.role_id == role.id
        evict.assert_not_awaited()

    async def test_update_rejects_bad_input(self, db_session, admin_ctx, make_profile):
        await make_profile("u9")
        with pytest.raises(AdminValidationError) as exc_info:
            await role_service.update_sub_user(db_session, admin_ctx, "u9", name="   ")
        assert exc_info.value.field == "name"
        with pytest.raises(ResourceNotFoundError):
            await role_service.update_sub_user(db_session, admin_ctx, "u9", role_id="missing")
        with pytest.raises(ResourceNotFoundError):
            await role_service.update_sub_user(db_session, admin_ctx, "nobody", name="Dana")
