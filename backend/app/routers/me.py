"""Current-user router.

Endpoints:
    GET  /api/me/permissions    Resolved permission snapshot
    POST /api/me/logout         Sign out: evict the cached snapshot
"""

from fastapi import APIRouter, Depends

from app.auth.context import AuthorizationContext
from app.auth.deps import get_authorization
from app.auth.permissions import KNOWN_MODULES, MetaAction
from app.schemas.roles import PermissionsOut

router = APIRouter()


@router.get("/permissions", response_model=PermissionsOut)
async def my_permissions(ctx: AuthorizationContext = Depends(get_authorization)):
    """Snapshot for gating screens.

    A user without a profile gets `loaded: true`, every module denied and
    `error` set; front ends show "permissions unavailable" rather than
    an empty workspace.
    """
    return PermissionsOut(
        user_id=ctx.user_id,
        loaded=ctx.permissions_loaded,
        is_super_admin=ctx.is_super_admin(),
        modules={m: ctx.get_module_permissions(m) for m in KNOWN_MODULES},
        can_manage_users=ctx.can(MetaAction.MANAGE_USERS),
        can_manage_roles=ctx.can(MetaAction.MANAGE_ROLES),
        error=str(ctx.last_error) if ctx.last_error else None,
    )


@router.post("/logout", status_code=204)
async def logout(ctx: AuthorizationContext = Depends(get_authorization)):
    await ctx.sign_out()
