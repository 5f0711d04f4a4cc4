"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user_id     → decode the Bearer JWT, return its subject
  get_authorization       → READY AuthorizationContext for this request
  require_super_admin     → restrict to super-admin roles
  module_permission(mod)  → the resolved ModulePermission for a module
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import AuthorizationContext
from app.auth.jwt import decode_token
from app.auth.permissions import ModulePermission
from app.auth.resolver import cached_resolve_permissions, invalidate_user_permissions
from app.database import get_db
from app.middleware.exceptions import StoreUnavailableError

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=True)


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


async def get_authorization(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> AuthorizationContext:
    """Build the request's authorization context.

    A missing profile is non-fatal: the context is READY with everything
    denied and `last_error` set. A store outage aborts the request (503)
    rather than serving a fail-closed answer that looks like "no data".
    """
    ctx = AuthorizationContext(
        resolver=lambda uid: cached_resolve_permissions(db, uid)
    )
    ctx.add_invalidation_hook(invalidate_user_permissions)
    await ctx.sign_in(user_id)
    if isinstance(ctx.last_error, StoreUnavailableError):
        raise ctx.last_error
    return ctx


async def require_super_admin(
    ctx: AuthorizationContext = Depends(get_authorization),
) -> AuthorizationContext:
    ctx.require_super_admin()
    return ctx


def module_permission(module: str):
    """Dependency factory: the caller's resolved grant for `module`.

    Usage:
        @router.get("/")
        async def list_leads(perm = Depends(module_permission("leads"))): ...
    """
    async def _get(
        ctx: AuthorizationContext = Depends(get_authorization),
    ) -> ModulePermission:
        # READY here, so this is always concrete
        return ctx.get_module_permissions(module) or ModulePermission.denied()

    return _get
