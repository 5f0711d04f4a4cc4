"""Authorization context: who the current user is and what they may do.

One `AuthorizationContext` per authenticated session (a request, a
WebSocket, a CLI run). It is passed explicitly to whatever needs it and is
never stored in a module-level global.

States:
    UNAUTHENTICATED ──sign_in/restore──▶ LOADING ──resolved/failed──▶ READY
    READY ──sign_in (other user)──▶ LOADING
    any ──sign_out──▶ SIGNED_OUT ──sign_in──▶ LOADING

The permission snapshot is tri-state: NotLoaded, Loaded(permissions) or
Failed(error). Failed behaves as "loaded, everything denied", so a broken
store or a missing profile can never widen access. While NotLoaded every
query answers False and `get_module_permissions` answers None.

Identity, snapshot and generation live together in one frozen `_Session`
swapped by a single assignment, so a reader never pairs one session's
identity with another session's permissions. Every sign-in and sign-out
bumps the generation; a resolution (or data fetch) that started under an
older generation is discarded on arrival.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Union

from app.auth.permissions import (
    META_ACTION_MODULES,
    MetaAction,
    ModulePermission,
    UserPermissions,
    ViewType,
)
from app.middleware.exceptions import (
    LeadDeskException,
    PermissionDeniedError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Awaitable[UserPermissions]]
InvalidationHook = Callable[[str], Awaitable[None]]


class AuthState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    READY = "ready"
    SIGNED_OUT = "signed_out"


class SessionEvent(str, enum.Enum):
    """Lifecycle events emitted by the identity provider."""

    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    TOKEN_REFRESHED = "token_refreshed"
    USER_UPDATED = "user_updated"  # role or profile changed


# ── Snapshot tri-state ──────────────────────────────────────

@dataclass(frozen=True)
class NotLoaded:
    pass


@dataclass(frozen=True)
class Loaded:
    permissions: UserPermissions


@dataclass(frozen=True)
class Failed:
    error: Exception


Snapshot = Union[NotLoaded, Loaded, Failed]


@dataclass(frozen=True)
class _Session:
    state: AuthState = AuthState.UNAUTHENTICATED
    user_id: str | None = None
    snapshot: Snapshot = field(default_factory=NotLoaded)
    generation: int = 0


class AuthorizationContext:
    """Session-scoped holder of identity and resolved permissions."""

    def __init__(self, resolver: Resolver):
        self._resolver = resolver
        self._session = _Session()
        self._generation = 0
        self._refresh_seq = 0
        self._last_error: Exception | None = None
        self._invalidation_hooks: list[InvalidationHook] = []

    # ── Introspection ────────────────────────────────────────

    @property
    def state(self) -> AuthState:
        return self._session.state

    @property
    def user_id(self) -> str | None:
        return self._session.user_id

    @property
    def generation(self) -> int:
        return self._session.generation

    @property
    def permissions_loaded(self) -> bool:
        """Explicit "loaded" flag; do not infer it from the permissions object."""
        return not isinstance(self._session.snapshot, NotLoaded)

    @property
    def last_error(self) -> Exception | None:
        """Most recent resolution failure, kept for display."""
        return self._last_error

    @property
    def permissions(self) -> UserPermissions | None:
        snapshot = self._session.snapshot
        if isinstance(snapshot, Loaded):
            return snapshot.permissions
        if isinstance(snapshot, Failed):
            return UserPermissions.empty()
        return None

    def is_current(self, generation: int) -> bool:
        return generation == self._session.generation

    def add_invalidation_hook(self, hook: InvalidationHook) -> None:
        """Register a coroutine run with the prior user id on sign-out."""
        self._invalidation_hooks.append(hook)

    # ── Transitions ──────────────────────────────────────────

    async def sign_in(self, user_id: str) -> None:
        """Start a session for `user_id` and resolve its permissions.

        Never raises for resolution failures: the context settles into
        READY with everything denied and `last_error` set.
        """
        self._generation += 1
        generation = self._generation
        self._last_error = None
        self._session = _Session(
            state=AuthState.LOADING,
            user_id=user_id,
            snapshot=NotLoaded(),
            generation=generation,
        )
        await self._load(user_id, generation)

    async def restore(self, user_id: str) -> None:
        """Resume a persisted session; same semantics as `sign_in`."""
        await self.sign_in(user_id)

    async def refresh(self) -> None:
        """Re-resolve permissions for the current identity.

        The previous snapshot keeps serving until the new one lands. A
        store outage leaves a good snapshot in place.
        """
        session = self._session
        if session.user_id is None:
            return
        self._refresh_seq += 1
        seq = self._refresh_seq
        generation = session.generation
        try:
            permissions = await self._resolver(session.user_id)
        except StoreUnavailableError as e:
            if self._superseded(generation, seq):
                return
            self._last_error = e
            if not isinstance(self._session.snapshot, Loaded):
                self._session = replace(
                    self._session, state=AuthState.READY, snapshot=Failed(e)
                )
            logger.warning(
                f"Permission refresh failed for {session.user_id}; keeping previous snapshot: {e}"
            )
            return
        except Exception as e:
            if self._superseded(generation, seq):
                return
            self._fail(e)
            return

        if self._superseded(generation, seq):
            logger.debug(f"Discarding superseded permission refresh for {session.user_id}")
            return
        self._last_error = None
        self._session = replace(
            self._session, state=AuthState.READY, snapshot=Loaded(permissions)
        )

    async def sign_out(self) -> None:
        """Clear identity and permissions in one step, then evict caches."""
        prior_user = self._session.user_id
        self._generation += 1
        self._last_error = None
        self._session = _Session(
            state=AuthState.SIGNED_OUT,
            user_id=None,
            snapshot=NotLoaded(),
            generation=self._generation,
        )
        if prior_user is None:
            return
        for hook in self._invalidation_hooks:
            try:
                await hook(prior_user)
            except Exception:
                logger.error(
                    f"Invalidation hook failed after sign-out of {prior_user}",
                    exc_info=True,
                )

    async def handle_session_event(
        self, event: SessionEvent | str, user_id: str | None = None
    ) -> None:
        """Apply an identity-provider event to this context."""
        event = SessionEvent(event)
        if event is SessionEvent.SIGNED_OUT or (
            event is not SessionEvent.USER_UPDATED and user_id is None
        ):
            await self.sign_out()
        elif event is SessionEvent.SIGNED_IN:
            await self.sign_in(user_id)
        elif event is SessionEvent.TOKEN_REFRESHED:
            # Same identity keeps its snapshot; a different one is a re-auth
            if user_id != self.user_id or not self.permissions_loaded:
                await self.sign_in(user_id)
        elif event is SessionEvent.USER_UPDATED:
            await self.refresh()

    async def _load(self, user_id: str, generation: int) -> None:
        try:
            permissions = await self._resolver(user_id)
        except Exception as e:
            if not self.is_current(generation):
                return
            self._fail(e)
            return

        if not self.is_current(generation):
            logger.debug(f"Discarding permissions resolved for stale session of {user_id}")
            return
        self._session = replace(
            self._session, state=AuthState.READY, snapshot=Loaded(permissions)
        )

    def _fail(self, error: Exception) -> None:
        if isinstance(error, LeadDeskException):
            logger.warning(
                f"Permissions unavailable for {self._session.user_id}: {error}"
            )
        else:
            logger.error(
                f"Unexpected error resolving permissions for {self._session.user_id}",
                exc_info=error,
            )
        self._last_error = error
        self._session = replace(
            self._session, state=AuthState.READY, snapshot=Failed(error)
        )

    def _superseded(self, generation: int, seq: int) -> bool:
        return not self.is_current(generation) or seq != self._refresh_seq

    # ── Queries ──────────────────────────────────────────────

    def get_module_permissions(self, module: str) -> ModulePermission | None:
        """Grant for `module`; None only while permissions are not loaded."""
        permissions = self.permissions
        if permissions is None:
            return None
        return permissions.for_module(module)

    def is_super_admin(self) -> bool:
        permissions = self.permissions
        return bool(permissions and permissions.is_super_admin)

    def can(self, module: str, action: str | None = None) -> bool:
        """Whether the user may perform `action` on `module`.

        `can("leads", "delete")` checks a module flag. The meta actions
        are checked on their own: `can("manage_users")`, `can("manage_roles")`.
        """
        if action is None:
            module, action = "", module
        permissions = self.permissions
        if permissions is None:
            return False
        if permissions.is_super_admin:
            return True

        try:
            meta = MetaAction(action)
        except ValueError:
            meta = None
        if meta is not None:
            return permissions.for_module(META_ACTION_MODULES[meta]).any_action

        return permissions.for_module(module).allows(action)

    def can_view(
        self, module: str, view_type_to_match: ViewType | str | None = None
    ) -> bool:
        if view_type_to_match is not None:
            try:
                view_type_to_match = ViewType(view_type_to_match)
            except ValueError:
                # Unknown view types are denied, even to super admins
                return False
        permissions = self.permissions
        if permissions is None:
            return False
        if permissions.is_super_admin:
            return True
        view_type = permissions.for_module(module).view_type
        if view_type == ViewType.NONE:
            return False
        if view_type_to_match is not None:
            return view_type == view_type_to_match
        return True

    def require(self, module: str, action: str) -> None:
        """Raise PermissionDeniedError unless `can(module, action)`."""
        if not self.can(module, action):
            action = getattr(action, "value", action)
            logger.warning(f"Denied {action} on {module} for user {self.user_id}")
            raise PermissionDeniedError(
                f"You do not have permission to {action} {module}",
                module=module,
                action=action,
            )

    def require_super_admin(self) -> None:
        if not self.is_super_admin():
            logger.warning(f"Denied super-admin operation for user {self.user_id}")
            raise PermissionDeniedError("Super admin access required")
