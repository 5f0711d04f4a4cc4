"""Module permission model for LeadDesk RBAC.

Design:
  - A role grants, per named module, a view scope (`none`, `assigned`,
    `all`) plus three action flags (create / edit / delete).
  - Rows are stored one per (role, module); anything not stored is denied.
  - Super-admin roles store nothing: their authority is synthesized as a
    full grant on every known module.
  - `UserPermissions` is the resolved, immutable snapshot for one user. It
    is always replaced wholesale, never mutated.

Modules:  leads, customers, opportunities, settings_users, settings_roles
Actions:  create, edit, delete  (+ meta: manage_users, manage_roles)
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, model_validator


class ViewType(str, enum.Enum):
    NONE = "none"
    ASSIGNED = "assigned"
    ALL = "all"


class Action(str, enum.Enum):
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class MetaAction(str, enum.Enum):
    MANAGE_USERS = "manage_users"
    MANAGE_ROLES = "manage_roles"


# ── Known modules ───────────────────────────────────────────

LEADS = "leads"
CUSTOMERS = "customers"
OPPORTUNITIES = "opportunities"
SETTINGS_USERS = "settings_users"
SETTINGS_ROLES = "settings_roles"

KNOWN_MODULES: tuple[str, ...] = (
    LEADS,
    CUSTOMERS,
    OPPORTUNITIES,
    SETTINGS_USERS,
    SETTINGS_ROLES,
)

# Meta action → administrative module it is derived from
META_ACTION_MODULES: dict[MetaAction, str] = {
    MetaAction.MANAGE_USERS: SETTINGS_USERS,
    MetaAction.MANAGE_ROLES: SETTINGS_ROLES,
}


# ── Snapshot types ──────────────────────────────────────────

class ModulePermission(BaseModel):
    """Grant for a single module."""

    view_type: ViewType = ViewType.NONE
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def _no_actions_without_view(cls, data):
        # Action flags carry no meaning while the module is invisible.
        if isinstance(data, dict) and data.get("view_type", ViewType.NONE) == ViewType.NONE:
            data = {
                **data,
                "can_create": False,
                "can_edit": False,
                "can_delete": False,
            }
        return data

    @classmethod
    def denied(cls) -> "ModulePermission":
        return cls()

    @classmethod
    def full(cls) -> "ModulePermission":
        return cls(
            view_type=ViewType.ALL,
            can_create=True,
            can_edit=True,
            can_delete=True,
        )

    def allows(self, action: Action | str) -> bool:
        """Return the flag for `action`; unknown actions are denied."""
        try:
            action = Action(action)
        except ValueError:
            return False
        if action is Action.CREATE:
            return self.can_create
        if action is Action.EDIT:
            return self.can_edit
        return self.can_delete

    @property
    def any_action(self) -> bool:
        return self.can_create or self.can_edit or self.can_delete


class UserPermissions(BaseModel):
    """Resolved permissions for one user."""

    is_super_admin: bool = False
    modules: dict[str, ModulePermission] = {}

    model_config = {"frozen": True}

    @classmethod
    def empty(cls) -> "UserPermissions":
        return cls(is_super_admin=False, modules={})

    @classmethod
    def super_admin(cls) -> "UserPermissions":
        return cls(
            is_super_admin=True,
            modules={m: ModulePermission.full() for m in KNOWN_MODULES},
        )

    def for_module(self, module: str) -> ModulePermission:
        """Concrete grant for `module`, falling back to the denied default."""
        if self.is_super_admin:
            return ModulePermission.full()
        return self.modules.get(module) or ModulePermission.denied()


def is_known_module(module: str) -> bool:
    return module in KNOWN_MODULES
