"""Permission-scoped data access shared by every CRM entity.

Each concrete accessor names its module, ORM model and the ONE column that
decides `assigned` visibility. Reads take the resolved ModulePermission as
an explicit argument; writes take the AuthorizationContext and check the
action flag before the store is touched.

Read scoping:
    view none      → ([], 0), no query issued
    view assigned  → WHERE <assignment column> = current user
    view all       → no extra predicate (the store's own rules still apply)
    filters        → ANDed on top; they can only narrow

Write scoping:
    create         → needs can_create; under `assigned` the record must be
                     assigned to the caller (defaulted when omitted)
    update/delete  → need can_edit / can_delete AND the record inside the
                     caller's view; under `assigned` a record cannot be
                     handed to somebody else
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.auth.context import AuthorizationContext
from app.auth.permissions import Action, ModulePermission, ViewType
from app.config import settings
from app.database import Base, store_errors
from app.middleware.exceptions import PermissionDeniedError, ResourceNotFoundError
from app.schemas.common import ScopedFilters
from app.utils.activity import log_activity

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

# Never writable through update payloads
IMMUTABLE_FIELDS = frozenset({"id", "created_at", "created_by"})


def page_bounds(page: int, page_size: int) -> tuple[int, int]:
    """Clamp a 1-based page request; returns (offset, limit)."""
    page = max(page, 1)
    page_size = min(max(page_size, 1), settings.max_page_size)
    return (page - 1) * page_size, page_size


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _json_encodings(value: str) -> set[str]:
    """How `value` may appear inside stored JSON text.

    The ORM serializer escapes non-ASCII (`"caf\\u00e9"`); rows written by
    other clients, or read back from jsonb, carry it raw (`"café"`).
    """
    return {json.dumps(value), json.dumps(value, ensure_ascii=False)}


class ScopedAccessor(Generic[ModelT]):
    module: ClassVar[str]
    model: ClassVar[type]
    entity_type: ClassVar[str]
    assignment_field: ClassVar[str]
    search_fields: ClassVar[tuple[str, ...]] = ("name",)

    # ── Predicates ───────────────────────────────────────────

    @property
    def assignment_column(self):
        return getattr(self.model, self.assignment_field)

    def scope_predicate(
        self, current_user_id: str, permission: ModulePermission
    ) -> ColumnElement | None:
        """Predicate implied by the view scope (None = unrestricted)."""
        if permission.view_type == ViewType.ASSIGNED:
            return self.assignment_column == current_user_id
        return None

    def filter_predicates(self, filters: ScopedFilters | None) -> list[ColumnElement]:
        """Common filters; subclasses extend with entity-specific ones."""
        if filters is None:
            return []
        predicates: list[ColumnElement] = []

        if filters.search:
            pattern = f"%{_escape_like(filters.search.strip())}%"
            predicates.append(
                or_(
                    *(
                        getattr(self.model, f).ilike(pattern, escape="\\")
                        for f in self.search_fields
                    )
                )
            )
        if filters.tags:
            # Any-of match on the JSON tag list, portable across backends
            tags_text = cast(self.model.tags, String)
            predicates.append(
                or_(
                    *(
                        tags_text.like(f"%{_escape_like(encoded)}%", escape="\\")
                        for tag in filters.tags
                        for encoded in _json_encodings(tag)
                    )
                )
            )
        if filters.created_after:
            predicates.append(self.model.created_at >= filters.created_after)
        if filters.created_before:
            predicates.append(self.model.created_at <= filters.created_before)
        return predicates

    # ── Reads ────────────────────────────────────────────────

    async def list(
        self,
        db: AsyncSession,
        current_user_id: str,
        page: int,
        page_size: int,
        module_permission: ModulePermission,
        filters: ScopedFilters | None = None,
    ) -> tuple[list[ModelT], int]:
        """One page of records visible to the caller, plus the total count."""
        if module_permission.view_type == ViewType.NONE:
            return [], 0

        conditions = self.filter_predicates(filters)
        scope = self.scope_predicate(current_user_id, module_permission)
        if scope is not None:
            conditions.insert(0, scope)

        offset, limit = page_bounds(page, page_size)
        count_query = select(func.count()).select_from(self.model).where(*conditions)
        page_query = (
            select(self.model)
            .where(*conditions)
            .order_by(self.model.created_at.desc(), self.model.id)
            .offset(offset)
            .limit(limit)
        )

        with store_errors(f"list {self.module}"):
            total = (await db.execute(count_query)).scalar_one()
            records = (await db.execute(page_query)).scalars().all()
        return list(records), total

    async def get(self, db: AsyncSession, ctx: AuthorizationContext, record_id: str) -> ModelT:
        """A single record, or ResourceNotFoundError when outside the caller's view."""
        permission = ctx.get_module_permissions(self.module) or ModulePermission.denied()
        if permission.view_type == ViewType.NONE:
            raise ResourceNotFoundError(self.entity_type, record_id)

        query = select(self.model).where(self.model.id == record_id)
        scope = self.scope_predicate(ctx.user_id, permission)
        if scope is not None:
            query = query.where(scope)
        with store_errors(f"load {self.entity_type}"):
            record = (await db.execute(query)).scalar_one_or_none()
        if record is None:
            raise ResourceNotFoundError(self.entity_type, record_id)
        return record

    # ── Writes ───────────────────────────────────────────────

    def creation_defaults(self, ctx: AuthorizationContext) -> dict[str, Any]:
        now = datetime.utcnow()
        defaults = {"created_at": now, "last_activity": now}
        if hasattr(self.model, "created_by"):
            defaults["created_by"] = ctx.user_id
        return defaults

    def _check_assignment(
        self, ctx: AuthorizationContext, permission: ModulePermission, assignee: str | None
    ) -> None:
        if permission.view_type == ViewType.ASSIGNED and assignee != ctx.user_id:
            raise PermissionDeniedError(
                f"You can only assign {self.module} to yourself",
                module=self.module,
                action="assign",
            )

    async def _load_for_write(
        self, db: AsyncSession, ctx: AuthorizationContext, record_id: str, action: Action
    ) -> ModelT:
        permission = ctx.get_module_permissions(self.module) or ModulePermission.denied()
        with store_errors(f"load {self.entity_type}"):
            record = await db.get(self.model, record_id)
        if record is None:
            raise ResourceNotFoundError(self.entity_type, record_id)
        if (
            permission.view_type == ViewType.ASSIGNED
            and getattr(record, self.assignment_field) != ctx.user_id
        ):
            logger.warning(
                f"Denied {action.value} on {self.entity_type} {record_id} "
                f"for {ctx.user_id}: record is assigned to someone else"
            )
            raise PermissionDeniedError(
                f"This {self.entity_type} is not assigned to you",
                module=self.module,
                action=action.value,
            )
        return record

    async def create(
        self, db: AsyncSession, ctx: AuthorizationContext, data: dict[str, Any]
    ) -> ModelT:
        ctx.require(self.module, Action.CREATE)
        permission = ctx.get_module_permissions(self.module)

        values = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
        if values.get(self.assignment_field) is None:
            values[self.assignment_field] = ctx.user_id
        self._check_assignment(ctx, permission, values[self.assignment_field])
        values.update(self.creation_defaults(ctx))

        record = self.model(**values)
        with store_errors(f"create {self.entity_type}"):
            db.add(record)
            await db.flush()
        await log_activity(
            db,
            ctx.user_id,
            action="created",
            entity_type=self.entity_type,
            entity_id=record.id,
            summary=f"Created {self.entity_type} {getattr(record, 'name', record.id)}",
        )
        return record

    async def update(
        self,
        db: AsyncSession,
        ctx: AuthorizationContext,
        record_id: str,
        data: dict[str, Any],
    ) -> ModelT:
        ctx.require(self.module, Action.EDIT)
        permission = ctx.get_module_permissions(self.module)
        record = await self._load_for_write(db, ctx, record_id, Action.EDIT)

        values = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
        if self.assignment_field in values:
            self._check_assignment(ctx, permission, values[self.assignment_field])

        for key, value in values.items():
            setattr(record, key, value)
        record.last_activity = datetime.utcnow()
        with store_errors(f"update {self.entity_type}"):
            await db.flush()
        await log_activity(
            db,
            ctx.user_id,
            action="updated",
            entity_type=self.entity_type,
            entity_id=record.id,
            details={"fields": sorted(values)},
        )
        return record

    async def delete(
        self, db: AsyncSession, ctx: AuthorizationContext, record_id: str
    ) -> None:
        ctx.require(self.module, Action.DELETE)
        record = await self._load_for_write(db, ctx, record_id, Action.DELETE)
        with store_errors(f"delete {self.entity_type}"):
            await db.delete(record)
            await db.flush()
        await log_activity(
            db,
            ctx.user_id,
            action="deleted",
            entity_type=self.entity_type,
            entity_id=record_id,
        )
