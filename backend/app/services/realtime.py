"""Re-run scoped list queries when the store reports a change.

A change notification (insert/update/delete on an entity table) is only a
trigger. The pushed row is never merged into the held page, because the
row may sit outside the caller's `assigned` scope; instead the same scoped
`list` runs again with the context's current grant.

Ordering:
  - Every refresh takes a sequence number; only the last-started one may
    publish its result (last-started-wins).
  - A refresh that started under an older session generation (the user
    signed out or switched) is dropped on arrival.

Usage:
    refresher = ScopedListRefresher(leads, ctx, async_session, page_size=25)
    await refresher.refresh()
    await refresher.run(change_feed)   # async iterator of ChangeEvent
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.auth.context import AuthorizationContext
from app.auth.permissions import ModulePermission
from app.config import settings
from app.middleware.exceptions import StoreUnavailableError
from app.schemas.common import ScopedFilters
from app.services.scoped import ScopedAccessor

logger = logging.getLogger(__name__)

ResultCallback = Callable[[list, int], Awaitable[None]]


@dataclass(frozen=True)
class ChangeEvent:
    """One notification from the store's change feed."""

    table: str
    event_type: str  # INSERT | UPDATE | DELETE
    record_id: str | None = None
    payload: dict[str, Any] | None = None


class ScopedListRefresher:
    """Keeps one screen's page of a scoped list current."""

    def __init__(
        self,
        accessor: ScopedAccessor,
        context: AuthorizationContext,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        page: int = 1,
        page_size: int | None = None,
        filters: ScopedFilters | None = None,
        on_result: ResultCallback | None = None,
    ):
        self.accessor = accessor
        self.context = context
        self.session_factory = session_factory
        self.page = page
        self.page_size = page_size or settings.default_page_size
        self.filters = filters
        self.on_result = on_result

        self._seq = 0
        self.records: list = []
        self.total = 0
        self.last_error: Exception | None = None

    def watches(self, event: ChangeEvent) -> bool:
        return event.table == self.accessor.model.__tablename__

    async def refresh(self) -> bool:
        """Run the scoped query; returns True if the result was published."""
        self._seq += 1
        seq = self._seq
        generation = self.context.generation
        user_id = self.context.user_id
        permission = (
            self.context.get_module_permissions(self.accessor.module)
            or ModulePermission.denied()
        )

        if user_id is None:
            records, total = [], 0
        else:
            try:
                async with self.session_factory() as db:
                    records, total = await self.accessor.list(
                        db, user_id, self.page, self.page_size, permission, self.filters
                    )
            except StoreUnavailableError as e:
                # Keep the current page; the next notification retries
                if seq == self._seq:
                    self.last_error = e
                logger.warning(f"Refresh of {self.accessor.module} failed: {e}")
                return False

        if seq != self._seq or not self.context.is_current(generation):
            logger.debug(f"Dropping superseded {self.accessor.module} refresh #{seq}")
            return False

        self.records, self.total = records, total
        self.last_error = None
        if self.on_result is not None:
            await self.on_result(records, total)
        return True

    async def go_to_page(self, page: int) -> bool:
        self.page = page
        return await self.refresh()

    async def handle(self, event: ChangeEvent) -> bool:
        if not self.watches(event):
            return False
        logger.debug(
            f"{event.event_type} on {event.table} ({event.record_id}); "
            f"re-running {self.accessor.module} query"
        )
        return await self.refresh()

    async def run(self, events: AsyncIterable[ChangeEvent]) -> None:
        """Consume a change feed until it ends."""
        async for event in events:
            await self.handle(event)
