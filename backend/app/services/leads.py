"""Lead access, scoped by the caller's `leads` grant.

Communications hang off a lead: reading them needs the lead to be
visible, logging a new one counts as editing the lead.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import AuthorizationContext
from app.auth.permissions import LEADS, Action
from app.database import store_errors
from app.models.lead import Communication, Lead
from app.schemas.lead import LeadFilters
from app.services.scoped import ScopedAccessor
from app.utils.activity import log_activity

logger = logging.getLogger(__name__)


class LeadAccessor(ScopedAccessor[Lead]):
    module = LEADS
    model = Lead
    entity_type = "lead"
    assignment_field = "assigned_to"
    search_fields = ("name", "email", "company")

    def filter_predicates(self, filters):
        predicates = super().filter_predicates(filters)
        if not isinstance(filters, LeadFilters):
            return predicates
        if filters.status:
            predicates.append(Lead.status == filters.status)
        if filters.source:
            predicates.append(Lead.source == filters.source)
        if filters.min_score is not None:
            predicates.append(Lead.score >= filters.min_score)
        if filters.max_score is not None:
            predicates.append(Lead.score <= filters.max_score)
        return predicates

    async def list_communications(
        self, db: AsyncSession, ctx: AuthorizationContext, lead_id: str
    ) -> list[Communication]:
        """Communication history of a visible lead, newest first."""
        await self.get(db, ctx, lead_id)
        with store_errors("list communications"):
            result = await db.execute(
                select(Communication)
                .where(Communication.lead_id == lead_id)
                .order_by(Communication.timestamp.desc())
            )
        return list(result.scalars().all())

    async def add_communication(
        self,
        db: AsyncSession,
        ctx: AuthorizationContext,
        lead_id: str,
        data: dict,
    ) -> Communication:
        ctx.require(self.module, Action.EDIT)
        lead = await self._load_for_write(db, ctx, lead_id, Action.EDIT)

        now = datetime.utcnow()
        communication = Communication(
            lead_id=lead.id, user_id=ctx.user_id, timestamp=now, **data
        )
        lead.last_activity = now
        with store_errors("add communication"):
            db.add(communication)
            await db.flush()
        await log_activity(
            db,
            ctx.user_id,
            action="created",
            entity_type="communication",
            entity_id=communication.id,
            summary=f"Logged {communication.type} for lead {lead.name}",
            details={"lead_id": lead.id},
        )
        return communication


leads = LeadAccessor()
