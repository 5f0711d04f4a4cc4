"""Helper for recording activity log entries.

Usage:
    await log_activity(
        db, user_id, action="created", entity_type="lead",
        entity_id=lead.id, summary="Created lead Acme Corp",
    )

The row joins the current session and commits with the enclosing
transaction, so a rolled-back mutation leaves no audit row behind.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    user_id: str,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    db.add(
        ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            summary=summary,
            details=details,
        )
    )
