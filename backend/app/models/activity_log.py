"""ActivityLog: audit trail of CRM mutations and role administration.

Rows are appended in the same transaction as the change they describe.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_log"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # created | updated | deleted | role_created | role_renamed |
    # role_deleted | permissions_updated | role_assigned
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    # lead | opportunity | customer | communication | role | user
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(36))

    summary: Mapped[str | None] = mapped_column(Text)
    details: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
