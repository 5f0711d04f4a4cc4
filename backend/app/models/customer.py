"""Customer: a converted account.

Scope attribute: `owner_id`. Customers have no separate assignee; the
owner is the user who created (or was handed) the account.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    company: Mapped[str | None] = mapped_column(String(255))
    addresses: Mapped[list] = mapped_column(JSON, default=list)
    language: Mapped[str] = mapped_column(String(50), default="English")
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    total_value: Mapped[float] = mapped_column(Float, default=0)
    notes: Mapped[str | None] = mapped_column(Text)
    tags: Mapped[list] = mapped_column(JSON, default=list)

    owner_id: Mapped[str | None] = mapped_column(String(36), index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, index=True
    )
    last_activity: Mapped[datetime | None] = mapped_column(DateTime)
