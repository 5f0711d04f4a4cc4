from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.models.role import Role


class UserProfile(Base):
    """Directory record for an identity issued by the auth provider."""

    __tablename__ = "user_profiles"

    # Same id as the identity provider's user
    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500))

    # Nullable: a role-less profile resolves to no permissions.
    # RESTRICT: a role cannot be deleted while profiles still hold it.
    role_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("roles.id", ondelete="RESTRICT"), index=True
    )

    # Sub-user hierarchy: who created this account
    created_by_user_id: Mapped[str | None] = mapped_column(String(36), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    role: Mapped[Role | None] = relationship()
