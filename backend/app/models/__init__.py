"""Aggregate model imports for Alembic auto-detection."""

from app.models.role import Role, RolePermission  # noqa: F401
from app.models.user_profile import UserProfile  # noqa: F401

from app.models.lead import Communication, Lead  # noqa: F401
from app.models.opportunity import Opportunity  # noqa: F401
from app.models.customer import Customer  # noqa: F401

from app.models.activity_log import ActivityLog  # noqa: F401
