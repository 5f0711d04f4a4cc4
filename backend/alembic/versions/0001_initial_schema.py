"""Initial LeadDesk schema: RBAC tables, CRM entities, activity log.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa

VIEW_TYPE = sa.Enum("none", "assigned", "all", name="view_type")


def upgrade() -> None:
    # ── RBAC ─────────────────────────────────────────────────

    op.create_table(
        "roles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "role_id", sa.String(36),
            sa.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("module", sa.String(50), nullable=False),
        sa.Column("view_type", VIEW_TYPE, nullable=False, server_default="none"),
        sa.Column("can_create", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_edit", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_delete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("role_id", "module", name="uq_role_permissions_role_module"),
    )
    op.create_index("ix_role_permissions_role_id", "role_permissions", ["role_id"])

    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255)),
        sa.Column("email", sa.String(255)),
        sa.Column("avatar_url", sa.String(500)),
        sa.Column(
            "role_id", sa.String(36),
            sa.ForeignKey("roles.id", ondelete="RESTRICT"), nullable=True,
        ),
        sa.Column("created_by_user_id", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_user_profiles_email", "user_profiles", ["email"])
    op.create_index("ix_user_profiles_role_id", "user_profiles", ["role_id"])
    op.create_index(
        "ix_user_profiles_created_by_user_id", "user_profiles", ["created_by_user_id"]
    )

    # ── CRM entities ─────────────────────────────────────────

    op.create_table(
        "leads",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("company", sa.String(255)),
        sa.Column("source", sa.String(20), server_default="manual"),
        sa.Column("score", sa.Integer(), server_default="0"),
        sa.Column("status", sa.String(20), server_default="new"),
        sa.Column("location", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("tags", sa.JSON(), server_default="[]"),
        sa.Column("assigned_to", sa.String(36)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("last_activity", sa.DateTime()),
    )
    op.create_index("ix_leads_assigned_to", "leads", ["assigned_to"])
    op.create_index("ix_leads_created_at", "leads", ["created_at"])

    op.create_table(
        "communications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "lead_id", sa.String(36),
            sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("direction", sa.String(10), server_default="outbound"),
        sa.Column("sender", sa.String(255)),
        sa.Column("recipient", sa.String(255)),
        sa.Column("subject", sa.String(255)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), server_default="sent"),
        sa.Column("user_id", sa.String(36)),
        sa.Column("timestamp", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_communications_lead_id", "communications", ["lead_id"])

    op.create_table(
        "opportunities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("lead_id", sa.String(36)),
        sa.Column("customer_id", sa.String(36)),
        sa.Column("value", sa.Float(), server_default="0"),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("stage", sa.String(20), server_default="prospecting"),
        sa.Column("probability", sa.Float(), server_default="0.1"),
        sa.Column("expected_close_date", sa.Date()),
        sa.Column("description", sa.Text()),
        sa.Column("lost_reason", sa.Text()),
        sa.Column("next_action", sa.String(255)),
        sa.Column("tags", sa.JSON(), server_default="[]"),
        sa.Column("assigned_to", sa.String(36)),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("last_activity", sa.DateTime()),
    )
    op.create_index("ix_opportunities_assigned_to", "opportunities", ["assigned_to"])
    op.create_index("ix_opportunities_created_at", "opportunities", ["created_at"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(50)),
        sa.Column("company", sa.String(255)),
        sa.Column("addresses", sa.JSON(), server_default="[]"),
        sa.Column("language", sa.String(50), server_default="English"),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("total_value", sa.Float(), server_default="0"),
        sa.Column("notes", sa.Text()),
        sa.Column("tags", sa.JSON(), server_default="[]"),
        sa.Column("owner_id", sa.String(36)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("last_activity", sa.DateTime()),
    )
    op.create_index("ix_customers_owner_id", "customers", ["owner_id"])
    op.create_index("ix_customers_created_at", "customers", ["created_at"])

    # ── Audit ────────────────────────────────────────────────

    op.create_table(
        "activity_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_log_user_id", "activity_log", ["user_id"])
    op.create_index("ix_activity_log_action", "activity_log", ["action"])
    op.create_index("ix_activity_log_entity_type", "activity_log", ["entity_type"])
    op.create_index("ix_activity_log_created_at", "activity_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_log")
    op.drop_table("customers")
    op.drop_table("opportunities")
    op.drop_table("communications")
    op.drop_table("leads")
    op.drop_table("user_profiles")
    op.drop_table("role_permissions")
    op.drop_table("roles")
    VIEW_TYPE.drop(op.get_bind(), checkfirst=True)
