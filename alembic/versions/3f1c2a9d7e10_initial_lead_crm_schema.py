"""initial lead crm schema

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-18 09:12:41.508233

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="agent"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "leads",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("external_lead_id", sa.String()),
        sa.Column("client_name", sa.String(), nullable=False),
        sa.Column("contact_number", sa.String(), nullable=False),
        sa.Column("normalized_phone", sa.String()),
        sa.Column("email", sa.String()),
        sa.Column("source", sa.String(), nullable=False, server_default="Manual"),
        sa.Column("interested_areas", sa.JSON(), nullable=False),
        sa.Column("interested_projects", sa.JSON(), nullable=False),
        sa.Column("ownership", sa.String(), nullable=False, server_default="self"),
        sa.Column("furnishing", sa.String(), nullable=False, server_default="unfurnished"),
        sa.Column("interest_level", sa.String()),
        sa.Column("call_status", sa.String()),
        sa.Column("assigned_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("platform", sa.String()),
        sa.Column("campaign_name", sa.String()),
        sa.Column("ad_name", sa.String()),
        sa.Column("adset_name", sa.String()),
        sa.Column("form_name", sa.String()),
        sa.Column("configuration_requested", sa.String()),
        sa.Column("is_organic", sa.Boolean()),
        sa.Column("lead_created_time", sa.DateTime()),
        sa.Column("lead_status", sa.String()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_leads_external_lead_id", "leads", ["external_lead_id"])
    op.create_index("ix_leads_normalized_phone", "leads", ["normalized_phone"])
    op.create_index("ix_leads_email", "leads", ["email"])

    op.create_table(
        "interactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("lead_id", sa.String(), sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("interest_level", sa.String(), nullable=False),
        sa.Column("budget", sa.Float(), nullable=False, server_default="0"),
        sa.Column("call_status", sa.String(), nullable=False),
        sa.Column("follow_up_at", sa.DateTime()),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(), sa.ForeignKey("users.id"), nullable=False),
    )
    op.create_index("ix_interactions_lead_id", "interactions", ["lead_id"])

    op.create_table(
        "import_configurations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("google_sheet_url", sa.String(), nullable=False),
        sa.Column("spreadsheet_id", sa.String(), nullable=False),
        sa.Column("sheet_name", sa.String(), nullable=False),
        sa.Column("service_account_email", sa.String()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("poll_interval_minutes", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "import_states",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("configuration_id", sa.String(), nullable=False, unique=True),
        sa.Column("last_processed_row", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_processed_id", sa.String()),
        sa.Column("last_processed_time", sa.DateTime()),
        sa.Column("last_run_at", sa.DateTime(), nullable=False),
        sa.Column("next_run_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "import_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("configuration_id", sa.String(), nullable=False),
        sa.Column("run_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("rows_scanned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("new_rows_detected", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("leads_inserted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duplicates_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=False),
    )
    op.create_index("ix_import_logs_configuration_id", "import_logs", ["configuration_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("lead_id", sa.String(), sa.ForeignKey("leads.id")),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_import_logs_configuration_id", table_name="import_logs")
    op.drop_table("import_logs")
    op.drop_table("import_states")
    op.drop_table("import_configurations")
    op.drop_index("ix_interactions_lead_id", table_name="interactions")
    op.drop_table("interactions")
    op.drop_index("ix_leads_email", table_name="leads")
    op.drop_index("ix_leads_normalized_phone", table_name="leads")
    op.drop_index("ix_leads_external_lead_id", table_name="leads")
    op.drop_table("leads")
    op.drop_table("users")
