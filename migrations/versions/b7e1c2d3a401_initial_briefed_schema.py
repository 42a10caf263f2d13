"""initial_briefed_schema

Owners, projects with their lifecycle companion, questionnaire responses,
briefs, assets, revision requests, messages and in-app notifications.

Revision ID: b7e1c2d3a401
Revises:
Create Date: 2026-10-17 09:12:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "b7e1c2d3a401"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "owners" not in existing_tables:
        op.create_table(
            "owners",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=150), nullable=True),
            sa.Column("business_name", sa.String(length=200), nullable=True),
            _ts("created_at"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=False),
            sa.Column("respondent_email", sa.String(length=255), nullable=False),
            sa.Column("respondent_name", sa.String(length=150), nullable=True),
            sa.Column("respondent_account_id", sa.Integer(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("access_token", sa.String(length=64), nullable=False),
            sa.Column("share_token", sa.String(length=64), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            _ts("last_accessed_at", nullable=True),
            _ts("sent_at", nullable=True),
            _ts("completed_at", nullable=True),
            sa.ForeignKeyConstraint(["owner_id"], ["owners.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["respondent_account_id"], ["owners.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("access_token"),
            sa.UniqueConstraint("share_token"),
            sa.CheckConstraint(
                "status IN ('draft', 'sent', 'in_progress', 'completed', 'reviewed')",
                name="ck_projects_status",
            ),
            sa.CheckConstraint(
                "(status IN ('completed', 'reviewed')) = (completed_at IS NOT NULL)",
                name="ck_projects_completed_at",
            ),
        )
        op.create_index("ix_projects_owner_id", "projects", ["owner_id"])
        op.create_index("ix_projects_respondent_email", "projects", ["respondent_email"])
        op.create_index("ix_projects_owner_status", "projects", ["owner_id", "status"])

    if "lifecycle_states" not in existing_tables:
        op.create_table(
            "lifecycle_states",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("current_phase", sa.String(length=20), nullable=False, server_default="discovery"),
            _ts("phase_started_at"),
            sa.Column("phases_completed", sa.JSON(), nullable=False),
            sa.Column("blockers", sa.JSON(), nullable=False),
            sa.Column("revision_cycles", sa.Integer(), nullable=False, server_default="0"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )

    if "responses" not in existing_tables:
        op.create_table(
            "responses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("step_key", sa.String(length=40), nullable=False),
            sa.Column("answers", sa.JSON(), nullable=False),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "step_key", name="uq_responses_project_step"),
        )
        op.create_index("ix_responses_project_id", "responses", ["project_id"])

    if "briefs" not in existing_tables:
        op.create_table(
            "briefs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("content", sa.JSON(), nullable=False),
            sa.Column("artifact_ref", sa.String(length=500), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
            sa.CheckConstraint("version >= 1", name="ck_briefs_version"),
        )

    if "assets" not in existing_tables:
        op.create_table(
            "assets",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("step_key", sa.String(length=40), nullable=True),
            sa.Column("file_name", sa.String(length=255), nullable=False),
            sa.Column("storage_path", sa.String(length=500), nullable=False),
            sa.Column("content_type", sa.String(length=100), nullable=True),
            sa.Column("size_bytes", sa.Integer(), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_assets_project_id", "assets", ["project_id"])

    if "revision_requests" not in existing_tables:
        op.create_table(
            "revision_requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("requester_id", sa.Integer(), nullable=True),
            sa.Column("step_key", sa.String(length=40), nullable=False),
            sa.Column("field_key", sa.String(length=100), nullable=True),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("response", sa.Text(), nullable=True),
            _ts("created_at"),
            _ts("responded_at", nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["requester_id"], ["owners.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("status IN ('pending', 'responded')", name="ck_revision_requests_status"),
        )
        op.create_index("ix_revision_requests_project_id", "revision_requests", ["project_id"])

    if "messages" not in existing_tables:
        op.create_table(
            "messages",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("sender_kind", sa.String(length=20), nullable=False),
            sa.Column("sender_id", sa.String(length=255), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_messages_project_id", "messages", ["project_id"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("read_at", nullable=True),
            _ts("created_at", nullable=True),
            sa.ForeignKeyConstraint(["recipient_id"], ["owners.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
        op.create_index("ix_notifications_project_id", "notifications", ["project_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "notifications",
        "messages",
        "revision_requests",
        "assets",
        "briefs",
        "responses",
        "lifecycle_states",
        "projects",
        "owners",
    ):
        if table in existing_tables:
            op.drop_table(table)
