"""deliverables

Deliverables shared with the respondent and their per-round feedback.

Revision ID: c3d5e7f9a602
Revises: b7e1c2d3a401
Create Date: 2026-10-17 14:40:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "c3d5e7f9a602"
down_revision = "b7e1c2d3a401"
branch_labels = None
depends_on = None


def _ts(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "deliverables" not in existing_tables:
        op.create_table(
            "deliverables",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("file_url", sa.String(length=1000), nullable=True),
            sa.Column("file_type", sa.String(length=100), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("round_number", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            _ts("shared_at", nullable=True),
            _ts("created_at"),
            _ts("updated_at", nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["owner_id"], ["owners.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "status IN ('draft', 'shared', 'feedback_given', 'changes_addressed', 'approved')",
                name="ck_deliverables_status",
            ),
            sa.CheckConstraint("version >= 1 AND round_number >= 1", name="ck_deliverables_counters"),
        )
        op.create_index("ix_deliverables_project_id", "deliverables", ["project_id"])

    if "deliverable_feedback" not in existing_tables:
        op.create_table(
            "deliverable_feedback",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("deliverable_id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("round_number", sa.Integer(), nullable=False),
            sa.Column("overall_rating", sa.String(length=20), nullable=False),
            sa.Column("category_ratings", sa.JSON(), nullable=False),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("addressed", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["deliverable_id"], ["deliverables.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("deliverable_id", "round_number", name="uq_deliverable_feedback_round"),
            sa.CheckConstraint(
                "overall_rating IN ('approve', 'changes', 'neutral')",
                name="ck_deliverable_feedback_rating",
            ),
        )
        op.create_index(
            "ix_deliverable_feedback_deliverable_id", "deliverable_feedback", ["deliverable_id"],
        )
        op.create_index("ix_deliverable_feedback_project_id", "deliverable_feedback", ["project_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in ("deliverable_feedback", "deliverables"):
        if table in existing_tables:
            op.drop_table(table)
