"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-09-28

Creates:
- group_trip, group_member
- plan_approval (one vote per group member)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # group_trip table
    op.create_table(
        "group_trip",
        sa.Column("group_id", sa.Uuid(), primary_key=True),
        sa.Column("group_name", sa.Text(), nullable=False),
        sa.Column("destination", sa.Text(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("leader_id", sa.Text(), nullable=False),
        sa.Column("leader_name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # group_member table
    op.create_table(
        "group_member",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["group_trip.group_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_member_user"),
    )
    op.create_index("idx_group_member_user", "group_member", ["user_id"])

    # plan_approval table
    op.create_table(
        "plan_approval",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("user_name", sa.Text(), nullable=False),
        sa.Column("vote", sa.Text(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["group_trip.group_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_plan_approval_group_user"),
        sa.CheckConstraint("vote IN ('agree', 'request_changes')", name="ck_plan_approval_vote"),
    )
    op.create_index("idx_plan_approval_group", "plan_approval", ["group_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_plan_approval_group", table_name="plan_approval")
    op.drop_table("plan_approval")
    op.drop_index("idx_group_member_user", table_name="group_member")
    op.drop_table("group_member")
    op.drop_table("group_trip")
