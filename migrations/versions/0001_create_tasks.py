"""create tasks, timeline entries and gamification tables"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_tasks"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="OPEN"),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="NORMAL"),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("last_touched_at", sa.BigInteger(), nullable=False),
        sa.Column("archived_at", sa.BigInteger(), nullable=True),
        sa.Column("delete_after_at", sa.BigInteger(), nullable=True),
        sa.Column("pinned_summary", sa.Text(), nullable=False, server_default=""),
    )
    op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)
    op.create_index("ix_tasks_priority", "tasks", ["priority"], unique=False)
    op.create_index("ix_tasks_last_touched_at", "tasks", ["last_touched_at"], unique=False)

    op.create_table(
        "timeline_entries",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "task_id",
            sa.String(length=36),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_timeline_entries_task_id", "timeline_entries", ["task_id"], unique=False)
    op.create_index("ix_timeline_entries_type", "timeline_entries", ["type"], unique=False)
    op.create_index(
        "ix_timeline_entries_created_at", "timeline_entries", ["created_at"], unique=False
    )
    op.create_index(
        "ix_timeline_entries_task_order",
        "timeline_entries",
        ["task_id", "sort_order"],
        unique=False,
    )

    gamification = op.create_table(
        "gamification",
        sa.Column("key", sa.String(length=50), primary_key=True),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_active_date", sa.BigInteger(), nullable=False, server_default="0"),
    )
    op.bulk_insert(
        gamification,
        [{"key": "user_stats", "xp": 0, "level": 1, "streak": 0, "last_active_date": 0}],
    )


def downgrade() -> None:
    op.drop_table("gamification")
    op.drop_index("ix_timeline_entries_task_order", table_name="timeline_entries")
    op.drop_index("ix_timeline_entries_created_at", table_name="timeline_entries")
    op.drop_index("ix_timeline_entries_type", table_name="timeline_entries")
    op.drop_index("ix_timeline_entries_task_id", table_name="timeline_entries")
    op.drop_table("timeline_entries")
    op.drop_index("ix_tasks_last_touched_at", table_name="tasks")
    op.drop_index("ix_tasks_priority", table_name="tasks")
    op.drop_index("ix_tasks_status", table_name="tasks")
    op.drop_table("tasks")
