"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

usage_events       append-only; AUTOINCREMENT so ids are never reused after a purge
blocked_apps       keyed by package_name
blocking_sessions  at most one row with end_time IS NULL
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- usage_events ---
    op.create_table(
        "usage_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("hour_of_day", sa.Integer(), nullable=False),
        sa.Column("package_name", sa.String(256), nullable=False),
        sa.Column("app_category", sa.String(32), nullable=False),
        sa.Column("session_duration", sa.BigInteger(), nullable=False),
        sa.Column("time_since_last_use", sa.BigInteger(), nullable=False),
        sa.Column("daily_app_launches", sa.Integer(), nullable=False),
        sa.Column("total_daily_screen_time", sa.BigInteger(), nullable=False),
        sa.Column("cumulative_daily_screen_time", sa.BigInteger(), nullable=False),
        sa.Column("was_blocked", sa.Boolean(), nullable=False),
        sa.Column("unlock_attempted", sa.Boolean(), nullable=False),
        sa.Column("unlock_succeeded", sa.Boolean(), nullable=False),
        sa.Column("risk_score", sa.Float(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_usage_events_timestamp", "usage_events", ["timestamp"])
    op.create_index("ix_usage_events_package_name", "usage_events", ["package_name"])

    # --- blocked_apps ---
    op.create_table(
        "blocked_apps",
        sa.Column("package_name", sa.String(256), nullable=False),
        sa.Column("app_name", sa.String(256), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("is_blocked", sa.Boolean(), nullable=False),
        sa.Column("added_timestamp", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("package_name"),
    )

    # --- blocking_sessions ---
    op.create_table(
        "blocking_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.BigInteger(), nullable=False),
        sa.Column("end_time", sa.BigInteger(), nullable=True),
        sa.Column("unlock_method", sa.String(32), nullable=False),
        sa.Column("duration", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_blocking_sessions_id", "blocking_sessions", ["id"])
    op.create_index("ix_blocking_sessions_start_time", "blocking_sessions", ["start_time"])
    op.create_index("ix_blocking_sessions_end_time", "blocking_sessions", ["end_time"])


def downgrade() -> None:
    op.drop_index("ix_blocking_sessions_end_time", table_name="blocking_sessions")
    op.drop_index("ix_blocking_sessions_start_time", table_name="blocking_sessions")
    op.drop_index("ix_blocking_sessions_id", table_name="blocking_sessions")
    op.drop_table("blocking_sessions")
    op.drop_table("blocked_apps")
    op.drop_index("ix_usage_events_package_name", table_name="usage_events")
    op.drop_index("ix_usage_events_timestamp", table_name="usage_events")
    op.drop_table("usage_events")
