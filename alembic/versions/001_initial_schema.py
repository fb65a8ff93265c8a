"""Initial schema: users, refresh tokens, topics and progress tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLite only autoincrements INTEGER PRIMARY KEY columns
_BigInt = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "users",
        sa.Column("id", _BigInt, primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    # Emails are stored lowercased; this also rejects case variants written by hand
    op.execute("CREATE UNIQUE INDEX ix_users_email_lower ON users (lower(email))")

    op.create_table(
        "refresh_tokens",
        sa.Column("id", _BigInt, primary_key=True, autoincrement=True),
        sa.Column("user_id", _BigInt, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String(128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_refresh_tokens_token", "refresh_tokens", ["token"], unique=True)
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])
    op.create_index("ix_refresh_tokens_expires_at", "refresh_tokens", ["expires_at"])

    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
    )

    op.create_table(
        "user_stats",
        sa.Column("id", _BigInt, primary_key=True, autoincrement=True),
        sa.Column("user_id", _BigInt, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("total_points", sa.Integer(), server_default="0", nullable=False),
        sa.Column("level", sa.Integer(), server_default="1", nullable=False),
        sa.Column("badges", sa.JSON(), server_default=sa.text("'[]'"), nullable=False),
        sa.Column("current_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("longest_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_activity_date", sa.Date(), nullable=True),
        sa.Column("perfect_quiz_streak", sa.Integer(), server_default="0", nullable=False),
        sa.UniqueConstraint("user_id", name="uq_user_stats_user_id"),
    )

    op.create_table(
        "user_progress",
        sa.Column("id", _BigInt, primary_key=True, autoincrement=True),
        sa.Column("user_id", _BigInt, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.Column("lesson_id", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "topic_id", "lesson_id", name="uq_user_progress_lesson"),
    )
    op.create_index("ix_user_progress_user_id", "user_progress", ["user_id"])

    op.create_table(
        "quiz_results",
        sa.Column("id", _BigInt, primary_key=True, autoincrement=True),
        sa.Column("user_id", _BigInt, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.Column("correct_answers", sa.Integer(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("percentage", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_quiz_results_user_id", "quiz_results", ["user_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("quiz_results")
    op.drop_table("user_progress")
    op.drop_table("user_stats")
    op.drop_table("topics")
    op.drop_table("refresh_tokens")
    op.execute("DROP INDEX IF EXISTS ix_users_email_lower")
    op.drop_table("users")
