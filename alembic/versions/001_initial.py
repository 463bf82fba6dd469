"""Initial schema: users, progress, lessons, quizzes, word history, reminders, sessions, subscriptions.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(128), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("plan", sa.String(32), nullable=False, server_default="free"),
        sa.Column("daily_questions_used", sa.Integer, server_default="0"),
        sa.Column("last_question_date", sa.String(10), nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_progress",
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("total_lessons_completed", sa.Integer, server_default="0"),
        sa.Column("total_questions_asked", sa.Integer, server_default="0"),
        sa.Column("words_learned", sa.Integer, server_default="0"),
        sa.Column("streak", sa.Integer, server_default="0"),
        sa.Column("last_active_date", sa.String(10), nullable=True),
    )

    op.create_table(
        "lesson_completions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("lesson_id", sa.String(64), nullable=False),
        sa.Column("score", sa.Integer, nullable=True),
        sa.Column("completed_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_lesson_completions_user_id", "lesson_completions", ["user_id"])

    op.create_table(
        "quiz_results",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quiz_id", sa.String(255), nullable=False),
        sa.Column("score", sa.Integer, nullable=False),
        sa.Column("total", sa.Integer, nullable=False),
        sa.Column("percentage", sa.Integer, nullable=False),
        sa.Column("completed_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_quiz_results_user_id", "quiz_results", ["user_id"])

    op.create_table(
        "word_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("word", sa.String(128), nullable=False),
        sa.Column("correct_count", sa.Integer, server_default="0"),
        sa.Column("incorrect_count", sa.Integer, server_default="0"),
        sa.Column("last_reviewed", sa.DateTime, nullable=True),
        sa.Column("next_review", sa.DateTime, nullable=True),
        sa.Column("ease_factor", sa.Float, server_default="2.5"),
        sa.Column("interval", sa.Integer, server_default="1"),
        sa.UniqueConstraint("user_id", "word", name="uq_word_history_user_word"),
    )
    op.create_index("ix_word_history_user_id", "word_history", ["user_id"])
    op.create_index("ix_word_history_next_review", "word_history", ["next_review"])

    op.create_table(
        "reminder_settings",
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("enabled", sa.Boolean, server_default=sa.true()),
        sa.Column("preferred_time", sa.String(5), server_default="09:00"),
        sa.Column("timezone", sa.String(64), server_default="Asia/Tokyo"),
        sa.Column("frequency", sa.String(16), server_default="daily"),
        sa.Column("last_reminder_sent", sa.DateTime, nullable=True),
    )

    op.create_table(
        "learning_sessions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("started_at", sa.DateTime, nullable=False),
        sa.Column("ended_at", sa.DateTime, nullable=True),
        sa.Column("words_reviewed", sa.Integer, server_default="0"),
        sa.Column("quiz_completed", sa.Integer, server_default="0"),
        sa.Column("from_reminder", sa.Boolean, server_default=sa.false()),
    )
    op.create_index("ix_learning_sessions_user_id", "learning_sessions", ["user_id"])
    op.create_index("ix_learning_sessions_started_at", "learning_sessions", ["started_at"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("plan", sa.String(32), nullable=False, server_default="free"),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("current_period_start", sa.DateTime, nullable=False),
        sa.Column("current_period_end", sa.DateTime, nullable=False),
        sa.Column("cancel_at_period_end", sa.Boolean, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=True)
    op.create_index("ix_subscriptions_status", "subscriptions", ["status"])


def downgrade() -> None:
    op.drop_table("subscriptions")
    op.drop_table("learning_sessions")
    op.drop_table("reminder_settings")
    op.drop_table("word_history")
    op.drop_table("quiz_results")
    op.drop_table("lesson_completions")
    op.drop_table("user_progress")
    op.drop_table("users")
