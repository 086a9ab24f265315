"""create users, courses, tasks, token_ledger, quiz_attempts, course_proficiencies

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("token_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reputation", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tasks_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quizzes_taken", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quizzes_passed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quizzes_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("avg_mcq_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tokens_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tokens_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("upvotes_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes_defended", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reviews_given", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_current_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_longest", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_last_active", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "courses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("course_code", sa.String(20), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("book_pdf_path", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("topic", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("token_stake", sa.Integer(), nullable=False),
        sa.Column("reward", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("superseded_by_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "token_ledger",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("note", sa.String(512), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("effective_stake", sa.Integer(), nullable=False),
        sa.Column("mcqs", sa.JSON(), nullable=False),
        sa.Column("mcq_responses", sa.JSON(), nullable=False),
        sa.Column("mcq_started_at", sa.DateTime(), nullable=False),
        sa.Column("mcq_score", sa.Integer(), nullable=True),
        sa.Column("mcq_passed", sa.Boolean(), nullable=True),
        sa.Column("theory_questions", sa.JSON(), nullable=False),
        sa.Column("theory_submission_path", sa.String(512), nullable=True),
        sa.Column("theory_submitted_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="mcq_in_progress"),
        sa.Column("token_settled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tokens_awarded", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_quiz_attempts_user_task",
        "quiz_attempts",
        ["user_id", "task_id", "attempt_number"],
    )
    # One open MCQ session per (user, task)
    op.create_index(
        "ix_quiz_attempts_user_task_in_progress",
        "quiz_attempts",
        ["user_id", "task_id"],
        unique=True,
        postgresql_where=text("status = 'mcq_in_progress'"),
        sqlite_where=text("status = 'mcq_in_progress'"),
    )

    op.create_table(
        "course_proficiencies",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("course_id", sa.String(36), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("upvotes_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes_lost", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("downvotes_defended", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tasks_attempted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tasks_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quizzes_passed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quizzes_failed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("proficiency_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "course_id", name="uq_course_proficiencies_user_course"),
    )
    op.create_index(
        "ix_course_proficiencies_course_score",
        "course_proficiencies",
        ["course_id", "proficiency_score"],
    )


def downgrade() -> None:
    op.drop_index("ix_course_proficiencies_course_score", table_name="course_proficiencies")
    op.drop_table("course_proficiencies")
    op.drop_index("ix_quiz_attempts_user_task_in_progress", table_name="quiz_attempts")
    op.drop_index("ix_quiz_attempts_user_task", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_table("token_ledger")
    op.drop_table("tasks")
    op.drop_table("courses")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
