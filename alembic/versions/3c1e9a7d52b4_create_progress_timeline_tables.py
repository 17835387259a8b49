"""create progress and timeline tables

Revision ID: 3c1e9a7d52b4
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1e9a7d52b4"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column(
            "roles",
            postgresql.ARRAY(sa.String()),
            nullable=False,
            server_default="{}",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "departments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )
    op.create_table(
        "department_members",
        sa.Column(
            "department_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("departments.id"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            primary_key=True,
        ),
    )
    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_table(
        "course_modules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_table(
        "module_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "module_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("course_modules.id"),
            nullable=False,
        ),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("ref_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    op.create_table(
        "progress",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column("completed_lessons", postgresql.JSONB(), nullable=False),
        sa.Column("completed_modules", postgresql.JSONB(), nullable=False),
        sa.Column("quizzes", postgresql.JSONB(), nullable=False),
        sa.Column("assignments", postgresql.JSONB(), nullable=False),
        sa.Column("current_level", sa.String(length=16), nullable=False),
        sa.Column(
            "level_lock_enabled", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("locked_level", sa.String(length=16), nullable=True),
        sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_accessible_module", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("timeline_violations", postgresql.JSONB(), nullable=False),
        sa.Column("timeline_notifications", postgresql.JSONB(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("student_id", "course_id"),
    )
    op.create_index("ix_progress_student_id", "progress", ["student_id"])
    op.create_index("ix_progress_course_id", "progress", ["course_id"])
    op.create_table(
        "module_timelines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id"),
            nullable=False,
        ),
        sa.Column(
            "module_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("course_modules.id"),
            nullable=False,
        ),
        sa.Column(
            "department_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("departments.id"),
            nullable=False,
        ),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("grace_period_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column(
            "warning_periods",
            postgresql.ARRAY(sa.Integer()),
            nullable=False,
            server_default="{168,72,24}",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "enable_warnings", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_by",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id"),
            nullable=True,
        ),
        sa.Column("missed_deadline_students", postgresql.JSONB(), nullable=False),
        sa.Column("warnings_sent", postgresql.JSONB(), nullable=False),
        sa.Column("last_processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("course_id", "module_id", "department_id"),
    )
    op.create_index("ix_module_timelines_deadline", "module_timelines", ["deadline"])
    op.create_index(
        "ix_module_timelines_last_processed_at",
        "module_timelines",
        ["last_processed_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_module_timelines_last_processed_at", table_name="module_timelines")
    op.drop_index("ix_module_timelines_deadline", table_name="module_timelines")
    op.drop_table("module_timelines")
    op.drop_index("ix_progress_course_id", table_name="progress")
    op.drop_index("ix_progress_student_id", table_name="progress")
    op.drop_table("progress")
    op.drop_table("module_items")
    op.drop_table("course_modules")
    op.drop_table("courses")
    op.drop_table("department_members")
    op.drop_table("departments")
    op.drop_table("users")
