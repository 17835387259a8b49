"""SQLAlchemy table definitions.

These map to the dataclass domain models in app/models/.  Repos convert
between rows and domain objects.

Progress entry lists and timeline ledgers live in JSONB columns: they
are always read and written together with their parent record, never
queried on their own.
"""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base


def _pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def _fk(target: str, **kw) -> Mapped[uuid.UUID]:
    kw.setdefault("nullable", False)
    return mapped_column(UUID(as_uuid=True), ForeignKey(target), **kw)


def _jsonb_list() -> Mapped[list[dict]]:
    return mapped_column(JSONB, nullable=False, default=list)


# --- Directory (owned by the user/department service, read-only here) ---


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = _pk()
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    roles: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=[])
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class DepartmentRow(Base):
    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = _pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class DepartmentMemberRow(Base):
    __tablename__ = "department_members"

    department_id: Mapped[uuid.UUID] = _fk("departments.id", primary_key=True)
    user_id: Mapped[uuid.UUID] = _fk("users.id", primary_key=True)


# --- Course structure (owned by the course service, read-only here) ---


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = _pk()
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)


class CourseModuleRow(Base):
    __tablename__ = "course_modules"

    id: Mapped[uuid.UUID] = _pk()
    course_id: Mapped[uuid.UUID] = _fk("courses.id")
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)


class ModuleItemRow(Base):
    __tablename__ = "module_items"

    id: Mapped[uuid.UUID] = _pk()
    module_id: Mapped[uuid.UUID] = _fk("course_modules.id")
    type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # lesson|quiz|assignment
    ref_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)


# --- Progress and timelines (owned by this service) ---


class ProgressRow(Base):
    __tablename__ = "progress"

    id: Mapped[uuid.UUID] = _pk()
    student_id: Mapped[uuid.UUID] = _fk("users.id", index=True)
    course_id: Mapped[uuid.UUID] = _fk("courses.id", index=True)
    completed_lessons: Mapped[list[dict]] = _jsonb_list()
    completed_modules: Mapped[list[dict]] = _jsonb_list()
    quizzes: Mapped[list[dict]] = _jsonb_list()
    assignments: Mapped[list[dict]] = _jsonb_list()
    current_level: Mapped[str] = mapped_column(String(16), nullable=False, default="L1")
    level_lock_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    locked_level: Mapped[str | None] = mapped_column(String(16), nullable=True)
    progress_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_accessible_module: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    timeline_violations: Mapped[list[dict]] = _jsonb_list()
    timeline_notifications: Mapped[list[dict]] = _jsonb_list()
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (UniqueConstraint("student_id", "course_id"),)


class ModuleTimelineRow(Base):
    __tablename__ = "module_timelines"

    id: Mapped[uuid.UUID] = _pk()
    course_id: Mapped[uuid.UUID] = _fk("courses.id")
    module_id: Mapped[uuid.UUID] = _fk("course_modules.id")
    department_id: Mapped[uuid.UUID] = _fk("departments.id")
    deadline: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    grace_period_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    warning_periods: Mapped[list[int]] = mapped_column(
        ARRAY(Integer), nullable=False, default=[168, 72, 24]
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enable_warnings: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[uuid.UUID | None] = _fk("users.id", nullable=True)
    missed_deadline_students: Mapped[list[dict]] = _jsonb_list()
    warnings_sent: Mapped[list[dict]] = _jsonb_list()
    last_processed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    __table_args__ = (UniqueConstraint("course_id", "module_id", "department_id"),)
