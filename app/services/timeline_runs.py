"""Shared pieces of the timeline jobs: run results, errors and lookups."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from uuid import UUID

from app.db.unit_of_work import Repositories
from app.models.course import Course, CourseModule
from app.models.progress import ProgressRecord
from app.models.timeline import ModuleTimeline


class ResolutionError(LookupError):
    """A timeline points at a course, module or department that is gone."""


@dataclass(frozen=True, slots=True)
class TimelineError:
    error: str
    timeline_id: UUID | None = None
    module_id: UUID | None = None
    department_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class EnforcementSummary:
    processed_count: int = 0
    demotion_count: int = 0
    errors: tuple[TimelineError, ...] = ()


@dataclass(frozen=True, slots=True)
class WarningSummary:
    checked_count: int = 0
    warnings_sent: int = 0
    errors: tuple[TimelineError, ...] = ()


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def error_for(timeline: ModuleTimeline, exc: Exception) -> TimelineError:
    return TimelineError(
        error=str(exc) or type(exc).__name__,
        timeline_id=timeline.id,
        module_id=timeline.module_id,
        department_id=timeline.department_id,
    )


async def resolve_course_module(
    repos: Repositories, timeline: ModuleTimeline
) -> tuple[Course, CourseModule]:
    course = await repos.courses.get_course(timeline.course_id)
    if course is None:
        raise ResolutionError(f"course {timeline.course_id} not found")
    module = course.get_module(timeline.module_id)
    if module is None:
        raise ResolutionError(
            f"module {timeline.module_id} not found in course {course.id}"
        )
    return course, module


async def load_department_progress(
    repos: Repositories, timeline: ModuleTimeline
) -> list[ProgressRecord]:
    """Progress records for the timeline's course, one per department student."""
    if not await repos.students.department_exists(timeline.department_id):
        raise ResolutionError(f"department {timeline.department_id} not found")
    student_ids = await repos.students.list_student_ids(timeline.department_id)
    if not student_ids:
        return []
    records = await repos.progress.list_for_course(timeline.course_id, student_ids)
    return sorted(records, key=lambda p: str(p.student_id))
