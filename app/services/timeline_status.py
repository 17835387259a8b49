"""Read-only timeline views: department status reports and access checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

from app.db.unit_of_work import Repositories
from app.models.course import CourseModule
from app.models.progress import ProgressRecord, TimelineViolation
from app.models.timeline import ModuleTimeline
from app.services.completion import is_module_effectively_complete

StudentTimelineStatus = Literal["COMPLETED", "MISSED_DEADLINE", "OVERDUE", "IN_PROGRESS"]


@dataclass(frozen=True, slots=True)
class StudentStatus:
    student_id: UUID
    status: StudentTimelineStatus
    completed_at: datetime | None
    has_missed_deadline: bool
    has_violation: bool


@dataclass(frozen=True, slots=True)
class TimelineStatus:
    timeline_id: UUID
    module_id: UUID
    deadline: datetime
    grace_period_hours: int
    is_overdue: bool
    students: tuple[StudentStatus, ...]


@dataclass(frozen=True, slots=True)
class TimelineAccess:
    has_access: bool
    reason: str
    deadline: datetime | None = None
    is_overdue: bool = False
    grace_period_hours: int | None = None


def module_completed_at(
    progress: ProgressRecord | None, module_id: UUID, module: CourseModule | None
) -> datetime | None:
    """When the module became complete, by the same rule the schedulers use.

    Explicit completion wins; an effectively complete module reports its
    latest lesson completion.  Without the module contents (course gone)
    only explicit completion counts.
    """
    if progress is None:
        return None
    explicit = progress.completed_module(module_id)
    if explicit is not None:
        return explicit.completed_at
    if module is None:
        return None
    if not is_module_effectively_complete(
        progress, module.id, module.lesson_ids, module.quiz_ids, module.assignment_ids
    ):
        return None
    wanted = set(module.lesson_ids)
    return max(e.completed_at for e in progress.completed_lessons if e.lesson_id in wanted)


def student_status(
    timeline: ModuleTimeline,
    module: CourseModule | None,
    student_id: UUID,
    progress: ProgressRecord | None,
    now: datetime,
) -> StudentStatus:
    completed_at = module_completed_at(progress, timeline.module_id, module)
    missed = timeline.has_student_missed_deadline(student_id)
    has_violation = progress is not None and any(
        v.module_id == timeline.module_id for v in progress.timeline_violations
    )

    status: StudentTimelineStatus
    if completed_at is not None:
        status = "COMPLETED"
    elif missed:
        status = "MISSED_DEADLINE"
    elif timeline.is_overdue(now):
        status = "OVERDUE"
    else:
        status = "IN_PROGRESS"

    return StudentStatus(
        student_id=student_id,
        status=status,
        completed_at=completed_at,
        has_missed_deadline=missed,
        has_violation=has_violation,
    )


async def department_status_report(
    repos: Repositories, course_id: UUID, department_id: UUID, now: datetime
) -> list[TimelineStatus]:
    course = await repos.courses.get_course(course_id)
    order = {m.id: i for i, m in enumerate(course.modules)} if course else {}

    timelines = [
        t
        for t in await repos.timelines.list_for_department(course_id, department_id)
        if t.is_active
    ]
    timelines.sort(key=lambda t: (order.get(t.module_id, len(order)), t.deadline))

    student_ids = await repos.students.list_student_ids(department_id)
    by_student = {
        p.student_id: p
        for p in await repos.progress.list_for_course(course_id, student_ids)
    }

    return [
        TimelineStatus(
            timeline_id=t.id,
            module_id=t.module_id,
            deadline=t.deadline,
            grace_period_hours=t.grace_period_hours,
            is_overdue=t.is_overdue(now),
            students=tuple(
                student_status(
                    t,
                    course.get_module(t.module_id) if course else None,
                    sid,
                    by_student.get(sid),
                    now,
                )
                for sid in student_ids
            ),
        )
        for t in timelines
    ]


def check_timeline_access(
    timeline: ModuleTimeline | None, student_id: UUID, now: datetime
) -> TimelineAccess:
    """Report where a student stands against a module deadline.

    Access is never withdrawn here: an overdue student may still finish
    the module until enforcement demotes them.
    """
    if timeline is None or not timeline.is_active:
        return TimelineAccess(True, "No timeline restrictions")

    reason = "Access granted"
    overdue = timeline.is_overdue(now)
    if overdue and not timeline.has_student_missed_deadline(student_id):
        if timeline.is_past_grace(now):
            reason = "Overdue - Grace period expired"
        else:
            reason = "Overdue - Within grace period"

    return TimelineAccess(
        has_access=True,
        reason=reason,
        deadline=timeline.deadline,
        is_overdue=overdue,
        grace_period_hours=timeline.grace_period_hours,
    )


async def violations_for_student(
    repos: Repositories, student_id: UUID
) -> list[tuple[UUID, TimelineViolation]]:
    """Every timeline violation of a student across courses, newest first."""
    pairs = [
        (progress.course_id, violation)
        for progress in await repos.progress.list_for_student(student_id)
        for violation in progress.timeline_violations
    ]
    return sorted(pairs, key=lambda pair: pair[1].violated_at, reverse=True)
