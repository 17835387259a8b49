"""Per-student progress reads, notifications, access checks and levels.

GET /v1/progress/{course_id}/students/{student_id} is read-through cached:

    check cache → hit  → return
                → miss → load record + course → populate → return

Every write goes through ``save_progress``, which evicts the cached
summary once its unit of work commits, so the next GET sees the new
state (including demotions written by the worker, when both share Redis).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from app.api.dependencies import get_now, get_repos
from app.core.config import SETTINGS
from app.db.unit_of_work import Repositories
from app.models.course import Course, CourseModule
from app.models.progress import ProgressRecord, TimelineNotification
from app.services.cache import cache_service, progress_cache_key
from app.services.completion import (
    check_access_for_assessments,
    check_module_access,
    effectively_completed_modules,
)
from app.services.levels import (
    LevelLockedError,
    LevelUpgradeError,
    LevelValidationError,
    can_access_level,
    set_student_level,
    upgrade_level,
)
from app.services.progress_store import save_progress
from app.services.timeline_status import check_timeline_access, violations_for_student


router = APIRouter(prefix="/v1/progress", tags=["progress"])

# Short enough that a missed invalidation resolves within minutes.
_PROGRESS_CACHE_TTL = 300


# --- Pydantic schemas ---


class ProgressOut(BaseModel):
    id: str
    student_id: str
    course_id: str
    progress_percent: int
    current_accessible_module: str | None
    current_level: str
    level_lock_enabled: bool
    is_completed: bool
    locked_level: str | None
    completed_lessons: list[str]
    completed_modules: list[str]
    effectively_completed_modules: list[str]
    unread_notification_count: int
    violation_count: int


class NotificationOut(BaseModel):
    seq: int
    type: str
    module_id: str
    message: str
    sent_at: datetime
    read: bool


class NotificationsOut(BaseModel):
    unread_count: int
    notifications: list[NotificationOut]


class AssessmentAccessOut(BaseModel):
    has_access: bool
    reason: str
    remaining_lessons: list[str]


class ModuleAccessOut(BaseModel):
    has_access: bool
    reason: str
    module_index: int
    effectively_completed_count: int


class TimelineAccessOut(BaseModel):
    has_access: bool
    reason: str
    deadline: datetime | None
    is_overdue: bool
    grace_period_hours: int | None


class LevelIn(BaseModel):
    level: str | None = None
    lock: bool | None = None


class LevelAccessOut(BaseModel):
    level: str
    has_access: bool


class ViolationOut(BaseModel):
    course_id: str
    module_id: str
    deadline: datetime
    violated_at: datetime
    demoted_from_module: str
    demoted_to_module: str
    reason: str


# --- Helpers ---


def _progress_out(progress: ProgressRecord, course: Course) -> ProgressOut:
    return ProgressOut(
        id=str(progress.id),
        student_id=str(progress.student_id),
        course_id=str(progress.course_id),
        progress_percent=progress.progress_percent,
        current_accessible_module=(
            str(progress.current_accessible_module)
            if progress.current_accessible_module
            else None
        ),
        current_level=progress.current_level,
        level_lock_enabled=progress.level_lock_enabled,
        is_completed=progress.is_completed,
        locked_level=progress.locked_level,
        completed_lessons=[str(e.lesson_id) for e in progress.completed_lessons],
        completed_modules=[str(e.module_id) for e in progress.completed_modules],
        effectively_completed_modules=[
            str(m) for m in effectively_completed_modules(progress, course)
        ],
        unread_notification_count=progress.unread_notification_count,
        violation_count=len(progress.timeline_violations),
    )


def _notification_out(n: TimelineNotification) -> NotificationOut:
    return NotificationOut(
        seq=n.seq,
        type=n.type,
        module_id=str(n.module_id),
        message=n.message,
        sent_at=n.sent_at,
        read=n.read,
    )


async def _course_or_404(repos: Repositories, course_id: UUID) -> Course:
    course = await repos.courses.get_course(course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")
    return course


def _module_or_404(course: Course, module_id: UUID) -> CourseModule:
    module = course.get_module(module_id)
    if module is None:
        raise HTTPException(status_code=404, detail="module not found in course")
    return module


async def _progress_or_404(
    repos: Repositories, course_id: UUID, student_id: UUID
) -> ProgressRecord:
    progress = await repos.progress.get(student_id, course_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="progress not found")
    return progress


# ---------------------------------------------------------------------------
# Violations across courses
# ---------------------------------------------------------------------------


@router.get("/students/{student_id}/violations", response_model=list[ViolationOut])
async def get_student_violations(
    student_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> list[ViolationOut]:
    return [
        ViolationOut(
            course_id=str(course_id),
            module_id=str(v.module_id),
            deadline=v.deadline,
            violated_at=v.violated_at,
            demoted_from_module=str(v.demoted_from_module),
            demoted_to_module=str(v.demoted_to_module),
            reason=v.reason,
        )
        for course_id, v in await violations_for_student(repos, student_id)
    ]


# ---------------------------------------------------------------------------
# Progress summary (read-through cached)
# ---------------------------------------------------------------------------


@router.get("/{course_id}/students/{student_id}", response_model=ProgressOut)
async def get_progress(
    course_id: UUID,
    student_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> ProgressOut:
    cache_key = progress_cache_key(course_id, student_id)

    cached = await cache_service.get(cache_key)
    if cached is not None:
        return ProgressOut.model_validate_json(cached)

    course = await _course_or_404(repos, course_id)
    progress = await _progress_or_404(repos, course_id, student_id)
    out = _progress_out(progress, course)

    await cache_service.set(cache_key, out.model_dump_json(), _PROGRESS_CACHE_TTL)
    return out


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@router.get(
    "/{course_id}/students/{student_id}/notifications",
    response_model=NotificationsOut,
)
async def get_notifications(
    course_id: UUID,
    student_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
    limit: Annotated[int, Query(ge=1, le=50)] = 50,
) -> NotificationsOut:
    """Most recent first."""
    progress = await _progress_or_404(repos, course_id, student_id)
    return NotificationsOut(
        unread_count=progress.unread_notification_count,
        notifications=[
            _notification_out(n) for n in progress.recent_notifications(limit)
        ],
    )


@router.post(
    "/{course_id}/students/{student_id}/notifications/{seq}/read",
    response_model=NotificationOut,
)
async def post_notification_read(
    course_id: UUID,
    student_id: UUID,
    seq: int,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> NotificationOut:
    progress = await _progress_or_404(repos, course_id, student_id)
    if not progress.mark_notification_read(seq):
        raise HTTPException(status_code=404, detail="notification not found")
    await save_progress(repos, progress)

    marked = next(n for n in progress.timeline_notifications if n.seq == seq)
    return _notification_out(marked)


# ---------------------------------------------------------------------------
# Access checks
# ---------------------------------------------------------------------------


@router.get(
    "/{course_id}/students/{student_id}/modules/{module_id}/assessment-access",
    response_model=AssessmentAccessOut,
)
async def get_assessment_access(
    course_id: UUID,
    student_id: UUID,
    module_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> AssessmentAccessOut:
    """May the student open this module's quizzes and assignments?"""
    course = await _course_or_404(repos, course_id)
    module = _module_or_404(course, module_id)
    progress = await repos.progress.get(student_id, course_id)

    access = check_access_for_assessments(
        progress,
        module.id,
        module.lesson_ids,
        is_first_module=course.is_first_module(module.id),
    )
    return AssessmentAccessOut(
        has_access=access.has_access,
        reason=access.reason,
        remaining_lessons=[str(lesson) for lesson in access.remaining_lessons],
    )


@router.get(
    "/{course_id}/students/{student_id}/modules/{module_id}/access",
    response_model=ModuleAccessOut,
)
async def get_module_access(
    course_id: UUID,
    student_id: UUID,
    module_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
    level: str | None = None,
) -> ModuleAccessOut:
    """May the student open this module? ``level`` also applies the level lock."""
    course = await _course_or_404(repos, course_id)
    _module_or_404(course, module_id)
    progress = await repos.progress.get(student_id, course_id)

    access = check_module_access(
        progress, course, module_id, level=level, levels=SETTINGS.progress_levels
    )
    return ModuleAccessOut(
        has_access=access.has_access,
        reason=access.reason,
        module_index=access.module_index,
        effectively_completed_count=access.effectively_completed_count,
    )


@router.get(
    "/{course_id}/students/{student_id}/modules/{module_id}/timeline-access",
    response_model=TimelineAccessOut,
)
async def get_timeline_access(
    course_id: UUID,
    student_id: UUID,
    module_id: UUID,
    department_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
    now: Annotated[datetime, Depends(get_now)],
) -> TimelineAccessOut:
    timeline = await repos.timelines.find(course_id, module_id, department_id)
    access = check_timeline_access(timeline, student_id, now)
    return TimelineAccessOut(
        has_access=access.has_access,
        reason=access.reason,
        deadline=access.deadline,
        is_overdue=access.is_overdue,
        grace_period_hours=access.grace_period_hours,
    )


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------


@router.put("/{course_id}/students/{student_id}/level", response_model=ProgressOut)
async def put_level(
    course_id: UUID,
    student_id: UUID,
    body: LevelIn,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> ProgressOut:
    """Set (and optionally lock) a student's level; creates the record if needed."""
    course = await _course_or_404(repos, course_id)
    progress = await repos.progress.get(student_id, course_id)
    if progress is None:
        progress = ProgressRecord.new(
            student_id=student_id,
            course_id=course_id,
            level=SETTINGS.progress_levels[0],
        )
    try:
        set_student_level(
            progress, SETTINGS.progress_levels, level=body.level, lock=body.lock
        )
    except LevelValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from None

    await save_progress(repos, progress)
    return _progress_out(progress, course)


@router.post(
    "/{course_id}/students/{student_id}/level/upgrade", response_model=ProgressOut
)
async def post_level_upgrade(
    course_id: UUID,
    student_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> ProgressOut:
    """Advance to the next level once the course is at 100%."""
    course = await _course_or_404(repos, course_id)
    progress = await _progress_or_404(repos, course_id, student_id)
    try:
        upgrade_level(progress, SETTINGS.progress_levels)
    except LevelLockedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from None
    except LevelUpgradeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None

    await save_progress(repos, progress)
    return _progress_out(progress, course)


@router.get(
    "/{course_id}/students/{student_id}/levels/{level}/access",
    response_model=LevelAccessOut,
)
async def get_level_access(
    course_id: UUID,
    student_id: UUID,
    level: str,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> LevelAccessOut:
    progress = await _progress_or_404(repos, course_id, student_id)
    return LevelAccessOut(
        level=level.upper(),
        has_access=can_access_level(progress, level, SETTINGS.progress_levels),
    )
