"""Timeline administration and scheduler operations.

Internal ops surface: there is no authentication here; the service is
deployed behind the internal network alongside the course platform.

The ``/run`` endpoints execute one enforcement or warning pass inline
and return its summary.  They are the same functions the worker calls
on its interval, so a manual run is safe to fire at any time: the
ledgers keep it from demoting or warning anyone twice.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_now, get_repos, get_unit_of_work
from app.core.config import SETTINGS
from app.db.unit_of_work import Repositories, UnitOfWork
from app.models.timeline import (
    DEFAULT_GRACE_PERIOD_HOURS,
    DEFAULT_WARNING_PERIODS,
    ModuleTimeline,
)
from app.services.timeline_admin import (
    TimelineNotFoundError,
    TimelineValidationError,
    deactivate_timeline,
    upsert_timeline,
)
from app.services.timeline_enforcement import default_staleness, run_enforcement
from app.services.timeline_runs import TimelineError
from app.services.timeline_status import department_status_report
from app.services.timeline_warnings import run_warnings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/timelines", tags=["timelines"])


# --- Pydantic schemas ---


class TimelineIn(BaseModel):
    course_id: UUID
    module_id: UUID
    department_id: UUID
    deadline: datetime
    grace_period_hours: int = Field(DEFAULT_GRACE_PERIOD_HOURS, ge=0)
    warning_periods: list[int] = Field(
        default_factory=lambda: list(DEFAULT_WARNING_PERIODS)
    )
    enable_warnings: bool = True
    is_active: bool = True
    description: str | None = None
    created_by: UUID | None = None


class TimelineOut(BaseModel):
    id: str
    course_id: str
    module_id: str
    department_id: str
    deadline: datetime
    compliance_deadline: datetime
    grace_period_hours: int
    warning_periods: list[int]
    is_active: bool
    enable_warnings: bool
    description: str | None
    last_processed_at: datetime | None
    missed_deadline_count: int
    warnings_sent_count: int


class TimelineErrorOut(BaseModel):
    timeline_id: str | None
    module_id: str | None
    department_id: str | None
    error: str


class EnforcementRunOut(BaseModel):
    processed_count: int
    demotion_count: int
    errors: list[TimelineErrorOut]


class WarningRunOut(BaseModel):
    checked_count: int
    warnings_sent: int
    errors: list[TimelineErrorOut]


class StudentStatusOut(BaseModel):
    student_id: str
    status: str
    completed_at: datetime | None
    has_missed_deadline: bool
    has_violation: bool


class TimelineStatusOut(BaseModel):
    timeline_id: str
    module_id: str
    deadline: datetime
    grace_period_hours: int
    is_overdue: bool
    students: list[StudentStatusOut]


def _timeline_out(t: ModuleTimeline) -> TimelineOut:
    return TimelineOut(
        id=str(t.id),
        course_id=str(t.course_id),
        module_id=str(t.module_id),
        department_id=str(t.department_id),
        deadline=t.deadline,
        compliance_deadline=t.compliance_deadline,
        grace_period_hours=t.grace_period_hours,
        warning_periods=list(t.warning_periods),
        is_active=t.is_active,
        enable_warnings=t.enable_warnings,
        description=t.description,
        last_processed_at=t.last_processed_at,
        missed_deadline_count=len(t.missed_deadline_students),
        warnings_sent_count=len(t.warnings_sent),
    )


def _errors_out(errors: tuple[TimelineError, ...]) -> list[TimelineErrorOut]:
    def _s(value: UUID | None) -> str | None:
        return str(value) if value is not None else None

    return [
        TimelineErrorOut(
            timeline_id=_s(e.timeline_id),
            module_id=_s(e.module_id),
            department_id=_s(e.department_id),
            error=e.error,
        )
        for e in errors
    ]


# --- Timeline administration ---


@router.put("", response_model=TimelineOut)
async def put_timeline(
    body: TimelineIn,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> TimelineOut:
    """Create the timeline for (course, module, department) or update it."""
    try:
        timeline = await upsert_timeline(
            repos,
            course_id=body.course_id,
            module_id=body.module_id,
            department_id=body.department_id,
            deadline=body.deadline,
            grace_period_hours=body.grace_period_hours,
            warning_periods=tuple(body.warning_periods),
            enable_warnings=body.enable_warnings,
            is_active=body.is_active,
            description=body.description,
            created_by=body.created_by,
        )
    except TimelineNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except TimelineValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from None
    return _timeline_out(timeline)


@router.post("/{timeline_id}/deactivate", response_model=TimelineOut)
async def post_deactivate(
    timeline_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
) -> TimelineOut:
    try:
        timeline = await deactivate_timeline(repos, timeline_id)
    except TimelineNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    return _timeline_out(timeline)


# --- Scheduler accessors ---


@router.get("/due/enforcement", response_model=list[TimelineOut])
async def get_due_for_enforcement(
    repos: Annotated[Repositories, Depends(get_repos)],
    now: Annotated[datetime, Depends(get_now)],
) -> list[TimelineOut]:
    """Timelines the next enforcement run would pick up."""
    due = await repos.timelines.list_due_for_enforcement(now, default_staleness())
    return [_timeline_out(t) for t in due]


@router.get("/due/warnings", response_model=list[TimelineOut])
async def get_due_for_warnings(
    repos: Annotated[Repositories, Depends(get_repos)],
    now: Annotated[datetime, Depends(get_now)],
) -> list[TimelineOut]:
    upcoming = await repos.timelines.list_due_for_warnings(now)
    return [_timeline_out(t) for t in upcoming]


@router.get("/cleanup-soon", response_model=list[TimelineOut])
async def get_cleanup_soon(
    repos: Annotated[Repositories, Depends(get_repos)],
    now: Annotated[datetime, Depends(get_now)],
    within_hours: Annotated[int | None, Query(ge=1)] = None,
) -> list[TimelineOut]:
    """Active timelines whose grace period ends within the lookahead."""
    hours = within_hours or SETTINGS.cleanup_lookahead_hours
    soon = await repos.timelines.list_scheduled_for_cleanup(now, timedelta(hours=hours))
    return [_timeline_out(t) for t in soon]


# --- Manual scheduler runs ---


@router.post("/enforcement/run", response_model=EnforcementRunOut)
async def post_enforcement_run(
    unit_of_work: Annotated[UnitOfWork, Depends(get_unit_of_work)],
    now: Annotated[datetime, Depends(get_now)],
) -> EnforcementRunOut:
    logger.info("Manual enforcement run requested")
    summary = await run_enforcement(unit_of_work, now=now)
    return EnforcementRunOut(
        processed_count=summary.processed_count,
        demotion_count=summary.demotion_count,
        errors=_errors_out(summary.errors),
    )


@router.post("/warnings/run", response_model=WarningRunOut)
async def post_warnings_run(
    unit_of_work: Annotated[UnitOfWork, Depends(get_unit_of_work)],
    now: Annotated[datetime, Depends(get_now)],
) -> WarningRunOut:
    logger.info("Manual warning run requested")
    summary = await run_warnings(unit_of_work, now=now)
    return WarningRunOut(
        checked_count=summary.checked_count,
        warnings_sent=summary.warnings_sent,
        errors=_errors_out(summary.errors),
    )


# --- Reporting ---


@router.get(
    "/status/{course_id}/{department_id}", response_model=list[TimelineStatusOut]
)
async def get_department_status(
    course_id: UUID,
    department_id: UUID,
    repos: Annotated[Repositories, Depends(get_repos)],
    now: Annotated[datetime, Depends(get_now)],
) -> list[TimelineStatusOut]:
    """Per-student standing against every active timeline of the department."""
    if await repos.courses.get_course(course_id) is None:
        raise HTTPException(status_code=404, detail="course not found")
    if not await repos.students.department_exists(department_id):
        raise HTTPException(status_code=404, detail="department not found")

    report = await department_status_report(repos, course_id, department_id, now)
    return [
        TimelineStatusOut(
            timeline_id=str(t.timeline_id),
            module_id=str(t.module_id),
            deadline=t.deadline,
            grace_period_hours=t.grace_period_hours,
            is_overdue=t.is_overdue,
            students=[
                StudentStatusOut(
                    student_id=str(s.student_id),
                    status=s.status,
                    completed_at=s.completed_at,
                    has_missed_deadline=s.has_missed_deadline,
                    has_violation=s.has_violation,
                )
                for s in t.students
            ],
        )
        for t in report
    ]
