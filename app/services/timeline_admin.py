from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from app.db.unit_of_work import Repositories
from app.models.timeline import (
    DEFAULT_GRACE_PERIOD_HOURS,
    DEFAULT_WARNING_PERIODS,
    ModuleTimeline,
)

logger = logging.getLogger(__name__)


class TimelineValidationError(ValueError):
    pass


class TimelineNotFoundError(LookupError):
    pass


async def upsert_timeline(
    repos: Repositories,
    *,
    course_id: UUID,
    module_id: UUID,
    department_id: UUID,
    deadline: datetime,
    grace_period_hours: int = DEFAULT_GRACE_PERIOD_HOURS,
    warning_periods: tuple[int, ...] = DEFAULT_WARNING_PERIODS,
    enable_warnings: bool = True,
    is_active: bool = True,
    description: str | None = None,
    created_by: UUID | None = None,
) -> ModuleTimeline:
    """Create the timeline for (course, module, department) or update it in place.

    Updating keeps both ledgers: students already demoted or warned under
    the old deadline stay recorded.
    """
    if deadline.tzinfo is None:
        raise TimelineValidationError("deadline must be timezone-aware")
    if grace_period_hours < 0:
        raise TimelineValidationError("grace_period_hours must be >= 0")
    if any(h <= 0 for h in warning_periods):
        raise TimelineValidationError("warning periods must be positive hour offsets")

    course = await repos.courses.get_course(course_id)
    if course is None:
        raise TimelineNotFoundError(f"course {course_id} not found")
    if course.get_module(module_id) is None:
        raise TimelineValidationError(
            f"module {module_id} does not belong to course {course_id}"
        )
    if not await repos.students.department_exists(department_id):
        raise TimelineNotFoundError(f"department {department_id} not found")

    periods = tuple(sorted(set(warning_periods), reverse=True))
    timeline = await repos.timelines.find(course_id, module_id, department_id)
    if timeline is None:
        timeline = ModuleTimeline.new(
            course_id=course_id,
            module_id=module_id,
            department_id=department_id,
            deadline=deadline,
            grace_period_hours=grace_period_hours,
            warning_periods=periods,
            enable_warnings=enable_warnings,
            description=description,
            created_by=created_by,
        )
        timeline.is_active = is_active
        logger.info(
            "Created timeline=%s module=%s department=%s deadline=%s",
            timeline.id,
            module_id,
            department_id,
            deadline.isoformat(),
        )
    else:
        timeline.deadline = deadline
        timeline.grace_period_hours = grace_period_hours
        timeline.warning_periods = periods
        timeline.enable_warnings = enable_warnings
        timeline.is_active = is_active
        timeline.description = description
        logger.info(
            "Updated timeline=%s deadline=%s", timeline.id, deadline.isoformat()
        )

    await repos.timelines.save(timeline)
    return timeline


async def deactivate_timeline(repos: Repositories, timeline_id: UUID) -> ModuleTimeline:
    timeline = await repos.timelines.get(timeline_id)
    if timeline is None:
        raise TimelineNotFoundError(f"timeline {timeline_id} not found")
    if timeline.is_active:
        timeline.is_active = False
        await repos.timelines.save(timeline)
        logger.info("Deactivated timeline=%s", timeline_id)
    return timeline
