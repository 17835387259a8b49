"""Staged deadline reminders.

Each offset ``h`` in a timeline's ``warning_periods`` is a warning class
(168 → 7_DAYS, 72 → 3_DAYS, 24 → 1_DAY).  A class fires only while the
deadline is inside the one-hour window ``(h-1, h]`` from now; with the
job running at least hourly, every class gets exactly one chance per
timeline.  ``warnings_sent`` then keeps a (student, class) pair from
being notified twice when runs overlap or repeat.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime
from uuid import uuid4

from app.core.metrics import JOB_DURATION, JOB_RUNS, PROCESSING_ERRORS, WARNINGS_SENT
from app.db.unit_of_work import Repositories, UnitOfWork
from app.models.timeline import ModuleTimeline, warning_type_for
from app.services.completion import is_module_effectively_complete
from app.services.progress_store import save_progress
from app.services.timeline_runs import (
    ResolutionError,
    TimelineError,
    WarningSummary,
    error_for,
    load_department_progress,
    resolve_course_module,
    utcnow,
)

JOB_NAME = "timeline_warnings"

logger = logging.getLogger(__name__)


def due_warning_types(timeline: ModuleTimeline, now: datetime) -> list[str]:
    """Warning classes whose one-hour window contains ``now``."""
    hours_until = (timeline.deadline - now).total_seconds() / 3600
    return [
        warning_type_for(hours)
        for hours in timeline.warning_periods
        if hours - 1 < hours_until <= hours
    ]


async def run_warnings(
    unit_of_work: UnitOfWork, *, now: datetime | None = None
) -> WarningSummary:
    now = now or utcnow()
    run_id = uuid4().hex[:12]
    ctx = {"job": JOB_NAME, "run_id": run_id}
    started = time.perf_counter()

    try:
        async with unit_of_work() as repos:
            upcoming = await repos.timelines.list_due_for_warnings(now)
    except Exception as exc:
        logger.exception("Could not list timelines for warnings", extra=ctx)
        JOB_RUNS.labels(job=JOB_NAME, outcome="failed").inc()
        return WarningSummary(errors=(TimelineError(error=str(exc)),))

    logger.info("Warning run started: %d upcoming timelines", len(upcoming), extra=ctx)

    checked = 0
    sent = 0
    errors: list[TimelineError] = []
    for timeline in upcoming:
        if not due_warning_types(timeline, now):
            checked += 1
            continue
        try:
            async with unit_of_work() as repos:
                sent_types = await warn_timeline(repos, timeline, now)
        except ResolutionError as exc:
            logger.warning(
                "Skipping timeline: %s",
                exc,
                extra={**ctx, "timeline_id": str(timeline.id)},
            )
            errors.append(error_for(timeline, exc))
            continue
        except Exception as exc:
            logger.exception(
                "Timeline warnings failed",
                extra={**ctx, "timeline_id": str(timeline.id)},
            )
            errors.append(error_for(timeline, exc))
            continue

        checked += 1
        count = len(sent_types)
        sent += count
        # Counted only once the unit of work has committed.
        for warning_type in sent_types:
            WARNINGS_SENT.labels(warning_type=warning_type).inc()
        if count:
            logger.info(
                "%d warnings sent for module=%s department=%s",
                count,
                timeline.module_id,
                timeline.department_id,
                extra={**ctx, "timeline_id": str(timeline.id)},
            )

    duration = time.perf_counter() - started
    JOB_DURATION.labels(job=JOB_NAME).observe(duration)
    JOB_RUNS.labels(job=JOB_NAME, outcome="partial" if errors else "ok").inc()
    if errors:
        PROCESSING_ERRORS.labels(job=JOB_NAME).inc(len(errors))
        logger.error(
            "Warning errors: %s",
            [(str(e.timeline_id), e.error) for e in errors],
            extra=ctx,
        )
    logger.info(
        "Warning run finished: checked=%d sent=%d errors=%d",
        checked,
        sent,
        len(errors),
        extra={**ctx, "duration_ms": round(duration * 1000, 1)},
    )
    return WarningSummary(checked_count=checked, warnings_sent=sent, errors=tuple(errors))


async def warn_timeline(
    repos: Repositories, timeline: ModuleTimeline, now: datetime
) -> list[str]:
    """Send the due warning classes of one timeline.

    Returns the warning class of every notification appended, one entry
    per student notified.
    """
    fresh = await repos.timelines.get(timeline.id)
    if fresh is None:
        raise ResolutionError(f"timeline {timeline.id} no longer exists")
    timeline = fresh

    warning_types = due_warning_types(timeline, now)
    if not warning_types:
        return []

    _course, module = await resolve_course_module(repos, timeline)
    records = await load_department_progress(repos, timeline)
    hours_left = math.ceil((timeline.deadline - now).total_seconds() / 3600)

    sent: list[str] = []
    for warning_type in warning_types:
        for progress in records:
            if is_module_effectively_complete(
                progress,
                module.id,
                module.lesson_ids,
                module.quiz_ids,
                module.assignment_ids,
            ):
                continue
            if not timeline.should_send_warning(progress.student_id, warning_type):
                continue

            progress.add_timeline_notification(
                "WARNING",
                module.id,
                f"Reminder: You have {hours_left} hours left to complete "
                f'"{module.title}" before the deadline.',
                now,
            )
            await save_progress(repos, progress)
            timeline.record_warning_sent(progress.student_id, warning_type, now)
            sent.append(warning_type)

    if sent:
        await repos.timelines.save(timeline)
    return sent
