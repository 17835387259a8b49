"""Deadline enforcement: demote students who missed a module deadline.

Per (timeline, student) the states are implicit:

    ON_TRACK ──(now > deadline + grace, module incomplete)──▶ DEMOTED

DEMOTED is terminal for that timeline: once a student is listed in
``missed_deadline_students`` they are never processed again, however
many runs follow.  That ledger, not locking, is what makes overlapping
or repeated runs safe.

A run:
  1. lists active timelines whose deadline has passed and that were not
     processed within the staleness window
  2. processes each in its own unit of work; a failure rolls back that
     timeline only and is recorded in the run's error list
  3. stamps ``last_processed_at`` on every timeline it finishes, whether
     or not anyone was demoted
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from uuid import uuid4

from app.core.config import SETTINGS
from app.core.metrics import DEMOTIONS, JOB_DURATION, JOB_RUNS, PROCESSING_ERRORS
from app.db.unit_of_work import Repositories, UnitOfWork
from app.models.timeline import ModuleTimeline
from app.services.completion import is_module_effectively_complete
from app.services.demotion import demote_to_module
from app.services.progress_store import save_progress
from app.services.timeline_runs import (
    EnforcementSummary,
    ResolutionError,
    TimelineError,
    error_for,
    load_department_progress,
    resolve_course_module,
    utcnow,
)

JOB_NAME = "timeline_enforcement"

logger = logging.getLogger(__name__)


def default_staleness() -> timedelta:
    return timedelta(minutes=SETTINGS.enforcement_staleness_minutes)


async def run_enforcement(
    unit_of_work: UnitOfWork,
    *,
    now: datetime | None = None,
    staleness: timedelta | None = None,
) -> EnforcementSummary:
    now = now or utcnow()
    staleness = default_staleness() if staleness is None else staleness
    run_id = uuid4().hex[:12]
    ctx = {"job": JOB_NAME, "run_id": run_id}
    started = time.perf_counter()

    try:
        async with unit_of_work() as repos:
            due = await repos.timelines.list_due_for_enforcement(now, staleness)
    except Exception as exc:
        logger.exception("Could not list timelines for enforcement", extra=ctx)
        JOB_RUNS.labels(job=JOB_NAME, outcome="failed").inc()
        return EnforcementSummary(errors=(TimelineError(error=str(exc)),))

    logger.info("Enforcement run started: %d timelines due", len(due), extra=ctx)

    processed = 0
    demotions = 0
    errors: list[TimelineError] = []
    for timeline in due:
        try:
            async with unit_of_work() as repos:
                count = await enforce_timeline(repos, timeline, now)
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
                "Timeline enforcement failed",
                extra={**ctx, "timeline_id": str(timeline.id)},
            )
            errors.append(error_for(timeline, exc))
            continue

        processed += 1
        demotions += count
        # Counted only once the unit of work has committed.
        DEMOTIONS.inc(count)
        if count:
            logger.info(
                "%d students demoted for module=%s department=%s",
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
            "Enforcement errors: %s",
            [(str(e.timeline_id), e.error) for e in errors],
            extra=ctx,
        )
    logger.info(
        "Enforcement run finished: processed=%d demotions=%d errors=%d",
        processed,
        demotions,
        len(errors),
        extra={**ctx, "duration_ms": round(duration * 1000, 1)},
    )
    return EnforcementSummary(
        processed_count=processed, demotion_count=demotions, errors=tuple(errors)
    )


async def enforce_timeline(
    repos: Repositories, timeline: ModuleTimeline, now: datetime
) -> int:
    """Demote every overdue student of one timeline.  Returns the demotion count."""
    # Re-read inside this unit of work so the ledger is current.
    fresh = await repos.timelines.get(timeline.id)
    if fresh is None:
        raise ResolutionError(f"timeline {timeline.id} no longer exists")
    timeline = fresh

    demotions = 0
    if timeline.is_past_grace(now):
        demotions = await _demote_overdue_students(repos, timeline, now)

    timeline.last_processed_at = now
    await repos.timelines.save(timeline)
    return demotions


async def _demote_overdue_students(
    repos: Repositories, timeline: ModuleTimeline, now: datetime
) -> int:
    course, module = await resolve_course_module(repos, timeline)
    previous = course.previous_module(module.id)
    demotions = 0

    for progress in await load_department_progress(repos, timeline):
        student_id = progress.student_id
        if timeline.has_student_missed_deadline(student_id):
            continue
        if is_module_effectively_complete(
            progress,
            module.id,
            module.lesson_ids,
            module.quiz_ids,
            module.assignment_ids,
        ):
            continue
        if previous is None:
            logger.debug(
                "student=%s missed first module=%s; nothing to demote to",
                student_id,
                module.id,
            )
            continue

        if progress.has_violation_for(module.id, timeline.deadline):
            # Progress was written by an earlier run whose timeline save
            # failed; only the ledger is missing.
            logger.warning(
                "Backfilling missed-deadline ledger for student=%s timeline=%s",
                student_id,
                timeline.id,
            )
            timeline.add_missed_deadline_student(student_id, previous.id, now)
            timeline.mark_student_demoted(student_id, now)
            continue

        if not demote_to_module(progress, course, previous.id):
            continue

        progress.add_timeline_violation(
            module_id=module.id,
            deadline=timeline.deadline,
            violated_at=now,
            demoted_from_module=module.id,
            demoted_to_module=previous.id,
        )
        progress.add_timeline_notification(
            "DEMOTION",
            module.id,
            f'You have been moved back to "{previous.title}" due to missing '
            f'the deadline for "{module.title}".',
            now,
        )
        await save_progress(repos, progress)

        timeline.add_missed_deadline_student(student_id, previous.id, now)
        timeline.mark_student_demoted(student_id, now)
        demotions += 1

    return demotions
