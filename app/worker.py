"""Background worker process: drives the timeline jobs.

RUN:  python -m app.worker

The API answers requests; this process owns the clock.  Same image,
different command:

  api:    uvicorn app.main:app --host 0.0.0.0 --port 8000
  worker: python -m app.worker

JOBS
----
  timeline_enforcement  every ENFORCEMENT_INTERVAL_SECONDS (default 1h)
      demote students past deadline + grace
  timeline_warnings     every WARNING_INTERVAL_SECONDS (default 30m)
      send 7-day / 3-day / 1-day reminders

Both jobs are also callable on demand from the API
(POST /v1/timelines/enforcement/run, /warnings/run) and return the same
summary.  Running more than one worker is safe but pointless: the
ledgers keep a second worker from demoting or warning anyone twice.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.db.unit_of_work import unit_of_work
from app.services.periodic import JobScheduler, PeriodicJob
from app.services.timeline_enforcement import run_enforcement
from app.services.timeline_warnings import run_warnings

JobHandler = Callable[[], Awaitable[Any]]

logger = logging.getLogger("worker")


# ---------------------------------------------------------------------------
# Job registry
# ---------------------------------------------------------------------------
# Register periodic jobs with the @register_job decorator.

JOBS: dict[str, tuple[float, JobHandler]] = {}


def register_job(name: str, *, interval_seconds: float):
    """Decorator: register a coroutine function as a periodic job."""

    def decorator(func):
        JOBS[name] = (interval_seconds, func)
        return func

    return decorator


@register_job(
    "timeline_enforcement", interval_seconds=SETTINGS.enforcement_interval_seconds
)
async def enforcement_job() -> Any:
    return await run_enforcement(unit_of_work)


@register_job("timeline_warnings", interval_seconds=SETTINGS.warning_interval_seconds)
async def warnings_job() -> Any:
    return await run_warnings(unit_of_work)


def build_scheduler() -> JobScheduler:
    scheduler = JobScheduler()
    for name, (interval, func) in JOBS.items():
        scheduler.add(PeriodicJob(name=name, interval_seconds=interval, func=func))
    return scheduler


async def run_worker() -> None:
    scheduler = build_scheduler()
    async with lifespan_db():
        async with lifespan_redis():
            scheduler.start()
            logger.info("Worker started with jobs: %s", scheduler.status()["jobs"])
            try:
                await scheduler.wait()
            finally:
                await scheduler.stop()


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
