"""Run coroutines on a fixed interval, forever.

Each job is an independent asyncio task:

    tick → await job → log result → sleep (interval - elapsed) → tick ...

An exception inside a tick is logged and the loop carries on; one bad
tick never stops future ticks.  Cancellation (``stop()``) is the only
way out.  Jobs are not mutually exclusive and do not need to be: the
timeline jobs rely on their ledgers, not on locks.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class PeriodicJob:
    name: str
    interval_seconds: float
    func: JobFunc
    run_count: int = 0
    failure_count: int = 0
    last_run_at: datetime.datetime | None = None
    last_result: Any = None
    last_error: str | None = None

    async def run_once(self) -> Any:
        """Run one tick.  Never raises except on cancellation."""
        self.last_run_at = datetime.datetime.now(datetime.UTC)
        self.run_count += 1
        try:
            result = await self.func()
        except Exception as exc:
            self.failure_count += 1
            self.last_error = str(exc) or type(exc).__name__
            logger.exception("Job tick failed", extra={"job": self.name})
            return None
        self.last_result = result
        self.last_error = None
        return result

    async def run_forever(self) -> None:
        logger.info(
            "Job scheduled every %ss", self.interval_seconds, extra={"job": self.name}
        )
        while True:
            started = time.monotonic()
            await self.run_once()
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))


@dataclass(slots=True)
class JobScheduler:
    jobs: dict[str, PeriodicJob] = field(default_factory=dict)
    _tasks: dict[str, asyncio.Task] = field(default_factory=dict)

    def add(self, job: PeriodicJob) -> None:
        if job.name in self.jobs:
            raise ValueError(f"job {job.name!r} already registered")
        self.jobs[job.name] = job

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def start(self) -> None:
        if self.is_running:
            logger.info("Scheduler already running")
            return
        for name, job in self.jobs.items():
            self._tasks[name] = asyncio.create_task(job.run_forever(), name=name)
        logger.info("Scheduler started: %s", sorted(self.jobs))

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Scheduler stopped")

    async def restart(self) -> None:
        await self.stop()
        self.start()

    async def wait(self) -> None:
        """Block until every job task ends (normally only via ``stop()``)."""
        await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "jobs": {
                name: {
                    "interval_seconds": job.interval_seconds,
                    "run_count": job.run_count,
                    "failure_count": job.failure_count,
                    "last_run_at": job.last_run_at,
                    "last_error": job.last_error,
                }
                for name, job in self.jobs.items()
            },
        }
