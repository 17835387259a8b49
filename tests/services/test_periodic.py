from __future__ import annotations

import asyncio

import pytest

from app.services.periodic import JobScheduler, PeriodicJob


def test_run_once_records_result() -> None:
    async def job():
        return "done"

    periodic = PeriodicJob(name="ok", interval_seconds=60, func=job)
    assert asyncio.run(periodic.run_once()) == "done"
    assert periodic.run_count == 1
    assert periodic.last_result == "done"
    assert periodic.last_run_at is not None


def test_run_once_swallows_and_records_errors() -> None:
    async def job():
        raise RuntimeError("boom")

    periodic = PeriodicJob(name="broken", interval_seconds=60, func=job)
    assert asyncio.run(periodic.run_once()) is None
    assert periodic.failure_count == 1
    assert periodic.last_error == "boom"


def test_failing_tick_does_not_stop_later_ticks() -> None:
    calls = []

    async def job():
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("first tick fails")
        return len(calls)

    periodic = PeriodicJob(name="flaky", interval_seconds=0.01, func=job)

    async def main():
        task = asyncio.create_task(periodic.run_forever())
        while len(calls) < 3:
            await asyncio.sleep(0.005)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(main())
    assert periodic.failure_count == 1
    assert periodic.run_count >= 3
    assert periodic.last_error is None


def test_scheduler_start_stop_restart() -> None:
    ticks = {"a": 0, "b": 0}

    def counter(name):
        async def job():
            ticks[name] += 1

        return job

    scheduler = JobScheduler()
    scheduler.add(PeriodicJob(name="a", interval_seconds=0.01, func=counter("a")))
    scheduler.add(PeriodicJob(name="b", interval_seconds=0.01, func=counter("b")))

    async def main():
        scheduler.start()
        assert scheduler.is_running
        await asyncio.sleep(0.05)
        await scheduler.restart()
        assert scheduler.is_running
        await asyncio.sleep(0.02)
        await scheduler.stop()

    asyncio.run(main())
    assert not scheduler.is_running
    assert ticks["a"] >= 2
    assert ticks["b"] >= 2

    status = scheduler.status()
    assert status["is_running"] is False
    assert set(status["jobs"]) == {"a", "b"}
    assert status["jobs"]["a"]["interval_seconds"] == 0.01


def test_duplicate_job_names_are_rejected() -> None:
    async def job():
        return None

    scheduler = JobScheduler()
    scheduler.add(PeriodicJob(name="same", interval_seconds=1, func=job))
    with pytest.raises(ValueError, match="already registered"):
        scheduler.add(PeriodicJob(name="same", interval_seconds=1, func=job))


def test_worker_registers_both_timeline_jobs() -> None:
    from app.worker import build_scheduler

    scheduler = build_scheduler()
    assert set(scheduler.jobs) == {"timeline_enforcement", "timeline_warnings"}
    assert scheduler.jobs["timeline_enforcement"].interval_seconds == 3600
    assert scheduler.jobs["timeline_warnings"].interval_seconds == 1800
