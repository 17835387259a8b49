"""Repository bundles scoped to one unit of work.

Both the API and the schedulers ask for repositories through
``unit_of_work()``:

    async with unit_of_work() as repos:
        progress = await repos.progress.get(student_id, course_id)
        ...

With DATABASE_URL set, each unit of work is one session/transaction:
commit on clean exit, rollback when the block raises.  Without it, the
module-level ``in_memory_store`` backs every unit of work; writes are
staged per unit of work and applied to the shared repos only when the
block exits cleanly, so a failure part-way through leaves nothing behind.

Callbacks registered with ``Repositories.on_commit`` run after a
successful commit and never after a rollback.  Cache eviction uses this,
so a reader cannot re-cache a row that is about to change.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from uuid import UUID

from app.db.engine import async_session_factory
from app.models.progress import ProgressRecord
from app.models.timeline import ModuleTimeline
from app.repos.course_catalog import CourseCatalog, InMemoryCourseCatalog
from app.repos.pg_course_catalog import PgCourseCatalog
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_student_directory import PgStudentDirectory
from app.repos.pg_timeline_repo import PgTimelineRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.repos.student_directory import InMemoryStudentDirectory, StudentDirectory
from app.repos.timeline_repo import InMemoryTimelineRepo, TimelineRepo

logger = logging.getLogger(__name__)

AfterCommit = Callable[[], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class Repositories:
    courses: CourseCatalog
    students: StudentDirectory
    progress: ProgressRepo
    timelines: TimelineRepo
    after_commit: list[AfterCommit] = field(default_factory=list)

    def on_commit(self, callback: AfterCommit) -> None:
        self.after_commit.append(callback)

    async def run_after_commit(self) -> None:
        for callback in self.after_commit:
            try:
                await callback()
            except Exception:
                # The commit already happened; a failed follow-up must not undo it.
                logger.exception("After-commit callback failed")


UnitOfWork = Callable[[], AbstractAsyncContextManager[Repositories]]


# ---------------------------------------------------------------------------
# In-memory: staged writes over shared repos
# ---------------------------------------------------------------------------


class _StagedProgressRepo:
    def __init__(self, inner: InMemoryProgressRepo) -> None:
        self._inner = inner
        self._pending: dict[tuple[UUID, UUID], ProgressRecord] = {}

    async def get(self, student_id: UUID, course_id: UUID) -> ProgressRecord | None:
        staged = self._pending.get((student_id, course_id))
        if staged is not None:
            return copy.deepcopy(staged)
        return await self._inner.get(student_id, course_id)

    async def list_for_course(
        self, course_id: UUID, student_ids: Iterable[UUID]
    ) -> list[ProgressRecord]:
        wanted = set(student_ids)
        return self._overlay(
            await self._inner.list_for_course(course_id, wanted),
            lambda p: p.course_id == course_id and p.student_id in wanted,
        )

    async def list_for_student(self, student_id: UUID) -> list[ProgressRecord]:
        return self._overlay(
            await self._inner.list_for_student(student_id),
            lambda p: p.student_id == student_id,
        )

    async def save(self, progress: ProgressRecord) -> None:
        self._inner.check_unique(progress)
        self._pending[(progress.student_id, progress.course_id)] = copy.deepcopy(progress)

    async def commit(self) -> None:
        for progress in self._pending.values():
            await self._inner.save(progress)
        self._pending.clear()

    def _overlay(self, committed: list[ProgressRecord], predicate) -> list[ProgressRecord]:
        merged = {(p.student_id, p.course_id): p for p in committed}
        for key, staged in self._pending.items():
            if predicate(staged):
                merged[key] = copy.deepcopy(staged)
        return list(merged.values())


class _StagedTimelineRepo:
    def __init__(self, inner: InMemoryTimelineRepo) -> None:
        self._inner = inner
        self._pending: dict[UUID, ModuleTimeline] = {}

    async def get(self, timeline_id: UUID) -> ModuleTimeline | None:
        staged = self._pending.get(timeline_id)
        if staged is not None:
            return copy.deepcopy(staged)
        return await self._inner.get(timeline_id)

    async def find(
        self, course_id: UUID, module_id: UUID, department_id: UUID
    ) -> ModuleTimeline | None:
        for staged in self._pending.values():
            if (staged.course_id, staged.module_id, staged.department_id) == (
                course_id,
                module_id,
                department_id,
            ):
                return copy.deepcopy(staged)
        return await self._inner.find(course_id, module_id, department_id)

    async def save(self, timeline: ModuleTimeline) -> None:
        self._inner.check_unique(timeline)
        self._pending[timeline.id] = copy.deepcopy(timeline)

    async def commit(self) -> None:
        for timeline in self._pending.values():
            await self._inner.save(timeline)
        self._pending.clear()

    # Listings read committed state; nothing lists after writing in one unit.

    async def list_for_department(self, course_id, department_id):
        return await self._inner.list_for_department(course_id, department_id)

    async def list_due_for_enforcement(self, now, staleness):
        return await self._inner.list_due_for_enforcement(now, staleness)

    async def list_due_for_warnings(self, now):
        return await self._inner.list_due_for_warnings(now)

    async def list_scheduled_for_cleanup(self, now, within):
        return await self._inner.list_scheduled_for_cleanup(now, within)


class InMemoryStore:
    """Process-local repositories; used for dev without a database and in tests."""

    def __init__(self) -> None:
        self.clear()

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[Repositories]:
        progress = _StagedProgressRepo(self.progress)
        timelines = _StagedTimelineRepo(self.timelines)
        repos = Repositories(
            courses=self.courses,
            students=self.students,
            progress=progress,
            timelines=timelines,
        )
        yield repos
        # Reached only when the block did not raise.  Timelines go first so
        # a failed ledger write leaves the progress records untouched too.
        await timelines.commit()
        await progress.commit()
        await repos.run_after_commit()

    def clear(self) -> None:
        self.courses = InMemoryCourseCatalog()
        self.students = InMemoryStudentDirectory()
        self.progress = InMemoryProgressRepo()
        self.timelines = InMemoryTimelineRepo()


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------


@asynccontextmanager
async def pg_unit_of_work() -> AsyncIterator[Repositories]:
    if async_session_factory is None:
        raise RuntimeError(
            "DATABASE_URL is not configured; cannot create database session"
        )
    async with async_session_factory() as session:
        repos = Repositories(
            courses=PgCourseCatalog(session),
            students=PgStudentDirectory(session),
            progress=PgProgressRepo(session),
            timelines=PgTimelineRepo(session),
        )
        try:
            yield repos
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    await repos.run_after_commit()


# ---------------------------------------------------------------------------
# Module-level selection
# ---------------------------------------------------------------------------

in_memory_store = InMemoryStore()

if async_session_factory is not None:
    unit_of_work: UnitOfWork = pg_unit_of_work
else:
    unit_of_work = in_memory_store
