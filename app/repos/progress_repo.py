from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from app.models.progress import ProgressRecord


class ProgressRepo(Protocol):
    async def get(self, student_id: UUID, course_id: UUID) -> ProgressRecord | None: ...
    async def list_for_course(
        self, course_id: UUID, student_ids: Iterable[UUID]
    ) -> list[ProgressRecord]: ...
    async def list_for_student(self, student_id: UUID) -> list[ProgressRecord]: ...
    async def save(self, progress: ProgressRecord) -> None: ...


class InMemoryProgressRepo:
    """Stores deep copies so callers never alias the stored record.

    A caller that mutates a loaded record and then fails before ``save``
    leaves the stored version untouched, the same as an uncommitted
    database transaction.
    """

    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], ProgressRecord] = {}

    async def get(self, student_id: UUID, course_id: UUID) -> ProgressRecord | None:
        record = self._store.get((student_id, course_id))
        return copy.deepcopy(record) if record is not None else None

    async def list_for_course(
        self, course_id: UUID, student_ids: Iterable[UUID]
    ) -> list[ProgressRecord]:
        wanted = set(student_ids)
        return [
            copy.deepcopy(p)
            for (sid, cid), p in self._store.items()
            if cid == course_id and sid in wanted
        ]

    async def list_for_student(self, student_id: UUID) -> list[ProgressRecord]:
        return [
            copy.deepcopy(p)
            for (sid, _cid), p in self._store.items()
            if sid == student_id
        ]

    def check_unique(self, progress: ProgressRecord) -> None:
        """Unique on (student, course)."""
        existing = self._store.get((progress.student_id, progress.course_id))
        if existing is not None and existing.id != progress.id:
            raise ValueError("progress already exists for this student and course")

    async def save(self, progress: ProgressRecord) -> None:
        self.check_unique(progress)
        self._store[(progress.student_id, progress.course_id)] = copy.deepcopy(progress)
