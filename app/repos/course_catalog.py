from __future__ import annotations

from typing import Protocol
from uuid import UUID

from app.models.course import Course


class CourseCatalog(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...


class InMemoryCourseCatalog:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    def add(self, course: Course) -> None:
        self._by_id[course.id] = course

    def remove(self, course_id: UUID) -> None:
        self._by_id.pop(course_id, None)
