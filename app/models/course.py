from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_id: UUID
    position: int  # total order within the course; gaps allowed
    title: str
    lesson_ids: tuple[UUID, ...] = ()
    quiz_ids: tuple[UUID, ...] = ()
    assignment_ids: tuple[UUID, ...] = ()

    @staticmethod
    def new(
        *,
        course_id: UUID,
        position: int,
        title: str,
        lesson_ids: tuple[UUID, ...] = (),
        quiz_ids: tuple[UUID, ...] = (),
        assignment_ids: tuple[UUID, ...] = (),
    ) -> CourseModule:
        return CourseModule(
            id=uuid4(),
            course_id=course_id,
            position=position,
            title=title,
            lesson_ids=lesson_ids,
            quiz_ids=quiz_ids,
            assignment_ids=assignment_ids,
        )


@dataclass(frozen=True, slots=True)
class Course:
    """A course and its modules, as resolved from the course catalog.

    ``modules`` is kept in course order (ascending ``position``) by
    ``Course.new``; everything downstream relies on that ordering.
    """

    id: UUID
    slug: str
    title: str
    modules: tuple[CourseModule, ...] = ()

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        modules: tuple[CourseModule, ...] = (),
        course_id: UUID | None = None,
    ) -> Course:
        return Course(
            id=course_id or uuid4(),
            slug=slug,
            title=title,
            modules=tuple(sorted(modules, key=lambda m: m.position)),
        )

    def get_module(self, module_id: UUID) -> CourseModule | None:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    def module_index(self, module_id: UUID) -> int | None:
        for index, module in enumerate(self.modules):
            if module.id == module_id:
                return index
        return None

    def previous_module(self, module_id: UUID) -> CourseModule | None:
        """The module immediately before ``module_id``; None for the first."""
        index = self.module_index(module_id)
        if index is None or index == 0:
            return None
        return self.modules[index - 1]

    def is_first_module(self, module_id: UUID) -> bool:
        return bool(self.modules) and self.modules[0].id == module_id

    @property
    def lesson_ids(self) -> tuple[UUID, ...]:
        return tuple(lid for m in self.modules for lid in m.lesson_ids)

    @property
    def quiz_ids(self) -> tuple[UUID, ...]:
        return tuple(qid for m in self.modules for qid in m.quiz_ids)

    @property
    def assignment_ids(self) -> tuple[UUID, ...]:
        return tuple(aid for m in self.modules for aid in m.assignment_ids)
