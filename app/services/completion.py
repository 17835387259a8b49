"""Module completion and assessment access rules.

These functions are shared by the schedulers and the request-time
content gates, so they stay pure: they read a progress record and the
module's content ids, never mutate either, and never touch storage.

EFFECTIVE COMPLETION
--------------------
A module counts as complete when either
  1. it was explicitly completed (present in ``completed_modules``), or
  2. it has at least one lesson, every lesson is completed, every quiz
     has a passed attempt and every assignment has a submission.

Passing ``None`` for quizzes or assignments means "could not be
loaded"; that check is skipped and completion degrades to lessons-only.
A module with no lessons is never inferred complete.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from app.models.course import Course
from app.models.progress import ProgressRecord
from app.services.levels import can_access_level


@dataclass(frozen=True, slots=True)
class AssessmentAccess:
    has_access: bool
    reason: str
    remaining_lessons: tuple[UUID, ...] = ()


@dataclass(frozen=True, slots=True)
class ModuleAccess:
    has_access: bool
    reason: str
    module_index: int
    effectively_completed_count: int = 0


def is_module_effectively_complete(
    progress: ProgressRecord | None,
    module_id: UUID,
    lessons: Sequence[UUID],
    quizzes: Sequence[UUID] | None = None,
    assignments: Sequence[UUID] | None = None,
) -> bool:
    if progress is None:
        return False

    if progress.has_completed_module(module_id):
        return True

    if not lessons:
        return False

    done = progress.completed_lesson_ids()
    if not all(lesson_id in done for lesson_id in lessons):
        return False

    if quizzes and not all(progress.has_passed_quiz(q) for q in quizzes):
        return False

    if assignments and not all(
        progress.has_submitted_assignment(a) for a in assignments
    ):
        return False

    return True


def check_access_for_assessments(
    progress: ProgressRecord | None,
    module_id: UUID,
    lessons: Sequence[UUID],
    *,
    is_first_module: bool,
) -> AssessmentAccess:
    """Can the student open this module's quizzes and assignments?

    Depends only on lesson completion; quiz and assignment state never
    affects the answer.
    """
    if progress is None:
        if is_first_module:
            return AssessmentAccess(True, "First module is open to new students")
        return AssessmentAccess(False, "No progress found for this course")

    if not lessons:
        return AssessmentAccess(True, "No lessons to complete")

    done = progress.completed_lesson_ids()
    remaining = tuple(lesson_id for lesson_id in lessons if lesson_id not in done)
    if not remaining:
        return AssessmentAccess(True, "All lessons completed")

    return AssessmentAccess(
        False,
        f"Complete all lessons first to unlock assessments "
        f"({len(remaining)} of {len(lessons)} remaining)",
        remaining_lessons=remaining,
    )


def effectively_completed_modules(
    progress: ProgressRecord | None, course: Course
) -> list[UUID]:
    """Ids of every module in ``course`` that is effectively complete, in order."""
    return [
        module.id
        for module in course.modules
        if is_module_effectively_complete(
            progress,
            module.id,
            module.lesson_ids,
            module.quiz_ids,
            module.assignment_ids,
        )
    ]


def check_module_access(
    progress: ProgressRecord | None,
    course: Course,
    module_id: UUID,
    *,
    level: str | None = None,
    levels: Sequence[str] = (),
) -> ModuleAccess:
    """May the student open this module at all?

    Without a progress record only the first module is open. Otherwise a
    module opens once it is effectively complete itself, or once at least
    as many modules as its index are. Passing ``level`` also applies the
    admin level lock.
    """
    index = course.module_index(module_id)
    if index is None:
        raise ValueError("module not found in course")

    if progress is None:
        if index == 0:
            return ModuleAccess(True, "First module", index)
        return ModuleAccess(False, "Only first module is accessible", index)

    if level is not None and not can_access_level(progress, level, levels):
        return ModuleAccess(
            False, f"Level {level.upper()} is locked for this student", index
        )

    completed = len(effectively_completed_modules(progress, course))
    module = course.modules[index]
    if is_module_effectively_complete(
        progress, module.id, module.lesson_ids, module.quiz_ids, module.assignment_ids
    ):
        return ModuleAccess(True, "Module completed", index, completed)
    if index <= completed:
        return ModuleAccess(True, "Previous modules completed", index, completed)
    return ModuleAccess(False, "Previous modules not completed", index, completed)
