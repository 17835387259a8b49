"""Weighted progress percentage and next accessible module.

Runs on every save of a progress record (see ``progress_store``), so
``progress_percent`` and ``current_accessible_module`` are never stale.

WEIGHTS
-------
  lessons      0.70
  quizzes      0.20
  assignments  0.10

A weight drops out of both numerator and denominator only when the
course has nothing of that kind.  A course with two quizzes the student
has not passed still counts quizzes at 0%, which caps the score at 80%
until they are passed.
"""

from __future__ import annotations

import math
from uuid import UUID

from app.models.course import Course
from app.models.progress import ProgressRecord

LESSON_WEIGHT = 0.70
QUIZ_WEIGHT = 0.20
ASSIGNMENT_WEIGHT = 0.10


def calculate_progress(progress: ProgressRecord, course: Course) -> int:
    course_lessons = set(course.lesson_ids)
    course_modules = {m.id for m in course.modules}
    course_quizzes = set(course.quiz_ids)
    course_assignments = set(course.assignment_ids)

    weighted: list[tuple[float, float]] = []  # (percent, weight)

    if course_lessons:
        done = len(progress.completed_lesson_ids() & course_lessons)
        weighted.append((done / len(course_lessons) * 100, LESSON_WEIGHT))
    elif course_modules:
        done = sum(1 for m in progress.completed_modules if m.module_id in course_modules)
        weighted.append((done / len(course_modules) * 100, LESSON_WEIGHT))

    if course_quizzes:
        passed = {q.quiz_id for q in progress.quizzes if q.passed} & course_quizzes
        weighted.append((len(passed) / len(course_quizzes) * 100, QUIZ_WEIGHT))

    if course_assignments:
        submitted = {
            a.assignment_id for a in progress.assignments if a.submitted
        } & course_assignments
        weighted.append(
            (len(submitted) / len(course_assignments) * 100, ASSIGNMENT_WEIGHT)
        )

    total_weight = sum(weight for _, weight in weighted)
    if total_weight == 0:
        return 0

    score = sum(percent * weight for percent, weight in weighted) / total_weight
    # Half-up rounding; round() would send 62.5 to 62.
    return max(0, min(100, math.floor(score + 0.5)))


def next_accessible_module(progress: ProgressRecord, course: Course) -> UUID | None:
    """First module in course order not yet completed; None when all are."""
    for module in course.modules:
        if not progress.has_completed_module(module.id):
            return module.id
    return None


def recalculate(progress: ProgressRecord, course: Course) -> None:
    progress.progress_percent = calculate_progress(progress, course)
    progress.current_accessible_module = next_accessible_module(progress, course)
