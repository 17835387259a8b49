from __future__ import annotations

from uuid import uuid4

from app.models.progress import AssignmentSubmission, ProgressRecord, QuizResult
from app.services.progress_calculator import (
    calculate_progress,
    next_accessible_module,
    recalculate,
)
from tests.conftest import T0, finish_module, make_course


def _record(course) -> ProgressRecord:
    return ProgressRecord.new(student_id=uuid4(), course_id=course.id)


def test_all_lessons_without_assessments_caps_at_lesson_weight() -> None:
    # 10 lessons, 2 quizzes, 1 assignment: quizzes and assignments still
    # weigh in at 0% because the course has them.
    course = make_course(modules=1, lessons=10, quizzes=2, assignments=1)
    progress = _record(course)
    for lesson in course.lesson_ids:
        progress.complete_lesson(lesson, T0)

    assert calculate_progress(progress, course) == 70


def test_course_without_assessments_renormalizes_to_lessons() -> None:
    course = make_course(modules=2, lessons=2)
    progress = _record(course)
    for lesson in course.lesson_ids:
        progress.complete_lesson(lesson, T0)

    assert calculate_progress(progress, course) == 100


def test_full_completion_is_100() -> None:
    course = make_course(modules=2, lessons=2, quizzes=1, assignments=1)
    progress = _record(course)
    for module in course.modules:
        finish_module(progress, module)

    assert calculate_progress(progress, course) == 100


def test_half_up_rounding() -> None:
    # 5 of 8 lessons, nothing else in the course: 62.5 -> 63
    course = make_course(modules=1, lessons=8)
    progress = _record(course)
    for lesson in course.lesson_ids[:5]:
        progress.complete_lesson(lesson, T0)

    assert calculate_progress(progress, course) == 63


def test_lessons_outside_the_course_are_ignored() -> None:
    course = make_course(modules=1, lessons=2)
    progress = _record(course)
    progress.complete_lesson(uuid4(), T0)
    progress.complete_lesson(course.lesson_ids[0], T0)

    assert calculate_progress(progress, course) == 50


def test_modules_stand_in_for_lessons_when_course_has_none() -> None:
    course = make_course(modules=4, lessons=0)
    progress = _record(course)
    progress.complete_module(course.modules[0].id, T0)

    assert calculate_progress(progress, course) == 25


def test_empty_course_is_zero() -> None:
    course = make_course(modules=0)
    assert calculate_progress(_record(course), course) == 0


def test_quiz_and_assignment_weights() -> None:
    course = make_course(modules=1, lessons=1, quizzes=1, assignments=1)
    progress = _record(course)
    progress.quizzes.append(QuizResult(quiz_id=course.quiz_ids[0], passed=True))
    progress.assignments.append(
        AssignmentSubmission(assignment_id=course.assignment_ids[0])
    )

    assert calculate_progress(progress, course) == 30


def test_next_accessible_module_is_first_incomplete() -> None:
    course = make_course(modules=3)
    progress = _record(course)
    progress.complete_module(course.modules[0].id, T0)

    assert next_accessible_module(progress, course) == course.modules[1].id


def test_next_accessible_module_none_when_all_complete() -> None:
    course = make_course(modules=2)
    progress = _record(course)
    for module in course.modules:
        progress.complete_module(module.id, T0)

    assert next_accessible_module(progress, course) is None


def test_recalculate_sets_both_derived_fields() -> None:
    course = make_course(modules=2, lessons=1)
    progress = _record(course)
    finish_module(progress, course.modules[0])

    recalculate(progress, course)
    assert progress.progress_percent == 50
    assert progress.current_accessible_module == course.modules[1].id
