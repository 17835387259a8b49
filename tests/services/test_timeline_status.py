from __future__ import annotations

import asyncio
from datetime import timedelta
from uuid import uuid4

from app.db.unit_of_work import in_memory_store
from app.services.timeline_enforcement import run_enforcement
from app.services.timeline_status import (
    check_timeline_access,
    department_status_report,
    student_status,
    violations_for_student,
)
from tests.conftest import (
    T0,
    make_course,
    make_department,
    make_progress,
    make_timeline,
    store_progress,
)


def _report(course_id, department_id, now):
    async def _go():
        async with in_memory_store() as repos:
            return await department_status_report(repos, course_id, department_id, now)

    return asyncio.run(_go())


def test_student_status_precedence() -> None:
    course = make_course(modules=3)
    done, late, pending = uuid4(), uuid4(), uuid4()
    department = make_department(done, late, pending)
    done_progress = make_progress(done, course, finished_modules=2)
    make_progress(late, course, finished_modules=1)
    make_progress(pending, course, finished_modules=1)
    timeline = make_timeline(course, 1, department, deadline=T0)
    timeline.add_missed_deadline_student(late, course.modules[0].id, T0)

    module = course.modules[1]
    before = T0 - timedelta(hours=1)
    after = T0 + timedelta(hours=1)
    assert student_status(timeline, module, done, done_progress, after).status == "COMPLETED"
    assert student_status(timeline, module, late, None, after).status == "MISSED_DEADLINE"
    assert student_status(timeline, module, pending, None, after).status == "OVERDUE"
    assert student_status(timeline, module, pending, None, before).status == "IN_PROGRESS"


def test_effectively_complete_student_is_reported_completed() -> None:
    course = make_course(modules=3, lessons=2)
    student = uuid4()
    department = make_department(student)
    progress = make_progress(student, course, finished_modules=1)
    finished_at = T0 - timedelta(hours=3)
    for lesson_id in course.modules[1].lesson_ids:
        progress.complete_lesson(lesson_id, finished_at)
    store_progress(progress)
    make_timeline(course, 1, department, deadline=T0)

    report = _report(course.id, department, T0 + timedelta(hours=30))

    status = report[0].students[0]
    assert status.status == "COMPLETED"
    assert status.completed_at == finished_at

    # Enforcement agrees: nobody is demoted.
    summary = asyncio.run(run_enforcement(in_memory_store, now=T0 + timedelta(hours=30)))
    assert summary.demotion_count == 0


def test_department_report_lists_active_timelines_in_module_order() -> None:
    course = make_course(modules=3)
    student = uuid4()
    department = make_department(student)
    make_progress(student, course, finished_modules=1)
    third = make_timeline(course, 2, department, deadline=T0)
    second = make_timeline(course, 1, department, deadline=T0 + timedelta(days=7))

    report = _report(course.id, department, T0 + timedelta(hours=1))

    assert [t.timeline_id for t in report] == [second.id, third.id]
    assert report[0].is_overdue is False
    assert report[1].is_overdue is True
    assert [s.status for s in report[1].students] == ["OVERDUE"]


def test_department_report_flags_violations_after_enforcement() -> None:
    course = make_course(modules=3)
    student = uuid4()
    department = make_department(student)
    make_progress(student, course, finished_modules=1)
    make_timeline(course, 1, department, deadline=T0)
    asyncio.run(run_enforcement(in_memory_store, now=T0 + timedelta(hours=25)))

    report = _report(course.id, department, T0 + timedelta(hours=26))

    status = report[0].students[0]
    assert status.status == "MISSED_DEADLINE"
    assert status.has_missed_deadline
    assert status.has_violation


def test_timeline_access_without_timeline() -> None:
    access = check_timeline_access(None, uuid4(), T0)
    assert access.has_access
    assert access.reason == "No timeline restrictions"


def test_timeline_access_reasons() -> None:
    course = make_course(modules=2)
    timeline = make_timeline(course, 1, make_department(), deadline=T0)
    student = uuid4()

    on_time = check_timeline_access(timeline, student, T0 - timedelta(hours=1))
    in_grace = check_timeline_access(timeline, student, T0 + timedelta(hours=1))
    expired = check_timeline_access(timeline, student, T0 + timedelta(hours=25))

    assert on_time.reason == "Access granted"
    assert not on_time.is_overdue
    assert in_grace.reason == "Overdue - Within grace period"
    assert expired.reason == "Overdue - Grace period expired"
    assert all(a.has_access for a in (on_time, in_grace, expired))
    assert expired.deadline == T0
    assert expired.grace_period_hours == 24


def test_violations_for_student_across_courses() -> None:
    student = uuid4()
    department = make_department(student)
    first = make_course(modules=2, slug="first-course")
    second = make_course(modules=2, slug="second-course")
    for course in (first, second):
        make_progress(student, course, finished_modules=1)
    make_timeline(first, 1, department, deadline=T0)
    make_timeline(second, 1, department, deadline=T0 + timedelta(days=1))

    asyncio.run(run_enforcement(in_memory_store, now=T0 + timedelta(hours=25)))
    asyncio.run(
        run_enforcement(in_memory_store, now=T0 + timedelta(days=2, hours=1))
    )

    async def _go():
        async with in_memory_store() as repos:
            return await violations_for_student(repos, student)

    violations = asyncio.run(_go())
    assert [course_id for course_id, _ in violations] == [second.id, first.id]
