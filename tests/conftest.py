from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from app.db.unit_of_work import in_memory_store
from app.main import app
from app.models.course import Course, CourseModule
from app.models.progress import AssignmentSubmission, ProgressRecord, QuizResult
from app.models.timeline import ModuleTimeline
from app.services.cache import cache_service
from app.services.progress_store import save_progress

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Fixed clock for everything time-dependent.
T0 = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Fresh in-memory repositories for every test."""
    in_memory_store.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Builders (write straight into the in-memory store)
# ---------------------------------------------------------------------------


def make_course(
    *,
    modules: int = 3,
    lessons: int = 2,
    quizzes: int = 0,
    assignments: int = 0,
    slug: str = "intro-course",
) -> Course:
    """A course of ``modules`` modules, positions 10, 20, 30..."""
    course_id = uuid4()
    built = tuple(
        CourseModule.new(
            course_id=course_id,
            position=(i + 1) * 10,
            title=f"Module {i + 1}",
            lesson_ids=tuple(uuid4() for _ in range(lessons)),
            quiz_ids=tuple(uuid4() for _ in range(quizzes)),
            assignment_ids=tuple(uuid4() for _ in range(assignments)),
        )
        for i in range(modules)
    )
    course = Course.new(
        slug=slug, title=slug.replace("-", " ").title(), modules=built, course_id=course_id
    )
    in_memory_store.courses.add(course)
    return course


def make_department(*student_ids: UUID) -> UUID:
    department_id = uuid4()
    in_memory_store.students.add_department(department_id)
    for student_id in student_ids:
        in_memory_store.students.add_member(department_id, student_id)
    return department_id


def finish_module(
    progress: ProgressRecord, module: CourseModule, at: datetime = T0
) -> None:
    """Complete every lesson and assessment of a module, then the module itself."""
    for lesson_id in module.lesson_ids:
        progress.complete_lesson(lesson_id, at)
    for quiz_id in module.quiz_ids:
        progress.quizzes.append(QuizResult(quiz_id=quiz_id, passed=True, score=90.0))
    for assignment_id in module.assignment_ids:
        progress.assignments.append(AssignmentSubmission(assignment_id=assignment_id))
    progress.complete_module(module.id, at)


def make_progress(
    student_id: UUID, course: Course, *, finished_modules: int = 0
) -> ProgressRecord:
    progress = ProgressRecord.new(student_id=student_id, course_id=course.id)
    for module in course.modules[:finished_modules]:
        finish_module(progress, module)
    return store_progress(progress)


def store_progress(progress: ProgressRecord) -> ProgressRecord:
    async def _save() -> ProgressRecord:
        async with in_memory_store() as repos:
            return await save_progress(repos, progress)

    return asyncio.run(_save())


def load_progress(student_id: UUID, course_id: UUID) -> ProgressRecord | None:
    return asyncio.run(in_memory_store.progress.get(student_id, course_id))


def make_timeline(
    course: Course,
    module_index: int,
    department_id: UUID,
    *,
    deadline: datetime = T0,
    grace_period_hours: int = 24,
    warning_periods: tuple[int, ...] = (168, 72, 24),
) -> ModuleTimeline:
    timeline = ModuleTimeline.new(
        course_id=course.id,
        module_id=course.modules[module_index].id,
        department_id=department_id,
        deadline=deadline,
        grace_period_hours=grace_period_hours,
        warning_periods=warning_periods,
    )
    asyncio.run(in_memory_store.timelines.save(timeline))
    return timeline


def load_timeline(timeline_id: UUID) -> ModuleTimeline | None:
    return asyncio.run(in_memory_store.timelines.get(timeline_id))
