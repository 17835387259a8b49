"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import ProgressRow
from app.models.progress import (
    AssignmentSubmission,
    CompletedLesson,
    CompletedModule,
    ProgressRecord,
    QuizResult,
    TimelineNotification,
    TimelineViolation,
)


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: UUID, course_id: UUID) -> ProgressRecord | None:
        stmt = select(ProgressRow).where(
            ProgressRow.student_id == student_id, ProgressRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row)

    async def list_for_course(
        self, course_id: UUID, student_ids: Iterable[UUID]
    ) -> list[ProgressRecord]:
        ids = list(student_ids)
        if not ids:
            return []
        stmt = select(ProgressRow).where(
            ProgressRow.course_id == course_id, ProgressRow.student_id.in_(ids)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(row) for row in rows]

    async def list_for_student(self, student_id: UUID) -> list[ProgressRecord]:
        stmt = select(ProgressRow).where(ProgressRow.student_id == student_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(row) for row in rows]

    async def save(self, progress: ProgressRecord) -> None:
        row = await self._session.get(ProgressRow, progress.id)
        if row is None:
            row = ProgressRow(
                id=progress.id,
                student_id=progress.student_id,
                course_id=progress.course_id,
            )
            self._session.add(row)

        row.completed_lessons = [
            {"lesson_id": str(e.lesson_id), "completed_at": e.completed_at.isoformat()}
            for e in progress.completed_lessons
        ]
        row.completed_modules = [
            {"module_id": str(e.module_id), "completed_at": e.completed_at.isoformat()}
            for e in progress.completed_modules
        ]
        row.quizzes = [
            {"quiz_id": str(q.quiz_id), "passed": q.passed, "score": q.score}
            for q in progress.quizzes
        ]
        row.assignments = [
            {"assignment_id": str(a.assignment_id), "submitted": a.submitted}
            for a in progress.assignments
        ]
        row.current_level = progress.current_level
        row.level_lock_enabled = progress.level_lock_enabled
        row.locked_level = progress.locked_level
        row.progress_percent = progress.progress_percent
        row.current_accessible_module = progress.current_accessible_module
        row.timeline_violations = [
            {
                "module_id": str(v.module_id),
                "deadline": v.deadline.isoformat(),
                "violated_at": v.violated_at.isoformat(),
                "demoted_from_module": str(v.demoted_from_module),
                "demoted_to_module": str(v.demoted_to_module),
                "reason": v.reason,
            }
            for v in progress.timeline_violations
        ]
        row.timeline_notifications = [
            {
                "seq": n.seq,
                "type": n.type,
                "module_id": str(n.module_id),
                "message": n.message,
                "sent_at": n.sent_at.isoformat(),
                "read": n.read,
            }
            for n in progress.timeline_notifications
        ]
        row.is_completed = progress.is_completed
        await self._session.flush()


def _row_to_progress(row: ProgressRow) -> ProgressRecord:
    return ProgressRecord(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        completed_lessons=[
            CompletedLesson(
                lesson_id=UUID(e["lesson_id"]),
                completed_at=datetime.fromisoformat(e["completed_at"]),
            )
            for e in row.completed_lessons or []
        ],
        completed_modules=[
            CompletedModule(
                module_id=UUID(e["module_id"]),
                completed_at=datetime.fromisoformat(e["completed_at"]),
            )
            for e in row.completed_modules or []
        ],
        quizzes=[
            QuizResult(
                quiz_id=UUID(q["quiz_id"]),
                passed=bool(q.get("passed", False)),
                score=float(q.get("score", 0.0)),
            )
            for q in row.quizzes or []
        ],
        assignments=[
            AssignmentSubmission(
                assignment_id=UUID(a["assignment_id"]),
                submitted=bool(a.get("submitted", True)),
            )
            for a in row.assignments or []
        ],
        current_level=row.current_level,
        level_lock_enabled=row.level_lock_enabled,
        locked_level=row.locked_level,
        progress_percent=row.progress_percent,
        current_accessible_module=row.current_accessible_module,
        timeline_violations=[
            TimelineViolation(
                module_id=UUID(v["module_id"]),
                deadline=datetime.fromisoformat(v["deadline"]),
                violated_at=datetime.fromisoformat(v["violated_at"]),
                demoted_from_module=UUID(v["demoted_from_module"]),
                demoted_to_module=UUID(v["demoted_to_module"]),
                reason=v.get("reason", "MISSED_DEADLINE"),
            )
            for v in row.timeline_violations or []
        ],
        timeline_notifications=[
            TimelineNotification(
                seq=int(n["seq"]),
                type=n["type"],
                module_id=UUID(n["module_id"]),
                message=n["message"],
                sent_at=datetime.fromisoformat(n["sent_at"]),
                read=bool(n.get("read", False)),
            )
            for n in row.timeline_notifications or []
        ],
        is_completed=row.is_completed,
    )
