"""PostgreSQL implementation of CourseCatalog."""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseModuleRow, CourseRow, ModuleItemRow
from app.models.course import Course, CourseModule


class PgCourseCatalog:
    """Satisfies the CourseCatalog Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: UUID) -> Course | None:
        course_row = (
            await self._session.execute(select(CourseRow).where(CourseRow.id == course_id))
        ).scalar_one_or_none()
        if course_row is None:
            return None

        module_rows = (
            (
                await self._session.execute(
                    select(CourseModuleRow)
                    .where(CourseModuleRow.course_id == course_id)
                    .order_by(CourseModuleRow.position)
                )
            )
            .scalars()
            .all()
        )

        items: dict[UUID, dict[str, list[UUID]]] = defaultdict(
            lambda: {"lesson": [], "quiz": [], "assignment": []}
        )
        if module_rows:
            item_rows = (
                (
                    await self._session.execute(
                        select(ModuleItemRow)
                        .where(ModuleItemRow.module_id.in_([m.id for m in module_rows]))
                        .order_by(ModuleItemRow.position)
                    )
                )
                .scalars()
                .all()
            )
            for item in item_rows:
                bucket = items[item.module_id].get(item.type)
                if bucket is not None:
                    bucket.append(item.ref_id)

        modules = tuple(
            CourseModule(
                id=row.id,
                course_id=row.course_id,
                position=row.position,
                title=row.title,
                lesson_ids=tuple(items[row.id]["lesson"]),
                quiz_ids=tuple(items[row.id]["quiz"]),
                assignment_ids=tuple(items[row.id]["assignment"]),
            )
            for row in module_rows
        )
        return Course(
            id=course_row.id,
            slug=course_row.slug,
            title=course_row.title,
            modules=modules,
        )
