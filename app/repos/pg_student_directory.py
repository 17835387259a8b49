"""PostgreSQL implementation of StudentDirectory."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import DepartmentMemberRow, DepartmentRow, UserRow
from app.repos.student_directory import STUDENT_ROLE


class PgStudentDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def department_exists(self, department_id: UUID) -> bool:
        stmt = select(DepartmentRow.id).where(DepartmentRow.id == department_id)
        return (await self._session.execute(stmt)).scalar_one_or_none() is not None

    async def list_student_ids(self, department_id: UUID) -> list[UUID]:
        stmt = (
            select(UserRow.id)
            .join(DepartmentMemberRow, DepartmentMemberRow.user_id == UserRow.id)
            .where(
                DepartmentMemberRow.department_id == department_id,
                UserRow.roles.contains([STUDENT_ROLE]),
            )
        )
        return list((await self._session.execute(stmt)).scalars().all())
