"""PostgreSQL implementation of TimelineRepo."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import ModuleTimelineRow
from app.models.timeline import MissedDeadline, ModuleTimeline, WarningSent


class PgTimelineRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, timeline_id: UUID) -> ModuleTimeline | None:
        row = await self._session.get(ModuleTimelineRow, timeline_id)
        return _row_to_timeline(row) if row is not None else None

    async def find(
        self, course_id: UUID, module_id: UUID, department_id: UUID
    ) -> ModuleTimeline | None:
        stmt = select(ModuleTimelineRow).where(
            ModuleTimelineRow.course_id == course_id,
            ModuleTimelineRow.module_id == module_id,
            ModuleTimelineRow.department_id == department_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_timeline(row) if row is not None else None

    async def save(self, timeline: ModuleTimeline) -> None:
        row = await self._session.get(ModuleTimelineRow, timeline.id)
        if row is None:
            row = ModuleTimelineRow(id=timeline.id)
            self._session.add(row)

        row.course_id = timeline.course_id
        row.module_id = timeline.module_id
        row.department_id = timeline.department_id
        row.deadline = timeline.deadline
        row.grace_period_hours = timeline.grace_period_hours
        row.warning_periods = list(timeline.warning_periods)
        row.is_active = timeline.is_active
        row.enable_warnings = timeline.enable_warnings
        row.description = timeline.description
        row.created_by = timeline.created_by
        row.missed_deadline_students = [
            {
                "student_id": str(m.student_id),
                "missed_at": m.missed_at.isoformat(),
                "previous_module": str(m.previous_module) if m.previous_module else None,
                "demoted_at": m.demoted_at.isoformat() if m.demoted_at else None,
            }
            for m in timeline.missed_deadline_students
        ]
        row.warnings_sent = [
            {
                "student_id": str(w.student_id),
                "warning_type": w.warning_type,
                "sent_at": w.sent_at.isoformat(),
            }
            for w in timeline.warnings_sent
        ]
        row.last_processed_at = timeline.last_processed_at
        await self._session.flush()

    async def list_for_department(
        self, course_id: UUID, department_id: UUID
    ) -> list[ModuleTimeline]:
        return await self._select(
            ModuleTimelineRow.course_id == course_id,
            ModuleTimelineRow.department_id == department_id,
        )

    async def list_due_for_enforcement(
        self, now: datetime, staleness: timedelta
    ) -> list[ModuleTimeline]:
        return await self._select(
            ModuleTimelineRow.is_active.is_(True),
            ModuleTimelineRow.deadline <= now,
            or_(
                ModuleTimelineRow.last_processed_at.is_(None),
                ModuleTimelineRow.last_processed_at <= now - staleness,
            ),
        )

    async def list_due_for_warnings(self, now: datetime) -> list[ModuleTimeline]:
        return await self._select(
            ModuleTimelineRow.is_active.is_(True),
            ModuleTimelineRow.enable_warnings.is_(True),
            ModuleTimelineRow.deadline > now,
        )

    async def list_scheduled_for_cleanup(
        self, now: datetime, within: timedelta
    ) -> list[ModuleTimeline]:
        # Grace hours vary per row, so the window test runs on the loaded rows.
        candidates = await self._select(
            ModuleTimelineRow.is_active.is_(True),
            ModuleTimelineRow.deadline <= now + within,
        )
        return [t for t in candidates if now < t.compliance_deadline <= now + within]

    async def _select(self, *criteria) -> list[ModuleTimeline]:
        stmt = (
            select(ModuleTimelineRow)
            .where(*criteria)
            .order_by(ModuleTimelineRow.deadline)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_timeline(row) for row in rows]


def _row_to_timeline(row: ModuleTimelineRow) -> ModuleTimeline:
    return ModuleTimeline(
        id=row.id,
        course_id=row.course_id,
        module_id=row.module_id,
        department_id=row.department_id,
        deadline=row.deadline,
        grace_period_hours=row.grace_period_hours,
        warning_periods=tuple(row.warning_periods or ()),
        is_active=row.is_active,
        enable_warnings=row.enable_warnings,
        description=row.description,
        created_by=row.created_by,
        missed_deadline_students=[
            MissedDeadline(
                student_id=UUID(m["student_id"]),
                missed_at=datetime.fromisoformat(m["missed_at"]),
                previous_module=(
                    UUID(m["previous_module"]) if m.get("previous_module") else None
                ),
                demoted_at=(
                    datetime.fromisoformat(m["demoted_at"])
                    if m.get("demoted_at")
                    else None
                ),
            )
            for m in row.missed_deadline_students or []
        ],
        warnings_sent=[
            WarningSent(
                student_id=UUID(w["student_id"]),
                warning_type=w["warning_type"],
                sent_at=datetime.fromisoformat(w["sent_at"]),
            )
            for w in row.warnings_sent or []
        ],
        last_processed_at=row.last_processed_at,
    )
