from __future__ import annotations

import copy
from datetime import datetime, timedelta
from typing import Protocol
from uuid import UUID

from app.models.timeline import ModuleTimeline


class TimelineRepo(Protocol):
    async def get(self, timeline_id: UUID) -> ModuleTimeline | None: ...
    async def find(
        self, course_id: UUID, module_id: UUID, department_id: UUID
    ) -> ModuleTimeline | None: ...
    async def save(self, timeline: ModuleTimeline) -> None: ...
    async def list_for_department(
        self, course_id: UUID, department_id: UUID
    ) -> list[ModuleTimeline]: ...
    async def list_due_for_enforcement(
        self, now: datetime, staleness: timedelta
    ) -> list[ModuleTimeline]: ...
    async def list_due_for_warnings(self, now: datetime) -> list[ModuleTimeline]: ...
    async def list_scheduled_for_cleanup(
        self, now: datetime, within: timedelta
    ) -> list[ModuleTimeline]: ...


def is_due_for_enforcement(
    timeline: ModuleTimeline, now: datetime, staleness: timedelta
) -> bool:
    if not timeline.is_active or timeline.deadline > now:
        return False
    return (
        timeline.last_processed_at is None
        or timeline.last_processed_at <= now - staleness
    )


def is_due_for_warnings(timeline: ModuleTimeline, now: datetime) -> bool:
    return timeline.is_active and timeline.enable_warnings and timeline.deadline > now


def is_scheduled_for_cleanup(
    timeline: ModuleTimeline, now: datetime, within: timedelta
) -> bool:
    """Active timelines whose grace period runs out inside the window."""
    return timeline.is_active and now < timeline.compliance_deadline <= now + within


class InMemoryTimelineRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, ModuleTimeline] = {}

    async def get(self, timeline_id: UUID) -> ModuleTimeline | None:
        timeline = self._by_id.get(timeline_id)
        return copy.deepcopy(timeline) if timeline is not None else None

    async def find(
        self, course_id: UUID, module_id: UUID, department_id: UUID
    ) -> ModuleTimeline | None:
        for t in self._by_id.values():
            if (t.course_id, t.module_id, t.department_id) == (
                course_id,
                module_id,
                department_id,
            ):
                return copy.deepcopy(t)
        return None

    def check_unique(self, timeline: ModuleTimeline) -> None:
        for t in self._by_id.values():
            if t.id != timeline.id and (
                t.course_id,
                t.module_id,
                t.department_id,
            ) == (timeline.course_id, timeline.module_id, timeline.department_id):
                raise ValueError("timeline already exists for this module and department")

    async def save(self, timeline: ModuleTimeline) -> None:
        self.check_unique(timeline)
        self._by_id[timeline.id] = copy.deepcopy(timeline)

    async def list_for_department(
        self, course_id: UUID, department_id: UUID
    ) -> list[ModuleTimeline]:
        return self._select(
            lambda t: t.course_id == course_id and t.department_id == department_id
        )

    async def list_due_for_enforcement(
        self, now: datetime, staleness: timedelta
    ) -> list[ModuleTimeline]:
        return self._select(lambda t: is_due_for_enforcement(t, now, staleness))

    async def list_due_for_warnings(self, now: datetime) -> list[ModuleTimeline]:
        return self._select(lambda t: is_due_for_warnings(t, now))

    async def list_scheduled_for_cleanup(
        self, now: datetime, within: timedelta
    ) -> list[ModuleTimeline]:
        return self._select(lambda t: is_scheduled_for_cleanup(t, now, within))

    def _select(self, predicate) -> list[ModuleTimeline]:
        matches = [copy.deepcopy(t) for t in self._by_id.values() if predicate(t)]
        return sorted(matches, key=lambda t: t.deadline)
