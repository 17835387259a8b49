from __future__ import annotations

from typing import Protocol
from uuid import UUID

STUDENT_ROLE = "student"


class StudentDirectory(Protocol):
    async def department_exists(self, department_id: UUID) -> bool: ...
    async def list_student_ids(self, department_id: UUID) -> list[UUID]: ...


class InMemoryStudentDirectory:
    def __init__(self) -> None:
        # department_id -> {user_id: roles}
        self._rosters: dict[UUID, dict[UUID, frozenset[str]]] = {}

    async def department_exists(self, department_id: UUID) -> bool:
        return department_id in self._rosters

    async def list_student_ids(self, department_id: UUID) -> list[UUID]:
        roster = self._rosters.get(department_id, {})
        return [uid for uid, roles in roster.items() if STUDENT_ROLE in roles]

    def add_department(self, department_id: UUID) -> None:
        self._rosters.setdefault(department_id, {})

    def add_member(
        self,
        department_id: UUID,
        user_id: UUID,
        roles: frozenset[str] = frozenset({STUDENT_ROLE}),
    ) -> None:
        self._rosters.setdefault(department_id, {})[user_id] = roles
