from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from uuid import UUID, uuid4

DEFAULT_GRACE_PERIOD_HOURS = 24
DEFAULT_WARNING_PERIODS: tuple[int, ...] = (168, 72, 24)

_NAMED_WARNING_TYPES = {168: "7_DAYS", 72: "3_DAYS", 24: "1_DAY"}


def warning_type_for(hours: int) -> str:
    """Name of the warning class fired ``hours`` before a deadline."""
    return _NAMED_WARNING_TYPES.get(hours, f"{hours}_HOURS")


@dataclass(frozen=True, slots=True)
class MissedDeadline:
    student_id: UUID
    missed_at: datetime
    previous_module: UUID | None = None
    demoted_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class WarningSent:
    student_id: UUID
    warning_type: str
    sent_at: datetime


@dataclass(slots=True)
class ModuleTimeline:
    """Deadline configuration for one (course, module, department).

    ``missed_deadline_students`` and ``warnings_sent`` are the idempotency
    ledgers: a student appears at most once in the former, and at most
    once per warning type in the latter.
    """

    id: UUID
    course_id: UUID
    module_id: UUID
    department_id: UUID
    deadline: datetime
    grace_period_hours: int = DEFAULT_GRACE_PERIOD_HOURS
    warning_periods: tuple[int, ...] = DEFAULT_WARNING_PERIODS
    is_active: bool = True
    enable_warnings: bool = True
    description: str | None = None
    created_by: UUID | None = None
    missed_deadline_students: list[MissedDeadline] = field(default_factory=list)
    warnings_sent: list[WarningSent] = field(default_factory=list)
    last_processed_at: datetime | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        module_id: UUID,
        department_id: UUID,
        deadline: datetime,
        grace_period_hours: int = DEFAULT_GRACE_PERIOD_HOURS,
        warning_periods: tuple[int, ...] = DEFAULT_WARNING_PERIODS,
        enable_warnings: bool = True,
        description: str | None = None,
        created_by: UUID | None = None,
    ) -> ModuleTimeline:
        return ModuleTimeline(
            id=uuid4(),
            course_id=course_id,
            module_id=module_id,
            department_id=department_id,
            deadline=deadline,
            grace_period_hours=grace_period_hours,
            warning_periods=tuple(sorted(warning_periods, reverse=True)),
            enable_warnings=enable_warnings,
            description=description,
            created_by=created_by,
        )

    @property
    def compliance_deadline(self) -> datetime:
        return self.deadline + timedelta(hours=self.grace_period_hours)

    def is_overdue(self, now: datetime) -> bool:
        return now > self.deadline

    def is_past_grace(self, now: datetime) -> bool:
        # Strictly after: a record exactly at deadline + grace is still compliant.
        return now > self.compliance_deadline

    # --- demotion ledger ---

    def has_student_missed_deadline(self, student_id: UUID) -> bool:
        return any(m.student_id == student_id for m in self.missed_deadline_students)

    def add_missed_deadline_student(
        self, student_id: UUID, previous_module: UUID | None, at: datetime
    ) -> bool:
        if self.has_student_missed_deadline(student_id):
            return False
        self.missed_deadline_students.append(
            MissedDeadline(
                student_id=student_id, missed_at=at, previous_module=previous_module
            )
        )
        return True

    def mark_student_demoted(self, student_id: UUID, at: datetime) -> None:
        for index, missed in enumerate(self.missed_deadline_students):
            if missed.student_id == student_id:
                self.missed_deadline_students[index] = replace(missed, demoted_at=at)
                return

    # --- warning ledger ---

    def should_send_warning(self, student_id: UUID, warning_type: str) -> bool:
        if not self.enable_warnings:
            return False
        return not any(
            w.student_id == student_id and w.warning_type == warning_type
            for w in self.warnings_sent
        )

    def record_warning_sent(
        self, student_id: UUID, warning_type: str, at: datetime
    ) -> None:
        self.warnings_sent.append(
            WarningSent(student_id=student_id, warning_type=warning_type, sent_at=at)
        )
