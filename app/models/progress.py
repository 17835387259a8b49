from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

NotificationType = Literal["WARNING", "DEMOTION"]


@dataclass(frozen=True, slots=True)
class CompletedLesson:
    lesson_id: UUID
    completed_at: datetime


@dataclass(frozen=True, slots=True)
class CompletedModule:
    module_id: UUID
    completed_at: datetime


@dataclass(frozen=True, slots=True)
class QuizResult:
    quiz_id: UUID
    passed: bool
    score: float = 0.0


@dataclass(frozen=True, slots=True)
class AssignmentSubmission:
    assignment_id: UUID
    submitted: bool = True


@dataclass(frozen=True, slots=True)
class TimelineViolation:
    module_id: UUID
    deadline: datetime
    violated_at: datetime
    demoted_from_module: UUID
    demoted_to_module: UUID
    reason: str = "MISSED_DEADLINE"


@dataclass(frozen=True, slots=True)
class TimelineNotification:
    """A deadline reminder or demotion notice shown to the student.

    ``seq`` is minted at append time and is unique within one progress
    record; it is the handle used to mark the notification read.
    """

    seq: int
    type: NotificationType
    module_id: UUID
    message: str
    sent_at: datetime
    read: bool = False


@dataclass(slots=True)
class ProgressRecord:
    """Per (student, course) aggregate.

    Entry lists hold frozen value records and only ever grow, except
    when a demotion trims completions beyond the target module.
    ``progress_percent`` and ``current_accessible_module`` are derived;
    they are recomputed by ``save_progress`` and must not be set by hand.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    completed_lessons: list[CompletedLesson] = field(default_factory=list)
    completed_modules: list[CompletedModule] = field(default_factory=list)
    quizzes: list[QuizResult] = field(default_factory=list)
    assignments: list[AssignmentSubmission] = field(default_factory=list)
    current_level: str = "L1"
    level_lock_enabled: bool = False
    locked_level: str | None = None
    progress_percent: int = 0
    current_accessible_module: UUID | None = None
    timeline_violations: list[TimelineViolation] = field(default_factory=list)
    timeline_notifications: list[TimelineNotification] = field(default_factory=list)
    is_completed: bool = False

    @staticmethod
    def new(*, student_id: UUID, course_id: UUID, level: str = "L1") -> ProgressRecord:
        return ProgressRecord(
            id=uuid4(), student_id=student_id, course_id=course_id, current_level=level
        )

    # --- completion lookups ---

    def completed_module(self, module_id: UUID) -> CompletedModule | None:
        for entry in self.completed_modules:
            if entry.module_id == module_id:
                return entry
        return None

    def has_completed_module(self, module_id: UUID) -> bool:
        return self.completed_module(module_id) is not None

    def completed_lesson_ids(self) -> set[UUID]:
        return {entry.lesson_id for entry in self.completed_lessons}

    def has_passed_quiz(self, quiz_id: UUID) -> bool:
        return any(q.quiz_id == quiz_id and q.passed for q in self.quizzes)

    def has_submitted_assignment(self, assignment_id: UUID) -> bool:
        return any(
            a.assignment_id == assignment_id and a.submitted for a in self.assignments
        )

    # --- completion events (driven by the course endpoints) ---

    def complete_lesson(self, lesson_id: UUID, at: datetime) -> None:
        if lesson_id not in self.completed_lesson_ids():
            self.completed_lessons.append(CompletedLesson(lesson_id, at))

    def complete_module(self, module_id: UUID, at: datetime) -> None:
        if not self.has_completed_module(module_id):
            self.completed_modules.append(CompletedModule(module_id, at))

    # --- timeline bookkeeping ---

    def has_violation_for(self, module_id: UUID, deadline: datetime) -> bool:
        return any(
            v.module_id == module_id and v.deadline == deadline
            for v in self.timeline_violations
        )

    def add_timeline_violation(
        self,
        *,
        module_id: UUID,
        deadline: datetime,
        violated_at: datetime,
        demoted_from_module: UUID,
        demoted_to_module: UUID,
        reason: str = "MISSED_DEADLINE",
    ) -> TimelineViolation:
        violation = TimelineViolation(
            module_id=module_id,
            deadline=deadline,
            violated_at=violated_at,
            demoted_from_module=demoted_from_module,
            demoted_to_module=demoted_to_module,
            reason=reason,
        )
        self.timeline_violations.append(violation)
        return violation

    def add_timeline_notification(
        self,
        type: NotificationType,
        module_id: UUID,
        message: str,
        sent_at: datetime,
    ) -> TimelineNotification:
        next_seq = max((n.seq for n in self.timeline_notifications), default=0) + 1
        notification = TimelineNotification(
            seq=next_seq,
            type=type,
            module_id=module_id,
            message=message,
            sent_at=sent_at,
        )
        self.timeline_notifications.append(notification)
        return notification

    def mark_notification_read(self, seq: int) -> bool:
        for index, notification in enumerate(self.timeline_notifications):
            if notification.seq == seq:
                if not notification.read:
                    self.timeline_notifications[index] = replace(notification, read=True)
                return True
        return False

    def recent_notifications(self, limit: int = 50) -> list[TimelineNotification]:
        ordered = sorted(
            self.timeline_notifications,
            key=lambda n: (n.sent_at, n.seq),
            reverse=True,
        )
        return ordered[:limit]

    @property
    def unread_notification_count(self) -> int:
        return sum(1 for n in self.timeline_notifications if not n.read)
