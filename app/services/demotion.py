from __future__ import annotations

import logging
from uuid import UUID

from app.models.course import Course
from app.models.progress import ProgressRecord

logger = logging.getLogger(__name__)


def demote_to_module(
    progress: ProgressRecord, course: Course | None, target_module_id: UUID
) -> bool:
    """Move a student back so that ``target_module_id`` is their current module.

    Drops every completed module positioned after the target, and every
    completed lesson that belongs to one of those modules.  Completions at
    or before the target are left as they are.  Returns False, changing
    nothing, when the course or the target module cannot be resolved.
    """
    if course is None:
        logger.warning(
            "Demotion skipped: course=%s not found for progress=%s",
            progress.course_id,
            progress.id,
        )
        return False

    target_index = course.module_index(target_module_id)
    if target_index is None:
        logger.warning(
            "Demotion skipped: module=%s not in course=%s",
            target_module_id,
            course.id,
        )
        return False

    later_modules = course.modules[target_index + 1 :]
    trimmed_module_ids = {m.id for m in later_modules}
    trimmed_lesson_ids = {lid for m in later_modules for lid in m.lesson_ids}

    progress.completed_modules = [
        entry
        for entry in progress.completed_modules
        if entry.module_id not in trimmed_module_ids
    ]
    progress.completed_lessons = [
        entry
        for entry in progress.completed_lessons
        if entry.lesson_id not in trimmed_lesson_ids
    ]
    progress.current_accessible_module = target_module_id

    logger.info(
        "Demoted student=%s course=%s to module=%s (dropped %d later modules)",
        progress.student_id,
        course.id,
        target_module_id,
        len(trimmed_module_ids),
    )
    return True
