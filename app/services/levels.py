from __future__ import annotations

import logging
from collections.abc import Sequence

from app.models.progress import ProgressRecord

logger = logging.getLogger(__name__)


class LevelValidationError(ValueError):
    pass


def set_student_level(
    progress: ProgressRecord,
    levels: Sequence[str],
    *,
    level: str | None = None,
    lock: bool | None = None,
) -> None:
    """Admin override of a student's level and level lock.

    ``lock=True`` pins the student at ``level`` (or their current level);
    ``lock=False`` releases the pin; ``lock=None`` leaves it alone.
    """
    if level is not None:
        level = level.strip().upper()
        if level not in levels:
            logger.warning("Rejected unknown level=%s", level)
            raise LevelValidationError(f"level must be one of {', '.join(levels)}")
        progress.current_level = level

    if lock is not None:
        progress.level_lock_enabled = lock
        progress.locked_level = (level or progress.current_level) if lock else None
        if progress.locked_level and progress.current_level != progress.locked_level:
            progress.current_level = progress.locked_level

    logger.info(
        "Level set student=%s course=%s level=%s locked=%s",
        progress.student_id,
        progress.course_id,
        progress.current_level,
        progress.locked_level,
    )


def can_access_level(progress: ProgressRecord, level: str, levels: Sequence[str]) -> bool:
    """False for levels above ``locked_level`` while the lock is on."""
    if not progress.level_lock_enabled or progress.locked_level is None:
        return True
    try:
        return levels.index(level.upper()) <= levels.index(progress.locked_level)
    except ValueError:
        return False


class LevelLockedError(LevelValidationError):
    """Level changes are frozen by an admin lock."""


class LevelUpgradeError(LevelValidationError):
    """The student does not qualify for the next level yet."""


def upgrade_level(progress: ProgressRecord, levels: Sequence[str]) -> str | None:
    """Student-initiated promotion once the course is fully complete.

    Moves ``current_level`` to the next configured level and returns it.
    At the last level the course itself is marked completed and None is
    returned.
    """
    if progress.level_lock_enabled:
        raise LevelLockedError("level changes are locked by an admin")
    if progress.progress_percent < 100:
        raise LevelUpgradeError(
            f"cannot upgrade level until progress is 100% (at {progress.progress_percent}%)"
        )

    current = progress.current_level.upper()
    if current not in levels:
        raise LevelUpgradeError(f"cannot determine next level after {current}")

    index = levels.index(current)
    if index + 1 < len(levels):
        progress.current_level = levels[index + 1]
        logger.info(
            "Level upgraded student=%s course=%s %s -> %s",
            progress.student_id,
            progress.course_id,
            current,
            progress.current_level,
        )
        return progress.current_level

    progress.is_completed = True
    logger.info(
        "Course completed at last level student=%s course=%s level=%s",
        progress.student_id,
        progress.course_id,
        current,
    )
    return None
