from __future__ import annotations

from uuid import uuid4

import pytest

from app.models.progress import ProgressRecord
from app.services.levels import (
    LevelLockedError,
    LevelUpgradeError,
    LevelValidationError,
    can_access_level,
    set_student_level,
    upgrade_level,
)

LEVELS = ("L1", "L2", "L3")


def _record() -> ProgressRecord:
    return ProgressRecord.new(student_id=uuid4(), course_id=uuid4())


def test_set_level_normalizes_case() -> None:
    progress = _record()
    set_student_level(progress, LEVELS, level=" l2 ")
    assert progress.current_level == "L2"
    assert not progress.level_lock_enabled


def test_unknown_level_is_rejected() -> None:
    progress = _record()
    with pytest.raises(LevelValidationError, match="level must be one of L1, L2, L3"):
        set_student_level(progress, LEVELS, level="L9")
    assert progress.current_level == "L1"


def test_lock_pins_given_level() -> None:
    progress = _record()
    set_student_level(progress, LEVELS, level="L2", lock=True)
    assert progress.level_lock_enabled
    assert progress.locked_level == "L2"
    assert progress.current_level == "L2"


def test_lock_without_level_pins_current_level() -> None:
    progress = _record()
    progress.current_level = "L3"
    set_student_level(progress, LEVELS, lock=True)
    assert progress.locked_level == "L3"


def test_unlock_clears_locked_level() -> None:
    progress = _record()
    set_student_level(progress, LEVELS, level="L2", lock=True)
    set_student_level(progress, LEVELS, lock=False)
    assert not progress.level_lock_enabled
    assert progress.locked_level is None
    assert progress.current_level == "L2"


def test_can_access_level_without_lock() -> None:
    assert can_access_level(_record(), "L3", LEVELS)


def test_lock_denies_higher_levels() -> None:
    progress = _record()
    set_student_level(progress, LEVELS, level="L2", lock=True)
    assert can_access_level(progress, "L1", LEVELS)
    assert can_access_level(progress, "l2", LEVELS)
    assert not can_access_level(progress, "L3", LEVELS)


def test_unknown_level_is_denied_under_lock() -> None:
    progress = _record()
    set_student_level(progress, LEVELS, level="L1", lock=True)
    assert not can_access_level(progress, "expert", LEVELS)


def _finished(level: str = "L1") -> ProgressRecord:
    progress = ProgressRecord.new(student_id=uuid4(), course_id=uuid4(), level=level)
    progress.progress_percent = 100
    return progress


def test_upgrade_moves_to_next_level() -> None:
    progress = _finished("L1")
    assert upgrade_level(progress, LEVELS) == "L2"
    assert progress.current_level == "L2"
    assert not progress.is_completed


def test_upgrade_at_last_level_completes_course() -> None:
    progress = _finished("L3")
    assert upgrade_level(progress, LEVELS) is None
    assert progress.current_level == "L3"
    assert progress.is_completed


def test_upgrade_refused_while_locked() -> None:
    progress = _finished("L1")
    set_student_level(progress, LEVELS, lock=True)
    with pytest.raises(LevelLockedError):
        upgrade_level(progress, LEVELS)
    assert progress.current_level == "L1"


def test_upgrade_refused_below_full_progress() -> None:
    progress = _finished("L1")
    progress.progress_percent = 99
    with pytest.raises(LevelUpgradeError, match="100%"):
        upgrade_level(progress, LEVELS)
    assert progress.current_level == "L1"


def test_upgrade_refused_for_unconfigured_level() -> None:
    progress = _finished("EXPERT")
    with pytest.raises(LevelUpgradeError, match="cannot determine next level"):
        upgrade_level(progress, LEVELS)
