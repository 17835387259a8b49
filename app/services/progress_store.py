"""The single write path for progress records.

Every persistence of a ``ProgressRecord`` goes through ``save_progress``:
it resolves the course, recomputes the derived fields and writes the
record.  Eviction of the cached summary is deferred until the unit of
work commits.  Schedulers and API handlers never call
``repos.progress.save`` directly.
"""

from __future__ import annotations

import logging

from app.db.unit_of_work import Repositories
from app.models.progress import ProgressRecord
from app.services.cache import cache_service, progress_cache_key
from app.services.progress_calculator import recalculate

logger = logging.getLogger(__name__)


async def save_progress(repos: Repositories, progress: ProgressRecord) -> ProgressRecord:
    course = await repos.courses.get_course(progress.course_id)
    if course is None:
        # Keep the last derived values rather than zeroing them.
        logger.warning(
            "Saving progress=%s without recalculation: course=%s not found",
            progress.id,
            progress.course_id,
        )
    else:
        recalculate(progress, course)

    await repos.progress.save(progress)
    key = progress_cache_key(progress.course_id, progress.student_id)
    repos.on_commit(lambda: cache_service.delete(key))
    return progress

