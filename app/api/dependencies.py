"""Request-scoped dependencies shared by the routers.

Handlers never import ``unit_of_work`` directly; they ask for it here so
tests can swap the clock or the storage with ``app.dependency_overrides``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime

from app.db import unit_of_work as uow_module
from app.db.unit_of_work import Repositories, UnitOfWork
from app.services.timeline_runs import utcnow


def get_unit_of_work() -> UnitOfWork:
    """The factory itself, for handlers that open one transaction per item."""
    return uow_module.unit_of_work


async def get_repos() -> AsyncIterator[Repositories]:
    """One unit of work spanning the request: commit on success, rollback on error."""
    async with uow_module.unit_of_work() as repos:
        yield repos


def get_now() -> datetime:
    return utcnow()
