"""Async SQLAlchemy engine and session factory.

Both are built at import time from ``DATABASE_URL``.  Without it they are
None, and ``app.db.unit_of_work`` hands out the in-memory repositories
instead, which is how tests and local runs work.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _build_engine(url: str) -> AsyncEngine:
    # The worker holds one session per timeline, so a small pool suffices.
    return create_async_engine(
        url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=5,
        pool_pre_ping=True,
    )


engine: AsyncEngine | None = (
    _build_engine(SETTINGS.database_url) if SETTINGS.database_url else None
)
async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(engine, expire_on_commit=False) if engine is not None else None
)


@asynccontextmanager
async def lifespan_db():
    """Dispose of the pool on shutdown; a no-op without a database."""
    if engine is None:
        logger.info("No DATABASE_URL configured; using in-memory repositories")
        yield
        return

    logger.info("Database engine ready: %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
