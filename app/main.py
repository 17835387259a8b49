"""API process: ops surface for timelines, progress reads and health.

The enforcement and warning jobs do not run here; see ``app.worker``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager

from fastapi import FastAPI

from app.api import health, metrics_endpoint, progress, timelines
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with AsyncExitStack() as stack:
        await stack.enter_async_context(lifespan_db())
        await stack.enter_async_context(lifespan_redis())
        yield


app = FastAPI(
    title="progress-timeline-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url=None,
)

for module in (metrics_endpoint, health, progress, timelines):
    app.include_router(module.router)

logger.info(
    "API configured env=%s database=%s cache=%s",
    SETTINGS.app_env,
    "postgres" if SETTINGS.database_url else "in-memory",
    "redis" if SETTINGS.redis_url else "in-memory",
)
