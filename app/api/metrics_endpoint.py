"""Prometheus scrape endpoint.

Only the API process serves /metrics.  Runs triggered through the API
count here; the worker's own counters are per-process and reach
Prometheus through its logs' run summaries until it gets an exporter.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
