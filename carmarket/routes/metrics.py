"""
Prometheus scrape endpoint.

Example:
    GET /metrics

    # HELP carmarket_listing_transitions_total Listing state transitions applied
    # TYPE carmarket_listing_transitions_total counter
    carmarket_listing_transitions_total{event="mark_sold"} 3.0
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Expose the process metrics registry in the Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
