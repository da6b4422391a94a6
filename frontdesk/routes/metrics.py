"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP frontdesk_room_charges_total Nightly room charges handled by the poster
        # TYPE frontdesk_room_charges_total counter
        frontdesk_room_charges_total{outcome="created"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Metrics in Prometheus text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
