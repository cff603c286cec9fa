"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP pms_operations_total Reservation and folio operations by outcome
        # TYPE pms_operations_total counter
        pms_operations_total{operation="check_in",outcome="committed"} 12.0
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
    """Expose every registered metric in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
