"""
Health and readiness check endpoints for container probes.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from pms_core.config import HOTEL_TIMEZONE, NOTIFICATION_WEBHOOK_URL
from pms_core.db.engine import check_engine_health

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health_check() -> JSONResponse:
    """
    Liveness probe endpoint. Returns 200 while the process is running.

    Example:
        >>> GET /health
        {"status": "ok"}
    """
    return JSONResponse(content={"status": "ok"})


@router.get("/ready")
def readiness_check() -> JSONResponse:
    """
    Readiness probe endpoint.

    Only the database decides readiness. The notification transport and the
    hotel timezone are reported so a misconfigured deployment is visible,
    but notifications are best-effort and never block traffic.

    Example:
        >>> GET /ready
        {"status": "ready",
         "checks": {"database": "ok", "notifications": "webhook"},
         "hotel_timezone": "Europe/Lisbon"}
    """
    checks = {
        "database": "ok" if check_engine_health() else "failed",
        "notifications": "webhook" if NOTIFICATION_WEBHOOK_URL else "log_only",
    }
    body = {"checks": checks, "hotel_timezone": HOTEL_TIMEZONE}

    if checks["database"] == "ok":
        return JSONResponse(content={"status": "ready", **body})

    logger.error("readiness_check_failed", reason="database_not_accessible")
    return JSONResponse(status_code=503, content={"status": "not ready", **body})
