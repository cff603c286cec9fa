# pms_core/main.py

import structlog
from fastapi import FastAPI

from pms_core.logging_config import setup_logging
from pms_core.middleware import RequestIDMiddleware
from pms_core.routes.health import router as health_router
from pms_core.routes.metrics import router as metrics_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="PMS Core",
    description="Operational endpoints for the reservation and folio engine",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
