# sojourn_booking/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sojourn_booking.config import ALLOWED_ORIGINS
from sojourn_booking.logging_config import setup_logging
from sojourn_booking.middleware import RequestIDMiddleware
from sojourn_booking.routes.admin import router as admin_router
from sojourn_booking.routes.availability import router as availability_router
from sojourn_booking.routes.health import router as health_router
from sojourn_booking.routes.metrics import router as metrics_router
from sojourn_booking.routes.reservations import router as reservations_router
from sojourn_booking.routes.webhook import router as webhook_router

API_PREFIX = "/api/v1"

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Sojourn Reservations API",
    description="Room availability, reservation lifecycle and payment reconciliation",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(availability_router, prefix=API_PREFIX, tags=["Availability"])
app.include_router(reservations_router, prefix=API_PREFIX, tags=["Reservations"])
app.include_router(webhook_router, prefix=API_PREFIX, tags=["Webhooks"])
app.include_router(admin_router, prefix=API_PREFIX, tags=["Admin"])


@app.on_event("startup")
def startup_event() -> None:
    """Initialize application on startup."""
    from sojourn_booking.db.engine import engine
    from sojourn_booking.services.reaper import sweep_abandoned_quietly

    logger.info("FastAPI application starting up...")

    # Clear out anything abandoned while the service was down
    result = sweep_abandoned_quietly(engine)

    logger.info("FastAPI application initialized", swept=result.total_removed)
