"""
FastAPI Main Application Entry Point for the GEA Member Portal.

This is the reservation engine backend that handles:
- Facility booking with conflict detection and usage quotas
- Approval, denial, cancellation and bumping of reservations
- Nightly maintenance (bump window promotion, guest list reminders)
- RSO daily summary
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gea_portal.core.config import settings
from gea_portal.core.exceptions import (
    BookingRejectedError,
    PortalException,
)
from gea_portal.api.routes import reservation_router


# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Start background scheduler (one worker only)

    Shutdown:
    - Stop scheduler gracefully
    """
    logger.info(f"🚀 Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Scheduler enabled: {settings.enable_scheduler}")
    logger.info(f"Run scheduler (this instance): {settings.run_scheduler}")

    app.state.scheduler = None

    # Only one worker/container should set RUN_SCHEDULER=true
    should_run_scheduler = settings.enable_scheduler and settings.run_scheduler

    if should_run_scheduler:
        try:
            from gea_portal.services.scheduler import get_scheduler
            app.state.scheduler = get_scheduler()
            app.state.scheduler.start()
            logger.info("✅ Background scheduler started")
        except Exception as e:
            logger.error(f"❌ Failed to start scheduler: {e}")

    yield

    if app.state.scheduler and app.state.scheduler.is_running:
        app.state.scheduler.stop()
        logger.info("✅ Scheduler stopped")

    logger.info("👋 Shutting down...")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    # GEA Member Portal - Reservation Engine

    ## Booking Rules
    - **Tennis Court**: max 2 hours per session; past 3 hours in a week,
      bookings need board review
    - **Leobo / Whole Facility**: max 6 hours; one booking per month,
      further bookings need Management Officer review

    ## Reservation Lifecycle
    Pending → Tentative (excess) | Confirmed, Pending → Cancelled (deny),
    any active status → Cancelled (cancel). Tentative bookings confirm
    automatically once their bump window has passed.
    """,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PortalException)
async def portal_exception_handler(request, exc: PortalException):
    """Handle all PortalException subclasses."""
    if exc.status_code >= 500 and not isinstance(exc, BookingRejectedError):
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


app.include_router(reservation_router)


@app.get("/health", tags=["System"])
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns service status and scheduler health.
    """
    scheduler = getattr(app.state, 'scheduler', None)

    if scheduler is not None:
        scheduler_status = scheduler.get_health_status()
    else:
        scheduler_status = {"status": "disabled", "is_running": False, "jobs": []}

    return {
        "status": "degraded" if scheduler_status["status"] == "degraded" else "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "debug": settings.debug,
        "scheduler": scheduler_status,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/", tags=["System"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs" if settings.debug else "Docs disabled in production",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gea_portal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
