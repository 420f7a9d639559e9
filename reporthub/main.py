"""
Civic Report Hub - FastAPI Application Entry Point

Citizen reports of civic issues: duplicate detection at submission and
SLA-based escalation of overdue reports.

DESIGN PRINCIPLES:
- Triage (category, severity) happens upstream; this service does not classify
- Duplicate detection never blocks a submission
- Escalation is monotonic while a report is open; only resolution clears it
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reporthub.core.settings import settings
from reporthub.routes import analytics, escalations, health, reports
from reporthub.services.container import build_engine

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Civic issue reports with duplicate detection and SLA escalation",
    debug=settings.DEBUG
)


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch Pydantic validation errors and log them."""
    logger.warning(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors(), "body": exc.body}
    )


# CORS - origins come from settings, never "*".
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Build the engine (store, oracle, sink, scheduler) and start the
    escalation scheduler. An engine already on app.state is kept.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    if getattr(app.state, "engine", None) is None:
        try:
            app.state.engine = build_engine(settings)
        except Exception as e:
            logger.error(f"Engine initialization failed: {e}", exc_info=True)
            raise

    if settings.ESCALATION_SCHEDULER_ENABLED:
        app.state.engine.scheduler.start(
            interval_minutes=settings.ESCALATION_SWEEP_INTERVAL_MINUTES,
            run_immediately=settings.ESCALATION_SWEEP_ON_START,
        )
    else:
        logger.info("Escalation scheduler disabled (ESCALATION_SCHEDULER_ENABLED=false)")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup on application shutdown.
    """
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        # stop() joins the sweep thread; keep the event loop free meanwhile.
        await run_in_threadpool(engine.scheduler.stop)
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(reports.router)
app.include_router(escalations.router)
app.include_router(analytics.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "escalations": "/escalations",
        "analytics": "/analytics"
    }
