"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from reporthub.core.settings import settings
from reporthub.services.container import EngineContainer, get_engine


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check(engine: EngineContainer = Depends(get_engine)):
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "scheduler_running": engine.scheduler.is_running,
        "similarity_model": engine.oracle.get_model_info()["name"],
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/store")
def store_health(engine: EngineContainer = Depends(get_engine)):
    """
    Report store connectivity check.
    Performs a lightweight operation against the configured backend.
    """
    try:
        engine.store.ping()
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Report store connection failed: {str(e)}"
        )

    return {
        "status": "healthy",
        "store": engine.store.backend_name,
        "connected": True,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
