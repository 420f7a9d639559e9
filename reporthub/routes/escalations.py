"""
Escalation endpoints - overdue reports, escalation stats and manual sweeps.
"""

from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from reporthub.models.base import EscalationStats, SweepResponse
from reporthub.models.report import Report
from reporthub.services.container import EngineContainer, get_engine
from reporthub.services.notification import LogNotificationSink
from reporthub.services.report_store.base import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/escalations", tags=["Escalations"])


@router.get("", response_model=List[Report])
def get_escalations(engine: EngineContainer = Depends(get_engine)):
    """Escalated, unresolved reports, earliest SLA deadline first."""
    try:
        return engine.report_service.list_escalations()
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve escalations: {str(e)}"
        )


@router.get("/stats", response_model=EscalationStats)
def get_escalation_stats(engine: EngineContainer = Depends(get_engine)):
    try:
        return engine.report_service.escalation_stats()
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute escalation stats: {str(e)}"
        )


@router.post("/sweep", response_model=SweepResponse)
def run_sweep(engine: EngineContainer = Depends(get_engine)):
    """
    Run one escalation sweep now.

    Same work the background scheduler does on each tick; safe to call
    while the scheduler is running.
    """
    try:
        result = engine.scheduler.sweep()
    except StoreError as e:
        logger.error(f"Manual escalation sweep failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Escalation sweep failed: {str(e)}"
        )

    return SweepResponse(
        message=f"{len(result.escalated_ids)} escalated, {len(result.notified_ids)} notified",
        escalated_ids=result.escalated_ids,
        notified_ids=result.notified_ids,
        failed_ids=result.failed_ids,
    )


@router.get("/alerts")
def get_alert_log(limit: int = 50, engine: EngineContainer = Depends(get_engine)):
    """
    Escalation messages recorded by the log sink (simulated sends).

    Empty when escalations are delivered to a webhook instead.
    """
    sink = engine.sink
    if not isinstance(sink, LogNotificationSink):
        return {"success": True, "count": 0, "note": "Escalations are delivered by webhook", "alerts": []}

    alerts = sink.get_alert_log(limit=limit)
    return {
        "success": True,
        "count": len(alerts),
        "note": "SIMULATED ALERTS - logged, not delivered",
        "alerts": alerts,
    }
