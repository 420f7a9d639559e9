"""
Analytics endpoint - report counts by category, status and department.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from reporthub.models.base import ReportAnalytics
from reporthub.services.container import EngineContainer, get_engine
from reporthub.services.report_store.base import StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("", response_model=ReportAnalytics)
def get_analytics(engine: EngineContainer = Depends(get_engine)):
    """Counts over every stored report, duplicates included, plus escalation stats."""
    try:
        return engine.report_service.analytics()
    except StoreError as e:
        logger.error(f"GET /analytics - failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute analytics: {str(e)}"
        )
