"""
Report endpoints - API routes for citizen report submission, retrieval, status changes and resolution.

Handlers are sync: duplicate detection may wait on the similarity oracle,
so FastAPI runs them in its threadpool.
"""

from typing import List
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from reporthub.models.base import ResolutionResponse, StatusUpdateResponse
from reporthub.models.report import Report, ReportCreate, ResolveRequest, StatusUpdateRequest, SubmissionResult
from reporthub.services.container import EngineContainer, get_engine
from reporthub.services.report_service import InvalidReportError, ResolutionNotFoundError
from reporthub.services.report_store.base import ReportNotFoundError, StoreError
from reporthub.services.status_workflow import InvalidStatusTransitionError, StatusWorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SubmissionResult)
def submit_report(report: ReportCreate, engine: EngineContainer = Depends(get_engine)):
    """
    Submit a new citizen report.

    This endpoint:
    1. Validates the report data
    2. Checks open reports within the duplicate radius for a matching photo
    3. Stores it as a new primary or as a duplicate of the matched report

    Returns the submission result with the assigned id and SLA deadline.
    """
    logger.info(f"POST /reports - category={report.category}, severity={report.severity.value}")
    try:
        result = engine.report_service.submit_report(
            latitude=report.latitude,
            longitude=report.longitude,
            photo_ref=report.photo_ref,
            triage=report.to_triage(),
            description=report.description,
        )
    except InvalidReportError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except StoreError as e:
        logger.error(f"POST /reports - Report creation failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Report creation failed: {str(e)}"
        )
    return result


@router.get("", response_model=List[Report])
def get_reports(
    include_duplicates: bool = Query(False, description="Include reports merged into a primary"),
    engine: EngineContainer = Depends(get_engine)
):
    """Reports ordered by escalated, urgent, severity, duplicate_count, created_at (all descending)."""
    try:
        return engine.report_service.list_reports(include_duplicates=include_duplicates)
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve reports: {str(e)}",
        )


@router.get("/{report_id}", response_model=Report)
def get_report(report_id: int, engine: EngineContainer = Depends(get_engine)):
    try:
        return engine.report_service.get_report(report_id)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve report: {str(e)}",
        )


@router.patch("/{report_id}/status", response_model=StatusUpdateResponse)
def change_status(
    report_id: int,
    request: StatusUpdateRequest,
    engine: EngineContainer = Depends(get_engine)
):
    """
    Change report status.

    - pending and verified may move between each other
    - resolved is terminal and clears any escalation

    Raises:
        404: Report not found
        400: Invalid status transition
        500: Store failure
    """
    try:
        before = engine.report_service.get_report(report_id)
        updated = engine.report_service.update_status(report_id, request.status)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update status: {str(e)}"
        )

    return StatusUpdateResponse(
        message=f"Status updated to {updated.status.value}",
        report_id=report_id,
        status=updated.status.value,
        cleared_escalation=before.escalated and not updated.escalated,
    )


@router.get("/{report_id}/allowed-transitions")
def get_allowed_transitions(report_id: int, engine: EngineContainer = Depends(get_engine)):
    try:
        report = engine.report_service.get_report(report_id)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return {
        "success": True,
        "current_status": report.status.value,
        "allowed_transitions": StatusWorkflowEngine.get_allowed_transitions(report.status),
    }


@router.post("/{report_id}/resolve", response_model=ResolutionResponse)
def resolve_report(
    report_id: int,
    request: ResolveRequest,
    engine: EngineContainer = Depends(get_engine)
):
    """
    Resolve a report with a photo of the repaired site.

    The before and after photos are compared by the vision model. When it is
    unavailable the resolution is still recorded, flagged NEEDS_REVIEW.
    Any escalation is cleared.

    Raises:
        404: Report not found
        400: Report already resolved
        422: Missing resolution photo
        500: Store failure
    """
    logger.info(f"POST /reports/{report_id}/resolve")
    try:
        result = engine.report_service.resolve_with_photo(report_id, request.resolution_photo_ref)
    except ReportNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except InvalidReportError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except StoreError as e:
        logger.error(f"POST /reports/{report_id}/resolve - failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to resolve report: {str(e)}"
        )
    result.message = f"Report resolved, verification {result.verification.recommendation}"
    return result


@router.get("/{report_id}/resolution", response_model=ResolutionResponse)
def get_resolution(report_id: int, engine: EngineContainer = Depends(get_engine)):
    """Before/after photos and the recorded verification of a resolved report."""
    try:
        return engine.report_service.get_resolution(report_id)
    except (ReportNotFoundError, ResolutionNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to retrieve resolution: {str(e)}",
        )
