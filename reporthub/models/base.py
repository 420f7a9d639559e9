"""
Pydantic base models for API responses.

DESIGN PRINCIPLE:
- Models should reflect data structure, not business logic
- Keep models simple and focused on validation
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from reporthub.models.report import ResolutionVerification


class BaseResponse(BaseModel):
    """
    Base response model for API responses.
    All API responses can extend this for consistency.
    """
    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StatusUpdateResponse(BaseResponse):
    report_id: int
    status: str
    cleared_escalation: bool = False


class SweepResponse(BaseResponse):
    escalated_ids: List[int] = Field(default_factory=list)
    notified_ids: List[int] = Field(default_factory=list)
    failed_ids: List[int] = Field(default_factory=list)


class EscalationStats(BaseModel):
    total_escalated: int = 0
    pending_escalated: int = 0
    resolved_escalated: int = 0


class ReportAnalytics(BaseModel):
    """Counts over all stored reports, duplicates included."""
    total_reports: int = 0
    primary_reports: int = 0
    duplicate_reports: int = 0
    urgent_reports: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_department: Dict[str, int] = Field(default_factory=dict)
    by_severity: Dict[str, int] = Field(default_factory=dict)
    escalation_stats: EscalationStats = Field(default_factory=EscalationStats)


class ResolutionResponse(BaseResponse):
    report_id: int
    status: str
    before_photo_ref: str
    after_photo_ref: str
    resolved_at: Optional[datetime] = None
    cleared_escalation: bool = False
    verification: Optional[ResolutionVerification] = None
