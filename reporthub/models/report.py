"""
Pydantic models for civic reports.
These models cover the stored report record, report submission, and API responses.
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional, List
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Severity(str, Enum):
    """Triage severity, set once at creation."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ReportStatus(str, Enum):
    """
    Report lifecycle status.

    pending ⇄ verified → resolved (terminal)
    """
    PENDING = "pending"
    VERIFIED = "verified"
    RESOLVED = "resolved"


OPEN_STATUSES = (ReportStatus.PENDING, ReportStatus.VERIFIED)


class TriageResult(BaseModel):
    """
    Output of the upstream triage step (AI classification or a human).
    The core never computes category or severity itself.
    """
    category: str = Field(..., min_length=1, max_length=64, description="Issue category code, e.g. POTHOLE")
    severity: Severity = Field(..., description="Triage severity")
    estimated_urgency: Optional[str] = Field(None, description="IMMEDIATE | URGENT | MODERATE | LOW")
    department: Optional[str] = Field(None, description="Responsible department, derived from category if omitted")


class ResolutionVerification(BaseModel):
    """
    Before/after photo comparison recorded when a report is resolved with a photo.

    recommendation is APPROVED, NEEDS_REVIEW or REJECTED. A fallback result
    (vision model unavailable) is always NEEDS_REVIEW.
    """
    resolved: bool = False
    verification_score: float = Field(0.0, ge=0, le=100)
    quality: str = "NEEDS_REVIEW"
    recommendation: str = "NEEDS_REVIEW"
    improvement_description: str = ""
    remaining_concerns: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None
    ai_processed: bool = True
    fallback_used: bool = False
    verified_at: datetime = Field(default_factory=utc_now)


class Report(BaseModel):
    """
    A stored report record.

    A report is either a primary (is_primary=True, duplicate_of=None) or a
    duplicate whose duplicate_of points at a primary.
    """
    id: Optional[int] = Field(None, description="Assigned by the report store at insert")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    photo_ref: str
    description: str = ""
    category: str
    severity: Severity
    department: str = "General Administration"
    urgent: bool = False
    status: ReportStatus = ReportStatus.PENDING
    is_primary: bool = True
    duplicate_of: Optional[int] = None
    duplicate_count: int = Field(default=1, ge=1)
    merged_report_ids: List[int] = Field(default_factory=list)
    similarity_score: float = 0.0
    duplicate_reasoning: Optional[str] = None
    sla_deadline: datetime
    escalated: bool = False
    escalation_notified: bool = False
    escalated_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    resolved_at: Optional[datetime] = None
    resolution_photo_ref: Optional[str] = None
    resolution_verification: Optional[ResolutionVerification] = None

    @property
    def is_open(self) -> bool:
        return self.status != ReportStatus.RESOLVED

    def to_document(self) -> dict:
        """Serialize for storage (enums as plain strings, datetimes kept native)."""
        return self.model_dump(mode="python", exclude={"id"}) | {
            "severity": self.severity.value,
            "status": self.status.value,
        }


class DuplicateMatch(BaseModel):
    """Result of duplicate resolution when a matching primary was found."""
    primary_id: int
    similarity: float = Field(..., ge=0, le=100)
    distance: float = Field(..., ge=0, description="Distance to the primary in meters")
    reasoning: str = ""
    low_confidence: bool = Field(default=False, description="True when the score came from the fallback estimator")

    def summary_message(self) -> str:
        return (
            f"This report appears to be similar to an existing report #{self.primary_id} "
            f"({self.similarity:.0f}% similarity, {self.distance:.1f}m away)."
        )


class DuplicateInfo(DuplicateMatch):
    message: str = ""

    @classmethod
    def from_match(cls, match: DuplicateMatch) -> "DuplicateInfo":
        return cls(**match.model_dump(), message=match.summary_message())


class SubmissionResult(BaseModel):
    """What submit_report returns to callers."""
    report_id: int
    is_primary: bool
    duplicate_info: Optional[DuplicateInfo] = None
    category: str
    severity: Severity
    department: str
    urgent: bool
    sla_deadline: datetime
    nearby_reports_checked: int = 0
    low_confidence: bool = Field(
        default=False,
        description="True when a nearby comparison fell back to the estimator or failed, so the classification may be wrong"
    )


class ReportCreate(BaseModel):
    """
    Model for creating a new report (incoming POST request).
    The photo is uploaded elsewhere; only its stored reference arrives here.
    """
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    photo_ref: str = Field(..., min_length=1, description="Stored photo reference (path under the uploads dir)")
    description: str = Field("", max_length=1000, description="What the citizen observed")
    category: str = Field(..., min_length=1, max_length=64, description="Triage category")
    severity: Severity = Field(..., description="Triage severity")
    estimated_urgency: Optional[str] = Field(None, description="Triage urgency hint")

    class Config:
        json_schema_extra = {
            "example": {
                "latitude": 12.9716,
                "longitude": 77.5946,
                "photo_ref": "3f2a9c.jpg",
                "description": "Large pothole near the bus stop",
                "category": "POTHOLE",
                "severity": "HIGH",
                "estimated_urgency": "URGENT",
            }
        }
        extra = "ignore"

    def to_triage(self) -> TriageResult:
        return TriageResult(
            category=self.category,
            severity=self.severity,
            estimated_urgency=self.estimated_urgency,
        )


class StatusUpdateRequest(BaseModel):
    """Request to change report status."""
    status: ReportStatus = Field(..., description="New status value")


class ResolveRequest(BaseModel):
    """Resolve a report with a photo of the repaired site."""
    resolution_photo_ref: str = Field(..., min_length=1, description="Stored reference of the after photo")
