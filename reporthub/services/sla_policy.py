"""
SLA Policy - deadline computation for new reports.

DESIGN PRINCIPLES:
- Pure and deterministic: same inputs, same deadline
- The table is data (overridable from a JSON file), not code
- Deadlines are computed once at creation and stored; never recomputed
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import json
import logging

from reporthub.models.report import Severity

logger = logging.getLogger(__name__)


# Base resolution window per severity, in hours
DEFAULT_SEVERITY_HOURS: Dict[str, float] = {
    "HIGH": 24,
    "MEDIUM": 72,
    "LOW": 168,
}

# Multipliers for categories that should be handled faster (or slower)
DEFAULT_CATEGORY_FACTORS: Dict[str, float] = {
    "WATER_LEAK": 0.5,
    "DRAIN_BLOCKAGE": 0.5,
    "POTHOLE": 0.75,
}


class SlaPolicy:

    def __init__(
        self,
        severity_hours: Optional[Dict[str, float]] = None,
        category_factors: Optional[Dict[str, float]] = None
    ):
        self.severity_hours = {k.upper(): float(v) for k, v in (severity_hours or DEFAULT_SEVERITY_HOURS).items()}
        self.category_factors = {
            k.upper(): float(v)
            for k, v in (DEFAULT_CATEGORY_FACTORS if category_factors is None else category_factors).items()
        }

        missing = [s.value for s in Severity if s.value not in self.severity_hours]
        if missing:
            raise ValueError(f"SLA policy is missing windows for severities: {missing}")
        if any(v <= 0 for v in self.severity_hours.values()) or any(v <= 0 for v in self.category_factors.values()):
            raise ValueError("SLA windows and category factors must be positive")

    @classmethod
    def from_file(cls, path: str) -> "SlaPolicy":
        """
        Load a policy table from JSON:

            {"severity_hours": {"HIGH": 24, ...}, "category_factors": {"WATER_LEAK": 0.5}}
        """
        with open(path, "r") as f:
            data = json.load(f)
        logger.info(f"SLA policy loaded from {path}")
        return cls(
            severity_hours=data.get("severity_hours"),
            category_factors=data.get("category_factors", {}),
        )

    def window(self, category: str, severity) -> timedelta:
        severity_key = severity.value if isinstance(severity, Severity) else str(severity).upper()
        if severity_key not in self.severity_hours:
            raise ValueError(f"Unknown severity: {severity!r}")
        factor = self.category_factors.get((category or "").upper(), 1.0)
        return timedelta(hours=self.severity_hours[severity_key] * factor)

    def compute_deadline(self, category: str, severity, created_at: datetime) -> datetime:
        """Deadline = created_at + severity window x category factor. Naive datetimes are UTC."""
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at + self.window(category, severity)

    def escalation_threshold(self, category: str, severity, created_at: datetime) -> datetime:
        """A report escalates strictly after this instant; it equals the deadline."""
        return self.compute_deadline(category, severity, created_at)

    def to_dict(self) -> Dict:
        return {"severity_hours": dict(self.severity_hours), "category_factors": dict(self.category_factors)}
