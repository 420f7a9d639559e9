"""
Status Workflow Engine - report status state machine.

DESIGN PRINCIPLES:
- pending and verified are open states and may move between each other
- resolved is terminal
- Invalid transitions are rejected programmatically
"""

from typing import Dict, List

from reporthub.models.report import ReportStatus


class InvalidStatusTransitionError(ValueError):
    pass


class StatusWorkflowEngine:
    """
    Status transitions:

    pending  -> verified | resolved
    verified -> pending | resolved
    resolved -> (none)
    """

    # Allowed transitions map: {from_status: [to_status, ...]}
    ALLOWED_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
        ReportStatus.PENDING: [ReportStatus.VERIFIED, ReportStatus.RESOLVED],
        ReportStatus.VERIFIED: [ReportStatus.PENDING, ReportStatus.RESOLVED],
        ReportStatus.RESOLVED: [],  # Terminal state, no transitions allowed
    }

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is valid.

        Same status is valid (no-op) except for resolved, which is terminal
        and is reported as such by validate_transition().
        """
        try:
            from_enum = ReportStatus(from_status)
            to_enum = ReportStatus(to_status)
        except ValueError:
            return False

        if from_enum == to_enum:
            return from_enum != ReportStatus.RESOLVED

        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            current_enum = ReportStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    @classmethod
    def validate_transition(cls, current_status: str, new_status: str) -> ReportStatus:
        """
        Validate a transition and return the target status.

        Raises:
            InvalidStatusTransitionError: If transition is invalid
        """
        current_status = getattr(current_status, "value", current_status)
        new_status = getattr(new_status, "value", new_status)
        if not cls.is_valid_transition(current_status, new_status):
            allowed = cls.get_allowed_transitions(current_status)
            raise InvalidStatusTransitionError(
                f"Invalid status transition: {current_status} → {new_status}. "
                f"Allowed transitions from {current_status}: {allowed}"
            )
        return ReportStatus(new_status)
