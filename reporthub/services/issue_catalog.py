"""
Issue catalog - static facts about each triage category.

Triage supplies category and severity; the catalog supplies the responsible
department and rough repair estimates.
"""

from typing import Dict, Optional

from reporthub.models.report import Severity


ISSUE_CATEGORIES: Dict[str, Dict[str, str]] = {
    "POTHOLE": {
        "description": "Road surface damage requiring immediate attention",
        "department": "Road Maintenance",
        "estimated_cost": "Medium",
        "estimated_time": "2-3 days",
    },
    "STREET_LIGHT": {
        "description": "Street lighting issues affecting safety",
        "department": "Electrical",
        "estimated_cost": "Low",
        "estimated_time": "1-2 days",
    },
    "GARBAGE_OVERFLOW": {
        "description": "Waste management issue requiring immediate cleanup",
        "department": "Sanitation",
        "estimated_cost": "Low",
        "estimated_time": "1 day",
    },
    "DRAIN_BLOCKAGE": {
        "description": "Drainage system blockage potentially causing flooding",
        "department": "Water Management",
        "estimated_cost": "Medium",
        "estimated_time": "2-3 days",
    },
    "BROKEN_SIDEWALK": {
        "description": "Sidewalk damage affecting pedestrian safety",
        "department": "Infrastructure",
        "estimated_cost": "Medium",
        "estimated_time": "3-5 days",
    },
    "WATER_LEAK": {
        "description": "Water supply leak requiring urgent repair",
        "department": "Water Supply",
        "estimated_cost": "High",
        "estimated_time": "1-2 days",
    },
    "DAMAGED_SIGN": {
        "description": "Traffic or information signage damage",
        "department": "Traffic Management",
        "estimated_cost": "Low",
        "estimated_time": "2-3 days",
    },
    "ILLEGAL_DUMPING": {
        "description": "Unauthorized waste disposal requiring cleanup",
        "department": "Sanitation",
        "estimated_cost": "Medium",
        "estimated_time": "1-2 days",
    },
    "VEGETATION_OVERGROWTH": {
        "description": "Overgrown vegetation obstructing paths or visibility",
        "department": "Parks & Gardens",
        "estimated_cost": "Low",
        "estimated_time": "2-3 days",
    },
    "OTHER": {
        "description": "General civic issue requiring assessment",
        "department": "General Administration",
        "estimated_cost": "Variable",
        "estimated_time": "Variable",
    },
}

URGENT_LEVELS = {"IMMEDIATE", "URGENT"}


def normalize_category(category: str) -> str:
    return category.strip().upper().replace(" ", "_").replace("-", "_")


def get_category_info(category: str) -> Dict[str, str]:
    """Catalog entry for the category, OTHER for unknown categories."""
    return ISSUE_CATEGORIES.get(normalize_category(category), ISSUE_CATEGORIES["OTHER"])


def department_for(category: str) -> str:
    return get_category_info(category)["department"]


def is_urgent(severity: Severity, estimated_urgency: Optional[str] = None) -> bool:
    """Urgent when triage says IMMEDIATE/URGENT; without a hint, HIGH severity counts as urgent."""
    if estimated_urgency:
        return estimated_urgency.strip().upper() in URGENT_LEVELS
    return severity == Severity.HIGH
