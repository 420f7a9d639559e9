"""
Report store backends.

The Firestore backend is imported from its own module so the in-memory
store works without Firebase credentials.
"""

from reporthub.services.report_store.base import ReportStore, StoreError, ReportNotFoundError
from reporthub.services.report_store.memory_store import InMemoryReportStore

__all__ = [
    "ReportStore",
    "StoreError",
    "ReportNotFoundError",
    "InMemoryReportStore",
]
