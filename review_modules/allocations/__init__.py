"""
Budget Allocation Module (``review_modules.allocations``).

Ministry budget requests by fiscal year, with annual, quarterly or
monthly period breakdowns, full or partial approval, and the running
grant totals those approvals produce.
"""

from review_modules.allocations.models import (
    AllocationRequest,
    AllocationStatus,
    PeriodEntry,
    PeriodType,
)
from review_modules.allocations.workflows import ALLOCATION_MACHINE, ALLOCATION_WORKFLOW

__all__ = [
    "ALLOCATION_MACHINE",
    "ALLOCATION_WORKFLOW",
    "AllocationRequest",
    "AllocationStatus",
    "PeriodEntry",
    "PeriodType",
]
