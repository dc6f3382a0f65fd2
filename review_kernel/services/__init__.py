"""Kernel services: review history and hash chain."""

from review_kernel.services.auditor_service import (
    AuditorService,
    HistoryTrace,
    HistoryTraceEntry,
)

__all__ = ["AuditorService", "HistoryTrace", "HistoryTraceEntry"]
