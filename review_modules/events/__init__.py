"""
Event Review Module (``review_modules.events``).

Room-booking event requests: status vocabulary, record snapshot,
admin-gated review workflow, and recurring-series scope resolution.
"""

from review_modules.events.models import EventRequest, EventStatus
from review_modules.events.series import SeriesResolver
from review_modules.events.workflows import EVENT_REVIEW_MACHINE, EVENT_REVIEW_WORKFLOW

__all__ = [
    "EVENT_REVIEW_MACHINE",
    "EVENT_REVIEW_WORKFLOW",
    "EventRequest",
    "EventStatus",
    "SeriesResolver",
]
