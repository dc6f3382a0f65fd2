"""Kernel ORM models shared by every request kind."""

from review_kernel.models.notification_outbox import (
    NotificationOutboxMessage,
    OutboxStatus,
)
from review_kernel.models.review_history import HISTORY_CREATE_ACTION, ReviewHistoryEntry
from review_kernel.models.review_request import ReviewRequestModel

__all__ = [
    "ReviewRequestModel",
    "ReviewHistoryEntry",
    "HISTORY_CREATE_ACTION",
    "NotificationOutboxMessage",
    "OutboxStatus",
]
