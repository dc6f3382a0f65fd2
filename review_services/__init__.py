"""
review_services -- Package init and public API.

Responsibility:
    Stateful services that hold database sessions and own transaction
    boundaries: draft creation, the review orchestrator, and notification
    delivery.  This is the only layer that commits.

Architecture position:
    Services -- orchestration over review_modules + review_kernel.

    Dependency direction:
        review_services/ -> review_modules/ (allowed)
        review_services/ -> review_kernel/  (allowed)
        review_modules/  -> review_services/ (FORBIDDEN)
        review_kernel/   -> review_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.
"""

from review_services.drafts import DraftService
from review_services.notifications import (
    DeliveryReceipt,
    DeliveryReport,
    NotificationDispatcher,
    NotificationRelay,
)
from review_services.request_store import RequestStore
from review_services.review_orchestrator import (
    ReviewOptions,
    ReviewOrchestrator,
    ReviewOutcome,
    ReviewResult,
)

__all__ = [
    "DeliveryReceipt",
    "DeliveryReport",
    "DraftService",
    "NotificationDispatcher",
    "NotificationRelay",
    "RequestStore",
    "ReviewOptions",
    "ReviewOrchestrator",
    "ReviewOutcome",
    "ReviewResult",
]
