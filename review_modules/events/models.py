"""
Event Review Domain Models (``review_modules.events.models``).

Responsibility
--------------
Status vocabulary, frozen record snapshot, and content/series validation
for room-booking event requests.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* ``ends_at`` is strictly after ``starts_at``; both are timezone-aware.
* A record is never its own parent.
* A child's parent exists, is recurring, and has no parent itself
  (series are exactly two levels: root + children).
* A child is recurring whenever its parent link is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from review_kernel.domain.records import RequestRecord
from review_kernel.domain.values import RequestKind
from review_kernel.exceptions import InvalidRequestDataError, InvalidSeriesError


class EventStatus(str, Enum):
    """Event review states."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


@dataclass(frozen=True, kw_only=True)
class EventRequest(RequestRecord):
    """A request to hold an event in a room for a time window."""
    status: EventStatus
    title: str
    starts_at: datetime
    ends_at: datetime
    room_id: UUID | None = None
    description: str | None = None
    is_recurring: bool = False
    parent_event_id: UUID | None = None

    @property
    def kind(self) -> RequestKind:
        return RequestKind.EVENT

    @property
    def is_series_root(self) -> bool:
        return self.is_recurring and self.parent_event_id is None

    @property
    def series_root_id(self) -> UUID:
        return self.parent_event_id or self.id


def validate_event_content(title: str, starts_at: datetime, ends_at: datetime) -> None:
    """Raise InvalidRequestDataError unless the title and window are usable."""
    if not title or not title.strip():
        raise InvalidRequestDataError("title", "must not be empty")
    if starts_at.tzinfo is None or ends_at.tzinfo is None:
        raise InvalidRequestDataError("starts_at", "event times must be timezone-aware")
    if ends_at <= starts_at:
        raise InvalidRequestDataError(
            "ends_at", f"must be after starts_at ({starts_at.isoformat()})"
        )


def validate_series_link(
    event_id: UUID,
    is_recurring: bool,
    parent_event_id: UUID | None,
    parent: EventRequest | None,
) -> None:
    """
    Check a record's link to its series root.

    ``parent`` is the loaded record for ``parent_event_id`` (None when the
    link is unset or the parent could not be found in the organization).
    """
    if parent_event_id is None:
        return
    if parent_event_id == event_id:
        raise InvalidSeriesError(str(event_id), "a record cannot be its own parent")
    if not is_recurring:
        raise InvalidSeriesError(str(event_id), "a series child must be recurring")
    if parent is None:
        raise InvalidSeriesError(
            str(event_id), f"parent {parent_event_id} not found in organization"
        )
    if not parent.is_recurring:
        raise InvalidSeriesError(str(event_id), f"parent {parent.id} is not recurring")
    if parent.parent_event_id is not None:
        raise InvalidSeriesError(
            str(event_id),
            f"parent {parent.id} is itself a series child; series depth is one",
        )
