"""
SQLAlchemy ORM model for event review requests.

Joined-table subclass of ``ReviewRequestModel``: the common request columns
(status, reviewer, version) live in ``review_requests``; the event content
lives in ``event_requests``.

Invariants enforced
-------------------
* ``parent_event_id`` never equals ``id`` (CHECK constraint).
* ``ends_at > starts_at`` (CHECK constraint).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from review_kernel.db.base import UUIDString
from review_kernel.models.review_request import ReviewRequestModel


class EventRequestModel(ReviewRequestModel):
    """
    Event request row.  Maps to ``EventRequest``.

    Guarantees:
        - A series is the root plus every row whose ``parent_event_id``
          is the root's id (indexed for ``find_children``).
    """

    __tablename__ = "event_requests"

    __table_args__ = (
        CheckConstraint("parent_event_id IS NULL OR parent_event_id <> id", name="chk_event_not_own_parent"),
        CheckConstraint("ends_at > starts_at", name="chk_event_window"),
        Index("idx_event_parent", "parent_event_id"),
        Index("idx_event_room_start", "room_id", "starts_at"),
    )

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("review_requests.id"),
        primary_key=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    starts_at: Mapped[datetime]
    ends_at: Mapped[datetime]
    room_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("rooms.id"), nullable=True,
    )
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_event_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("event_requests.id"), nullable=True,
    )

    __mapper_args__ = {
        "polymorphic_identity": "event",
    }

    def to_dto(self):
        from review_modules.events.models import EventRequest, EventStatus

        return EventRequest(
            **self._record_fields(),
            status=EventStatus(self.status),
            title=self.title,
            description=self.description,
            starts_at=self.starts_at,
            ends_at=self.ends_at,
            room_id=self.room_id,
            is_recurring=self.is_recurring,
            parent_event_id=self.parent_event_id,
        )
