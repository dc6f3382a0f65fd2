"""
Module: review_kernel.models.review_history
Responsibility: ORM persistence for the per-request review history chain.
Architecture position: Kernel > Models.  May import from db/base.py and
    review_kernel.exceptions only.

Invariants enforced:
    - Rows are append-only; any UPDATE or DELETE raises
      ImmutabilityViolationError from the ORM listeners below.
    - ``(request_id, seq)`` is unique; seq starts at 1 per request.
    - hash = H(request_id | seq | action | previous_status | new_status |
      actor_id | payload_hash | prev_hash).  Validated by AuditorService.

Audit relevance:
    This table answers "who moved this request, when, from what to what,
    and why".  Series actions write one row per member record.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from review_kernel.db.base import Base, UUIDString
from review_kernel.exceptions import ImmutabilityViolationError

# History action recorded for draft creation; every other row carries a ReviewAction value.
HISTORY_CREATE_ACTION = "create"


class ReviewHistoryEntry(Base):
    """
    One committed transition (or creation) of one request.

    Non-goals:
        - Hash correctness is not checked at INSERT time; that is the
          responsibility of AuditorService.
    """

    __tablename__ = "review_history"

    __table_args__ = (
        UniqueConstraint("request_id", "seq", name="uq_review_history_request_seq"),
        Index("idx_review_history_org", "organization_id"),
        Index("idx_review_history_actor", "actor_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("review_requests.id"),
        nullable=False,
    )
    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[str] = mapped_column(String(40), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    new_status: Mapped[str] = mapped_column(String(40), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    occurred_at: Mapped[datetime]

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Null only for the first entry of a request
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<ReviewHistoryEntry {self.request_id}#{self.seq} {self.action}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None


@event.listens_for(ReviewHistoryEntry, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to review history rows."""
    raise ImmutabilityViolationError(
        entity_type="ReviewHistoryEntry",
        entity_id=str(target.id),
        reason="Review history is append-only -- cannot modify",
    )


@event.listens_for(ReviewHistoryEntry, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of review history rows."""
    raise ImmutabilityViolationError(
        entity_type="ReviewHistoryEntry",
        entity_id=str(target.id),
        reason="Review history is append-only -- cannot delete",
    )
