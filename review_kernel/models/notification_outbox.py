"""
Module: review_kernel.models.notification_outbox
Responsibility: Durable queue of notifications owed to requesters and
    reviewers.  Rows are written inside the review transaction and
    delivered after commit by ``review_services.notifications.NotificationRelay``.
Architecture position: Kernel > Models.

Invariants enforced:
    - A message exists iff the transition that owes it committed.
    - ``attempts`` only grows; ``status`` moves pending -> sent | failed,
      and failed -> sent on a successful retry.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from review_kernel.db.base import Base, UUIDString


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class NotificationOutboxMessage(Base):
    """One templated message for one recipient."""

    __tablename__ = "notification_outbox"

    __table_args__ = (
        Index("idx_outbox_status", "status"),
        Index("idx_outbox_request", "request_id"),
        CheckConstraint(
            "status IN ('pending', 'sent', 'failed')",
            name="chk_outbox_status",
        ),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("review_requests.id"),
        nullable=False,
    )

    template: Mapped[str] = mapped_column(String(80), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    fields: Mapped[dict] = mapped_column(JSON, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OutboxStatus.PENDING.value,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime]
    last_attempt_at: Mapped[datetime | None]
    sent_at: Mapped[datetime | None]

    def __repr__(self) -> str:
        return f"<NotificationOutboxMessage {self.template} -> {self.recipient_email} [{self.status}]>"
