"""
Module: review_kernel.models.review_request
Responsibility: Base table for every reviewable request (event, expense,
    allocation).  Kind-specific columns live in joined subclass tables
    declared by ``review_modules.<kind>.orm``.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``version`` is SQLAlchemy's version_id_col: every UPDATE is issued as
      ``... WHERE id = :id AND version = :loaded_version``.  A concurrent
      reviewer's commit makes the other UPDATE match zero rows, which
      SQLAlchemy reports as StaleDataError (mapped to StaleStateError by the
      orchestrator).
    - requester_id / requester_name / organization_id are never written
      after INSERT (only the draft service and the orchestrator write to
      this table, and neither touches them).

Failure modes:
    - StaleDataError on a lost-update race.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from review_kernel.db.base import TrackedBase, UUIDString


class ReviewRequestModel(TrackedBase):
    """
    Common RequestRecord fields, polymorphic on ``kind``.

    Guarantees:
        - ``reviewer_*`` columns are set only by a reviewing action.
        - ``version`` starts at 1 and increases by one per committed UPDATE.
    """

    __tablename__ = "review_requests"

    __table_args__ = (
        Index("idx_review_request_org_status", "organization_id", "status"),
        Index("idx_review_request_org_kind", "organization_id", "kind"),
        CheckConstraint(
            "kind IN ('event', 'expense', 'allocation')",
            name="chk_review_request_kind",
        ),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    requester_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requester_name: Mapped[str] = mapped_column(String(200), nullable=False)
    requester_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    status: Mapped[str] = mapped_column(String(40), nullable=False)

    reviewer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewer_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    reviewer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime | None]

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {
        "polymorphic_on": "kind",
        "version_id_col": version,
    }

    def _record_fields(self) -> dict:
        """Common RequestRecord fields for subclass ``to_dto()``; status excluded."""
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "requester_id": self.requester_id,
            "requester_name": self.requester_name,
            "requester_email": self.requester_email,
            "reviewer_id": self.reviewer_id,
            "reviewer_name": self.reviewer_name,
            "reviewer_notes": self.reviewer_notes,
            "reviewed_at": self.reviewed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "version": self.version,
        }

    def to_dto(self):
        raise NotImplementedError(f"{type(self).__name__} must implement to_dto()")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} [{self.status}] v{self.version}>"
