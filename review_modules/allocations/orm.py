"""
SQLAlchemy ORM models for budget allocation requests and grants.

Invariants enforced
-------------------
* ``AllocationPeriodEntryModel``: one row per (request, period label),
  ordered by ``position``.
* ``BudgetAllocationModel``: one running grant per
  (organization, fiscal year, ministry).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_kernel.db.base import Base, TrackedBase, UUIDString
from review_kernel.models.review_request import ReviewRequestModel


class AllocationRequestModel(ReviewRequestModel):
    """Allocation request row.  Maps to ``AllocationRequest``."""

    __tablename__ = "allocation_requests"

    __table_args__ = (
        CheckConstraint(
            "period_type IN ('annual', 'quarterly', 'monthly')",
            name="chk_allocation_period_type",
        ),
        CheckConstraint("requested_amount > 0", name="chk_allocation_requested_positive"),
        Index("idx_allocation_ministry_year", "ministry_id", "fiscal_year_id"),
    )

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("review_requests.id"),
        primary_key=True,
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_years.id"), nullable=False,
    )
    ministry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ministries.id"), nullable=False,
    )
    period_type: Mapped[str] = mapped_column(String(20), nullable=False)
    requested_amount: Mapped[Decimal]
    approved_amount: Mapped[Decimal | None]
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    period_entries: Mapped[list["AllocationPeriodEntryModel"]] = relationship(
        "AllocationPeriodEntryModel",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="AllocationPeriodEntryModel.position",
        lazy="selectin",
    )

    __mapper_args__ = {
        "polymorphic_identity": "allocation",
    }

    def to_dto(self):
        from review_modules.allocations.models import (
            AllocationRequest,
            AllocationStatus,
            PeriodEntry,
            PeriodType,
        )

        return AllocationRequest(
            **self._record_fields(),
            status=AllocationStatus(self.status),
            fiscal_year_id=self.fiscal_year_id,
            ministry_id=self.ministry_id,
            period_type=PeriodType(self.period_type),
            requested_amount=self.requested_amount,
            approved_amount=self.approved_amount,
            period_breakdown=tuple(
                PeriodEntry(e.period_label, e.amount) for e in self.period_entries
            ),
            notes=self.notes,
        )


class AllocationPeriodEntryModel(Base):
    """One period amount of an allocation request."""

    __tablename__ = "allocation_period_entries"

    __table_args__ = (
        UniqueConstraint("request_id", "period_label", name="uq_allocation_entry_label"),
        CheckConstraint("amount >= 0", name="chk_allocation_entry_non_negative"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("allocation_requests.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    period_label: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal]

    request: Mapped["AllocationRequestModel"] = relationship(
        "AllocationRequestModel", back_populates="period_entries",
    )


class BudgetAllocationModel(TrackedBase):
    """
    Running budget granted to a ministry for a fiscal year.

    Credited when an allocation request is approved (fully or partially)
    and debited by the same amount when that approval is reversed.
    """

    __tablename__ = "budget_allocations"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "fiscal_year_id", "ministry_id",
            name="uq_budget_allocation_scope",
        ),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("fiscal_years.id"), nullable=False,
    )
    ministry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ministries.id"), nullable=False,
    )
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<BudgetAllocationModel {self.ministry_id} FY {self.fiscal_year_id}: {self.allocated_amount}>"
