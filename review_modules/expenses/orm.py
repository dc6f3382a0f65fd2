"""
SQLAlchemy ORM model for expense requests.

Joined-table subclass of ``ReviewRequestModel``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from review_kernel.db.base import UUIDString
from review_kernel.models.review_request import ReviewRequestModel


class ExpenseRequestModel(ReviewRequestModel):
    """Expense request row.  Maps to ``ExpenseRequest``."""

    __tablename__ = "expense_requests"

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_expense_amount_positive"),
        Index("idx_expense_ministry", "ministry_id"),
    )

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("review_requests.id"),
        primary_key=True,
    )

    ministry_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("ministries.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal]
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __mapper_args__ = {
        "polymorphic_identity": "expense",
    }

    def to_dto(self):
        from review_modules.expenses.models import ExpenseRequest, ExpenseStatus

        return ExpenseRequest(
            **self._record_fields(),
            status=ExpenseStatus(self.status),
            ministry_id=self.ministry_id,
            title=self.title,
            amount=self.amount,
            justification=self.justification,
            payment_reference=self.payment_reference,
        )
