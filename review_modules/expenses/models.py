"""
Expense Request Domain Models (``review_modules.expenses.models``).

Responsibility
--------------
Status vocabulary, record snapshot and content validation for expense
reimbursement requests.  The status *is* the approval stage; there is no
separate stage field.

Invariants enforced
-------------------
* ``amount`` is a positive ``Decimal`` -- NEVER ``float``.
* ``title`` and ``justification`` are non-empty.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from review_kernel.domain.records import RequestRecord
from review_kernel.domain.values import RequestKind, coerce_amount
from review_kernel.exceptions import InvalidRequestDataError


class ExpenseStatus(str, Enum):
    """Expense approval stages."""
    DRAFT = "draft"
    PENDING_LEADER = "pending_leader"
    LEADER_APPROVED = "leader_approved"
    LEADER_DENIED = "leader_denied"
    PENDING_TREASURY = "pending_treasury"
    TREASURY_APPROVED = "treasury_approved"
    TREASURY_DENIED = "treasury_denied"
    PENDING_FINANCE = "pending_finance"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, kw_only=True)
class ExpenseRequest(RequestRecord):
    """A request to be reimbursed for money spent on behalf of a ministry."""
    status: ExpenseStatus
    ministry_id: UUID
    title: str
    amount: Decimal
    justification: str
    payment_reference: str | None = None

    @property
    def kind(self) -> RequestKind:
        return RequestKind.EXPENSE


def validate_expense_content(title: str, amount: Decimal, justification: str) -> Decimal:
    """Validate expense content; returns the normalized amount."""
    if not title or not title.strip():
        raise InvalidRequestDataError("title", "must not be empty")
    if not justification or not justification.strip():
        raise InvalidRequestDataError("justification", "must not be empty")
    amount = coerce_amount("amount", amount)
    if amount <= 0:
        raise InvalidRequestDataError("amount", "must be greater than zero")
    return amount
