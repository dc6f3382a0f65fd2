"""
Budget Allocation Domain Models (``review_modules.allocations.models``).

Responsibility
--------------
Status vocabulary, record snapshot and period-breakdown validation for a
ministry's request for budget in a fiscal year.

Invariants enforced
-------------------
* Amounts are ``Decimal`` -- NEVER ``float``.
* Quarterly labels are Q1..Q4; monthly labels are January..December.
  Labels are unique and kept in calendar order.
* Non-annual requests: ``requested_amount`` is the sum of the breakdown.
  Annual requests: ``requested_amount`` is the single annual amount and
  the breakdown is empty.
* ``requested_amount`` is positive.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from review_kernel.domain.records import RequestRecord
from review_kernel.domain.values import RequestKind, coerce_amount
from review_kernel.exceptions import InvalidBreakdownError, InvalidRequestDataError


class AllocationStatus(str, Enum):
    """Allocation request states."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    PARTIALLY_APPROVED = "partially_approved"
    DENIED = "denied"
    CANCELLED = "cancelled"


class PeriodType(str, Enum):
    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"


QUARTER_LABELS: tuple[str, ...] = ("Q1", "Q2", "Q3", "Q4")

MONTH_LABELS: tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

PERIOD_LABELS: dict[PeriodType, tuple[str, ...]] = {
    PeriodType.ANNUAL: (),
    PeriodType.QUARTERLY: QUARTER_LABELS,
    PeriodType.MONTHLY: MONTH_LABELS,
}


@dataclass(frozen=True)
class PeriodEntry:
    """One populated period of an allocation breakdown."""
    period_label: str
    amount: Decimal


@dataclass(frozen=True, kw_only=True)
class AllocationRequest(RequestRecord):
    """A ministry's request for budget in one fiscal year."""
    status: AllocationStatus
    fiscal_year_id: UUID
    ministry_id: UUID
    period_type: PeriodType
    requested_amount: Decimal
    approved_amount: Decimal | None = None
    period_breakdown: tuple[PeriodEntry, ...] = ()
    notes: str | None = None

    @property
    def kind(self) -> RequestKind:
        return RequestKind.ALLOCATION

    @property
    def is_partial(self) -> bool:
        return self.status is AllocationStatus.PARTIALLY_APPROVED


def normalize_breakdown(
    period_type: PeriodType | str,
    breakdown: Iterable[PeriodEntry | tuple[str, object]],
) -> tuple[PeriodEntry, ...]:
    """
    Validate labels and amounts; return entries in calendar order.

    Raises:
        InvalidBreakdownError: unknown or duplicate label, negative amount,
            or any entry on an annual request.
    """
    period_type = PeriodType(period_type)
    allowed = PERIOD_LABELS[period_type]

    entries: dict[str, Decimal] = {}
    for item in breakdown:
        label, raw = (item.period_label, item.amount) if isinstance(item, PeriodEntry) else item
        if label not in allowed:
            raise InvalidBreakdownError(
                period_type.value, f"unknown period label {label!r}",
            )
        if label in entries:
            raise InvalidBreakdownError(period_type.value, f"duplicate period {label!r}")
        try:
            amount = coerce_amount(f"period_breakdown[{label}]", raw)
        except InvalidRequestDataError as exc:
            raise InvalidBreakdownError(period_type.value, exc.reason) from None
        if amount < 0:
            raise InvalidBreakdownError(period_type.value, f"{label} amount is negative")
        entries[label] = amount

    return tuple(PeriodEntry(label, entries[label]) for label in allowed if label in entries)


def derive_requested_amount(
    period_type: PeriodType | str,
    breakdown: tuple[PeriodEntry, ...],
    annual_amount: object = None,
) -> Decimal:
    """
    Compute ``requested_amount`` from the breakdown or the annual amount.

    Raises:
        InvalidBreakdownError: annual without an amount, non-annual
            without entries, or a total that is not positive.
    """
    period_type = PeriodType(period_type)
    if period_type is PeriodType.ANNUAL:
        if breakdown:
            raise InvalidBreakdownError(period_type.value, "annual requests take no period entries")
        if annual_amount is None:
            raise InvalidBreakdownError(period_type.value, "annual amount is required")
        try:
            total = coerce_amount("annual_amount", annual_amount)
        except InvalidRequestDataError as exc:
            raise InvalidBreakdownError(period_type.value, exc.reason) from None
    else:
        if annual_amount is not None:
            raise InvalidBreakdownError(
                period_type.value, "annual amount given for a non-annual request",
            )
        if not breakdown:
            raise InvalidBreakdownError(period_type.value, "at least one period is required")
        total = sum((e.amount for e in breakdown), Decimal("0"))

    if total <= 0:
        raise InvalidBreakdownError(period_type.value, "requested amount must be positive")
    return total
