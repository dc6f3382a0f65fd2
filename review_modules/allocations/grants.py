"""
BudgetGrantService -- keeps ministry budget totals in step with approvals.

Responsibility:
    Credit the ministry's ``budget_allocations`` row for the fiscal year
    when an allocation request is approved (fully or partially), and
    debit it by the same amount when the approval is reversed.

Non-goals:
    Does NOT commit.  Called by the review orchestrator inside the
    transition's unit of work so the grant and the status change commit
    or roll back together.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from review_kernel.domain.clock import Clock, SystemClock
from review_kernel.logging_config import get_logger
from review_modules.allocations.orm import AllocationRequestModel, BudgetAllocationModel

logger = get_logger("modules.allocations.grants")


class BudgetGrantService:
    """Upserts running grant totals per (organization, fiscal year, ministry)."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _grant_row(self, request: AllocationRequestModel) -> BudgetAllocationModel:
        row = self._session.execute(
            select(BudgetAllocationModel)
            .where(
                BudgetAllocationModel.organization_id == request.organization_id,
                BudgetAllocationModel.fiscal_year_id == request.fiscal_year_id,
                BudgetAllocationModel.ministry_id == request.ministry_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            now = self._clock.now()
            row = BudgetAllocationModel(
                organization_id=request.organization_id,
                fiscal_year_id=request.fiscal_year_id,
                ministry_id=request.ministry_id,
                allocated_amount=Decimal("0"),
                created_at=now,
                updated_at=now,
            )
            self._session.add(row)
        return row

    def credit(self, request: AllocationRequestModel, amount: Decimal) -> BudgetAllocationModel:
        row = self._grant_row(request)
        row.allocated_amount = row.allocated_amount + amount
        row.updated_at = self._clock.now()
        logger.info(
            "budget_allocation_credited",
            extra={
                "request_id": str(request.id),
                "ministry_id": str(request.ministry_id),
                "fiscal_year_id": str(request.fiscal_year_id),
                "amount": amount,
                "allocated_amount": row.allocated_amount,
            },
        )
        return row

    def debit(self, request: AllocationRequestModel, amount: Decimal) -> BudgetAllocationModel:
        row = self._grant_row(request)
        row.allocated_amount = row.allocated_amount - amount
        row.updated_at = self._clock.now()
        logger.info(
            "budget_allocation_debited",
            extra={
                "request_id": str(request.id),
                "ministry_id": str(request.ministry_id),
                "fiscal_year_id": str(request.fiscal_year_id),
                "amount": amount,
                "allocated_amount": row.allocated_amount,
            },
        )
        return row

    def allocated_amount(
        self, organization_id: UUID, fiscal_year_id: UUID, ministry_id: UUID,
    ) -> Decimal:
        """Current grant total; zero when nothing has been granted."""
        amount = self._session.execute(
            select(BudgetAllocationModel.allocated_amount).where(
                BudgetAllocationModel.organization_id == organization_id,
                BudgetAllocationModel.fiscal_year_id == fiscal_year_id,
                BudgetAllocationModel.ministry_id == ministry_id,
            )
        ).scalar_one_or_none()
        return amount if amount is not None else Decimal("0")
