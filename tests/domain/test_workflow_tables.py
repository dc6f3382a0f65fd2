"""
Tests for the per-kind StatusMachines.

Covers the pure transition tables: every legal row, the InvalidTransition /
Forbidden split for illegal (status, role, action) triples, mandatory
reasons, idempotence of applied transitions, and ``legal_actions``.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

import pytest

from review_kernel.domain.values import ActorRole, ReviewAction
from review_kernel.domain.workflow import ActorContext, TransitionRequest
from review_kernel.exceptions import (
    ForbiddenError,
    InvalidAmountError,
    InvalidTransitionError,
    MissingReasonError,
)
from review_modules.allocations.models import AllocationStatus
from review_modules.allocations.workflows import ALLOCATION_MACHINE
from review_modules.events.models import EventStatus
from review_modules.events.workflows import EVENT_REVIEW_MACHINE
from review_modules.expenses.models import ExpenseStatus
from review_modules.expenses.workflows import EXPENSE_MACHINE

REQUESTER = str(uuid4())


@dataclass(frozen=True)
class Subject:
    status: str
    requester_id: str = REQUESTER
    requested_amount: Decimal = Decimal("1000")


def actor(role: ActorRole | str, actor_id: str | None = None) -> ActorContext:
    return ActorContext(actor_id=actor_id or str(uuid4()), role=role)


def request(action, role=ActorRole.ADMIN, notes=None, actor_id=None, approved_amount=None):
    return TransitionRequest(
        action=ReviewAction(action),
        actor=actor(role, actor_id),
        notes=notes,
        approved_amount=approved_amount,
    )


# =========================================================================
# Event review
# =========================================================================


class TestEventReviewTable:
    """Admin-gated event review lifecycle."""

    @pytest.mark.parametrize(
        "status, action, expected",
        [
            (EventStatus.PENDING_REVIEW, ReviewAction.APPROVE, EventStatus.APPROVED),
            (EventStatus.APPROVED, ReviewAction.PUBLISH, EventStatus.PUBLISHED),
            (EventStatus.PUBLISHED, ReviewAction.UNPUBLISH, EventStatus.APPROVED),
            (EventStatus.APPROVED, ReviewAction.UNAPPROVE, EventStatus.PENDING_REVIEW),
            (EventStatus.PUBLISHED, ReviewAction.UNAPPROVE, EventStatus.PENDING_REVIEW),
            (EventStatus.REJECTED, ReviewAction.MOVE_TO_PENDING, EventStatus.PENDING_REVIEW),
        ],
    )
    def test_admin_transitions(self, status, action, expected):
        decision = EVENT_REVIEW_MACHINE.decide(Subject(status.value), request(action))
        assert decision.previous_status is status
        assert decision.new_status is expected

    def test_reject_requires_reason(self):
        with pytest.raises(MissingReasonError):
            EVENT_REVIEW_MACHINE.decide(
                Subject(EventStatus.PENDING_REVIEW.value), request(ReviewAction.REJECT),
            )

    def test_whitespace_reason_is_missing(self):
        with pytest.raises(MissingReasonError):
            EVENT_REVIEW_MACHINE.decide(
                Subject(EventStatus.PENDING_REVIEW.value),
                request(ReviewAction.REJECT, notes="   "),
            )

    def test_reject_with_reason(self):
        decision = EVENT_REVIEW_MACHINE.decide(
            Subject(EventStatus.PENDING_REVIEW.value),
            request(ReviewAction.REJECT, notes="room double-booked"),
        )
        assert decision.new_status is EventStatus.REJECTED

    def test_requester_submits_draft(self):
        decision = EVENT_REVIEW_MACHINE.decide(
            Subject(EventStatus.DRAFT.value),
            request(ReviewAction.SUBMIT, role=ActorRole.CONTRIBUTOR, actor_id=REQUESTER),
        )
        assert decision.new_status is EventStatus.PENDING_REVIEW

    def test_admin_cannot_submit_someone_elses_draft(self):
        with pytest.raises(ForbiddenError):
            EVENT_REVIEW_MACHINE.decide(
                Subject(EventStatus.DRAFT.value), request(ReviewAction.SUBMIT),
            )

    @pytest.mark.parametrize("role", [ActorRole.CONTRIBUTOR, ActorRole.MEMBER, ActorRole.TREASURY])
    def test_non_admin_approval_forbidden(self, role):
        with pytest.raises(ForbiddenError) as exc_info:
            EVENT_REVIEW_MACHINE.decide(
                Subject(EventStatus.PENDING_REVIEW.value), request(ReviewAction.APPROVE, role=role),
            )
        assert exc_info.value.code == "FORBIDDEN"
        assert "admin" in exc_info.value.reason

    def test_action_not_in_table_is_invalid_transition(self):
        with pytest.raises(InvalidTransitionError):
            EVENT_REVIEW_MACHINE.decide(
                Subject(EventStatus.DRAFT.value), request(ReviewAction.PUBLISH),
            )

    def test_invalid_transition_checked_before_role(self):
        """A contributor asking for a row that does not exist gets InvalidTransition."""
        with pytest.raises(InvalidTransitionError):
            EVENT_REVIEW_MACHINE.decide(
                Subject(EventStatus.REJECTED.value),
                request(ReviewAction.APPROVE, role=ActorRole.CONTRIBUTOR),
            )

    def test_approving_approved_record_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            EVENT_REVIEW_MACHINE.decide(
                Subject(EventStatus.APPROVED.value), request(ReviewAction.APPROVE),
            )

    def test_rejected_is_terminal(self):
        assert EVENT_REVIEW_MACHINE.is_terminal(EventStatus.REJECTED)
        assert not EVENT_REVIEW_MACHINE.is_terminal("published")

    def test_legal_actions_for_admin_on_pending(self):
        actions = EVENT_REVIEW_MACHINE.legal_actions(
            Subject(EventStatus.PENDING_REVIEW.value), actor(ActorRole.ADMIN),
        )
        assert actions == (ReviewAction.APPROVE, ReviewAction.REJECT)

    def test_legal_actions_for_contributor_on_pending(self):
        actions = EVENT_REVIEW_MACHINE.legal_actions(
            Subject(EventStatus.PENDING_REVIEW.value), actor(ActorRole.CONTRIBUTOR),
        )
        assert actions == ()

    def test_legal_actions_for_requester_on_draft(self):
        actions = EVENT_REVIEW_MACHINE.legal_actions(
            Subject(EventStatus.DRAFT.value), actor(ActorRole.MEMBER, REQUESTER),
        )
        assert actions == (ReviewAction.SUBMIT,)

    def test_decide_does_not_mutate_subject(self):
        subject = Subject(EventStatus.PENDING_REVIEW.value)
        EVENT_REVIEW_MACHINE.decide(subject, request(ReviewAction.APPROVE))
        assert subject.status == "pending_review"


# =========================================================================
# Expense approval chain
# =========================================================================


class TestExpenseTable:
    """Role-gated leader -> treasury -> finance chain."""

    @pytest.mark.parametrize(
        "status, action, role, expected",
        [
            (ExpenseStatus.PENDING_LEADER, ReviewAction.APPROVE, ActorRole.MINISTRY_LEADER,
             ExpenseStatus.LEADER_APPROVED),
            (ExpenseStatus.LEADER_APPROVED, ReviewAction.FORWARD, ActorRole.MINISTRY_LEADER,
             ExpenseStatus.PENDING_TREASURY),
            (ExpenseStatus.LEADER_APPROVED, ReviewAction.APPROVE, ActorRole.TREASURY,
             ExpenseStatus.TREASURY_APPROVED),
            (ExpenseStatus.PENDING_TREASURY, ReviewAction.APPROVE, ActorRole.TREASURY,
             ExpenseStatus.TREASURY_APPROVED),
            (ExpenseStatus.TREASURY_APPROVED, ReviewAction.FORWARD, ActorRole.TREASURY,
             ExpenseStatus.PENDING_FINANCE),
            (ExpenseStatus.TREASURY_APPROVED, ReviewAction.COMPLETE, ActorRole.FINANCE,
             ExpenseStatus.COMPLETED),
            (ExpenseStatus.PENDING_FINANCE, ReviewAction.COMPLETE, ActorRole.FINANCE,
             ExpenseStatus.COMPLETED),
        ],
    )
    def test_stage_reviewer_advances(self, status, action, role, expected):
        decision = EXPENSE_MACHINE.decide(Subject(status.value), request(action, role=role))
        assert decision.new_status is expected

    @pytest.mark.parametrize(
        "status, action",
        [
            (ExpenseStatus.PENDING_LEADER, ReviewAction.APPROVE),
            (ExpenseStatus.PENDING_TREASURY, ReviewAction.APPROVE),
            (ExpenseStatus.PENDING_FINANCE, ReviewAction.COMPLETE),
        ],
    )
    def test_admin_may_act_at_any_stage(self, status, action):
        EXPENSE_MACHINE.decide(Subject(status.value), request(action, role=ActorRole.ADMIN))

    @pytest.mark.parametrize(
        "status, action, role",
        [
            (ExpenseStatus.PENDING_LEADER, ReviewAction.APPROVE, ActorRole.TREASURY),
            (ExpenseStatus.PENDING_LEADER, ReviewAction.APPROVE, ActorRole.FINANCE),
            (ExpenseStatus.PENDING_TREASURY, ReviewAction.APPROVE, ActorRole.MINISTRY_LEADER),
            (ExpenseStatus.PENDING_FINANCE, ReviewAction.COMPLETE, ActorRole.TREASURY),
            (ExpenseStatus.PENDING_LEADER, ReviewAction.DENY, ActorRole.CONTRIBUTOR),
        ],
    )
    def test_wrong_stage_role_forbidden(self, status, action, role):
        with pytest.raises(ForbiddenError):
            EXPENSE_MACHINE.decide(
                Subject(status.value), request(action, role=role, notes="reason"),
            )

    def test_leader_deny_needs_reason(self):
        with pytest.raises(MissingReasonError):
            EXPENSE_MACHINE.decide(
                Subject(ExpenseStatus.PENDING_LEADER.value),
                request(ReviewAction.DENY, role=ActorRole.MINISTRY_LEADER),
            )

    def test_treasury_deny(self):
        decision = EXPENSE_MACHINE.decide(
            Subject(ExpenseStatus.PENDING_TREASURY.value),
            request(ReviewAction.DENY, role=ActorRole.TREASURY, notes="no receipt"),
        )
        assert decision.new_status is ExpenseStatus.TREASURY_DENIED

    @pytest.mark.parametrize(
        "status",
        [s for s in ExpenseStatus if s.value not in EXPENSE_MACHINE.workflow.terminal_states],
    )
    def test_requester_may_cancel_any_open_stage(self, status):
        decision = EXPENSE_MACHINE.decide(
            Subject(status.value),
            request(ReviewAction.CANCEL, role=ActorRole.MEMBER, actor_id=REQUESTER),
        )
        assert decision.new_status is ExpenseStatus.CANCELLED

    def test_admin_cannot_cancel_on_requesters_behalf(self):
        with pytest.raises(ForbiddenError):
            EXPENSE_MACHINE.decide(
                Subject(ExpenseStatus.PENDING_LEADER.value), request(ReviewAction.CANCEL),
            )

    @pytest.mark.parametrize(
        "status",
        [ExpenseStatus.LEADER_DENIED, ExpenseStatus.TREASURY_DENIED,
         ExpenseStatus.COMPLETED, ExpenseStatus.CANCELLED],
    )
    def test_terminal_states_accept_nothing(self, status):
        for action in ReviewAction:
            with pytest.raises(InvalidTransitionError):
                EXPENSE_MACHINE.decide(
                    Subject(status.value),
                    request(action, notes="x", actor_id=REQUESTER),
                )

    def test_finance_actions_after_treasury_approval(self):
        actions = EXPENSE_MACHINE.legal_actions(
            Subject(ExpenseStatus.TREASURY_APPROVED.value), actor(ActorRole.FINANCE),
        )
        assert actions == (ReviewAction.FORWARD, ReviewAction.COMPLETE)


# =========================================================================
# Allocation requests
# =========================================================================


class TestAllocationTable:
    """Amount-guarded approval targets."""

    def pending(self) -> Subject:
        return Subject(AllocationStatus.PENDING.value, requested_amount=Decimal("1000.00"))

    def test_unset_amount_is_full_grant(self):
        decision = ALLOCATION_MACHINE.decide(self.pending(), request(ReviewAction.APPROVE))
        assert decision.new_status is AllocationStatus.APPROVED
        assert decision.approved_amount == Decimal("1000.00")

    def test_equal_amount_is_full_grant(self):
        decision = ALLOCATION_MACHINE.decide(
            self.pending(), request(ReviewAction.APPROVE, approved_amount=Decimal("1000")),
        )
        assert decision.new_status is AllocationStatus.APPROVED

    @pytest.mark.parametrize("amount", ["0", "0.01", "999.99", "500"])
    def test_smaller_amount_is_partial(self, amount):
        decision = ALLOCATION_MACHINE.decide(
            self.pending(), request(ReviewAction.APPROVE, approved_amount=Decimal(amount)),
        )
        assert decision.new_status is AllocationStatus.PARTIALLY_APPROVED
        assert decision.approved_amount == Decimal(amount)

    @pytest.mark.parametrize("amount", ["1000.01", "-1", "-0.01"])
    def test_out_of_range_amount(self, amount):
        with pytest.raises(InvalidAmountError) as exc_info:
            ALLOCATION_MACHINE.decide(
                self.pending(), request(ReviewAction.APPROVE, approved_amount=Decimal(amount)),
            )
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_non_numeric_amount(self):
        with pytest.raises(InvalidAmountError):
            ALLOCATION_MACHINE.decide(
                self.pending(), request(ReviewAction.APPROVE, approved_amount="lots"),
            )

    def test_role_checked_before_amount(self):
        with pytest.raises(ForbiddenError):
            ALLOCATION_MACHINE.decide(
                self.pending(),
                request(ReviewAction.APPROVE, role=ActorRole.TREASURY, approved_amount=Decimal("-5")),
            )

    def test_deny_requires_reason(self):
        with pytest.raises(MissingReasonError):
            ALLOCATION_MACHINE.decide(self.pending(), request(ReviewAction.DENY))

    @pytest.mark.parametrize("status", [AllocationStatus.APPROVED, AllocationStatus.PARTIALLY_APPROVED])
    def test_unapprove_returns_to_pending(self, status):
        decision = ALLOCATION_MACHINE.decide(Subject(status.value), request(ReviewAction.UNAPPROVE))
        assert decision.new_status is AllocationStatus.PENDING

    @pytest.mark.parametrize("status", [AllocationStatus.DRAFT, AllocationStatus.PENDING])
    def test_requester_cancels(self, status):
        decision = ALLOCATION_MACHINE.decide(
            Subject(status.value),
            request(ReviewAction.CANCEL, role=ActorRole.MEMBER, actor_id=REQUESTER),
        )
        assert decision.new_status is AllocationStatus.CANCELLED

    def test_cancel_after_approval_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            ALLOCATION_MACHINE.decide(
                Subject(AllocationStatus.APPROVED.value),
                request(ReviewAction.CANCEL, role=ActorRole.MEMBER, actor_id=REQUESTER),
            )

    def test_double_approval_is_invalid(self):
        with pytest.raises(InvalidTransitionError):
            ALLOCATION_MACHINE.decide(
                Subject(AllocationStatus.APPROVED.value), request(ReviewAction.APPROVE),
            )
