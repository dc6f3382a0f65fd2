"""Budget Allocation Workflows.

``pending -> approve`` has two guarded targets: ``approved`` for a full
grant and ``partially_approved`` for a smaller one.  The machine picks the
target from the approved amount and rejects amounts outside
``[0, requested_amount]``.  Approval is reversible via ``unapprove``.
"""

from decimal import Decimal
from enum import Enum

from review_kernel.domain.values import ActorRole, ReviewAction, coerce_amount
from review_kernel.domain.workflow import (
    Guard,
    NotificationRecipient,
    ReviewSubject,
    StatusMachine,
    Transition,
    TransitionDecision,
    TransitionRequest,
    Workflow,
)
from review_kernel.exceptions import InvalidAmountError, InvalidRequestDataError
from review_kernel.logging_config import get_logger
from review_modules.allocations.models import AllocationStatus

logger = get_logger("modules.allocations.workflows")

S = AllocationStatus

_ADMIN = frozenset({ActorRole.ADMIN})

FULL_GRANT = Guard("full_grant", "Approved amount equals the requested amount, or is unset")
PARTIAL_GRANT = Guard("partial_grant", "0 <= approved amount < requested amount")


ALLOCATION_WORKFLOW = Workflow(
    name="allocation",
    description="Budget allocation request lifecycle",
    initial_state=S.DRAFT.value,
    states=tuple(s.value for s in AllocationStatus),
    transitions=(
        Transition(S.DRAFT.value, ReviewAction.SUBMIT, S.PENDING.value,
                   requester_only=True, notification="allocation_submitted",
                   recipient=NotificationRecipient.ALLOCATION_REVIEWER),
        Transition(S.PENDING.value, ReviewAction.APPROVE, S.APPROVED.value,
                   roles=_ADMIN, guard=FULL_GRANT, notification="allocation_approved"),
        Transition(S.PENDING.value, ReviewAction.APPROVE, S.PARTIALLY_APPROVED.value,
                   roles=_ADMIN, guard=PARTIAL_GRANT,
                   notification="allocation_partially_approved"),
        Transition(S.PENDING.value, ReviewAction.DENY, S.DENIED.value,
                   roles=_ADMIN, requires_reason=True, notification="allocation_denied"),
        Transition(S.APPROVED.value, ReviewAction.UNAPPROVE, S.PENDING.value,
                   roles=_ADMIN, notification="allocation_unapproved"),
        Transition(S.PARTIALLY_APPROVED.value, ReviewAction.UNAPPROVE, S.PENDING.value,
                   roles=_ADMIN, notification="allocation_unapproved"),
        Transition(S.DRAFT.value, ReviewAction.CANCEL, S.CANCELLED.value,
                   requester_only=True),
        Transition(S.PENDING.value, ReviewAction.CANCEL, S.CANCELLED.value,
                   requester_only=True),
    ),
    terminal_states=(S.DENIED.value, S.CANCELLED.value),
)


class AllocationMachine(StatusMachine):
    """Status machine that chooses the approval target by amount."""

    def __init__(self):
        super().__init__(ALLOCATION_WORKFLOW, AllocationStatus)

    def _select(
        self,
        transitions: tuple[Transition, ...],
        status: Enum,
        subject: ReviewSubject,
        request: TransitionRequest,
    ) -> TransitionDecision:
        if request.action != ReviewAction.APPROVE:
            return super()._select(transitions, status, subject, request)

        requested: Decimal = subject.requested_amount
        if request.approved_amount is None:
            approved = requested
        else:
            try:
                approved = coerce_amount("approved_amount", request.approved_amount)
            except InvalidRequestDataError:
                raise InvalidAmountError(str(request.approved_amount), str(requested)) from None
            if approved < 0 or approved > requested:
                raise InvalidAmountError(str(approved), str(requested))

        guard = FULL_GRANT if approved == requested else PARTIAL_GRANT
        transition = next(t for t in transitions if t.guard == guard)
        return TransitionDecision(
            transition=transition,
            previous_status=status,
            new_status=self.coerce_status(transition.to_state),
            approved_amount=approved,
        )


ALLOCATION_MACHINE = AllocationMachine()

logger.info("allocation_workflow_registered", extra={
    "workflow_name": ALLOCATION_WORKFLOW.name,
    "state_count": len(ALLOCATION_WORKFLOW.states),
    "transition_count": len(ALLOCATION_WORKFLOW.transitions),
})
