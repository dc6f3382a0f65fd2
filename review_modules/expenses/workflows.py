"""Expense Workflows.

Role-gated approval chain: ministry leader, then treasury, then finance.
Each stage may deny (terminal, reason required).  ``admin`` may act at any
stage.  The original requester may cancel from any non-terminal stage.

The ``forward`` steps move an approved stage into the next stage's queue;
a reviewer may also act directly on the approved state, so forwarding is
optional.
"""

from review_kernel.domain.values import ActorRole, ReviewAction
from review_kernel.domain.workflow import (
    NotificationRecipient,
    StatusMachine,
    Transition,
    Workflow,
)
from review_kernel.logging_config import get_logger
from review_modules.expenses.models import ExpenseStatus

logger = get_logger("modules.expenses.workflows")

S = ExpenseStatus

_LEADER = frozenset({ActorRole.MINISTRY_LEADER, ActorRole.ADMIN})
_TREASURY = frozenset({ActorRole.TREASURY, ActorRole.ADMIN})
_FINANCE = frozenset({ActorRole.FINANCE, ActorRole.ADMIN})

_TERMINAL = (S.LEADER_DENIED, S.TREASURY_DENIED, S.COMPLETED, S.CANCELLED)
_CANCELLABLE = tuple(s for s in ExpenseStatus if s not in _TERMINAL)


def _treasury_stage(from_state: ExpenseStatus) -> tuple[Transition, ...]:
    return (
        Transition(from_state.value, ReviewAction.APPROVE, S.TREASURY_APPROVED.value,
                   roles=_TREASURY, notification="expense_treasury_approved"),
        Transition(from_state.value, ReviewAction.DENY, S.TREASURY_DENIED.value,
                   roles=_TREASURY, requires_reason=True,
                   notification="expense_treasury_denied"),
    )


def _finance_stage(from_state: ExpenseStatus) -> tuple[Transition, ...]:
    return (
        Transition(from_state.value, ReviewAction.COMPLETE, S.COMPLETED.value,
                   roles=_FINANCE, notification="expense_completed"),
    )


EXPENSE_WORKFLOW = Workflow(
    name="expense",
    description="Expense reimbursement approval chain",
    initial_state=S.DRAFT.value,
    states=tuple(s.value for s in ExpenseStatus),
    transitions=(
        Transition(S.DRAFT.value, ReviewAction.SUBMIT, S.PENDING_LEADER.value,
                   requester_only=True, notification="expense_submitted",
                   recipient=NotificationRecipient.STAGE_REVIEWER),
        # Leader stage
        Transition(S.PENDING_LEADER.value, ReviewAction.APPROVE, S.LEADER_APPROVED.value,
                   roles=_LEADER, notification="expense_leader_approved"),
        Transition(S.PENDING_LEADER.value, ReviewAction.DENY, S.LEADER_DENIED.value,
                   roles=_LEADER, requires_reason=True,
                   notification="expense_leader_denied"),
        Transition(S.LEADER_APPROVED.value, ReviewAction.FORWARD, S.PENDING_TREASURY.value,
                   roles=_LEADER | _TREASURY),
        # Treasury stage
        *_treasury_stage(S.LEADER_APPROVED),
        *_treasury_stage(S.PENDING_TREASURY),
        Transition(S.TREASURY_APPROVED.value, ReviewAction.FORWARD, S.PENDING_FINANCE.value,
                   roles=_TREASURY | _FINANCE),
        # Finance stage
        *_finance_stage(S.TREASURY_APPROVED),
        *_finance_stage(S.PENDING_FINANCE),
        # Requester withdrawal
        *(
            Transition(s.value, ReviewAction.CANCEL, S.CANCELLED.value,
                       requester_only=True, notification="expense_cancelled",
                       recipient=NotificationRecipient.STAGE_REVIEWER)
            for s in _CANCELLABLE
        ),
    ),
    terminal_states=tuple(s.value for s in _TERMINAL),
)

EXPENSE_MACHINE = StatusMachine(EXPENSE_WORKFLOW, ExpenseStatus)

logger.info("expense_workflow_registered", extra={
    "workflow_name": EXPENSE_WORKFLOW.name,
    "state_count": len(EXPENSE_WORKFLOW.states),
    "transition_count": len(EXPENSE_WORKFLOW.transitions),
})
