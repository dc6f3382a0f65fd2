"""Event Review Workflows.

State machine for room-booking event requests.  Every reviewing action is
admin-only; the requester submits.  Only ``reject`` accepts series scope.
"""

from review_kernel.domain.values import ActorRole, ReviewAction
from review_kernel.domain.workflow import StatusMachine, Transition, Workflow
from review_kernel.logging_config import get_logger
from review_modules.events.models import EventStatus

logger = get_logger("modules.events.workflows")

_ADMIN = frozenset({ActorRole.ADMIN})

_DRAFT = EventStatus.DRAFT.value
_PENDING = EventStatus.PENDING_REVIEW.value
_APPROVED = EventStatus.APPROVED.value
_REJECTED = EventStatus.REJECTED.value
_PUBLISHED = EventStatus.PUBLISHED.value


EVENT_REVIEW_WORKFLOW = Workflow(
    name="event_review",
    description="Event request review lifecycle",
    initial_state=_DRAFT,
    states=tuple(s.value for s in EventStatus),
    transitions=(
        Transition(_DRAFT, ReviewAction.SUBMIT, _PENDING, requester_only=True),
        Transition(_PENDING, ReviewAction.APPROVE, _APPROVED, roles=_ADMIN,
                   notification="event_approved"),
        Transition(_PENDING, ReviewAction.REJECT, _REJECTED, roles=_ADMIN,
                   requires_reason=True, notification="event_rejected",
                   allows_series_scope=True),
        Transition(_APPROVED, ReviewAction.PUBLISH, _PUBLISHED, roles=_ADMIN,
                   notification="event_published"),
        Transition(_PUBLISHED, ReviewAction.UNPUBLISH, _APPROVED, roles=_ADMIN,
                   notification="event_unapproved"),
        Transition(_APPROVED, ReviewAction.UNAPPROVE, _PENDING, roles=_ADMIN,
                   notification="event_unapproved"),
        Transition(_PUBLISHED, ReviewAction.UNAPPROVE, _PENDING, roles=_ADMIN,
                   notification="event_unapproved"),
        Transition(_REJECTED, ReviewAction.MOVE_TO_PENDING, _PENDING, roles=_ADMIN,
                   reversal=True),
    ),
    terminal_states=(_REJECTED,),
)

EVENT_REVIEW_MACHINE = StatusMachine(EVENT_REVIEW_WORKFLOW, EventStatus)

logger.info("event_review_workflow_registered", extra={
    "workflow_name": EVENT_REVIEW_WORKFLOW.name,
    "state_count": len(EVENT_REVIEW_WORKFLOW.states),
    "transition_count": len(EVENT_REVIEW_WORKFLOW.transitions),
})
