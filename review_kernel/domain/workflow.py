"""
Canonical workflow types (``review_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects and decision logic for request status machines.  Event,
expense and allocation workflows are all declared as a ``Workflow`` of
``Transition`` rows and evaluated by a ``StatusMachine``, so the legality
rules live in exactly one table per request kind.

Architecture position
---------------------
**Kernel domain layer** -- pure.  ZERO I/O.  No imports from ``db/``,
``services/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions except those flagged as
  ``reversal``.
* ``(from_state, action)`` pairs with several targets must all carry a
  guard so the machine can choose between them.
* Decision order is fixed: unknown (status, action) -> InvalidTransition;
  actor without stage authority -> Forbidden; empty reason on a denial
  -> MissingReason; then target selection.

Failure modes
-------------
* ValueError at import time for a malformed workflow definition.
* ValueError when a stored status string is not part of the status enum.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Protocol

from review_kernel.domain.values import ActorRole, ReviewAction, ReviewScope
from review_kernel.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    MissingReasonError,
)


class NotificationRecipient(str, Enum):
    """Who a transition's notification is addressed to."""

    REQUESTER = "requester"
    STAGE_REVIEWER = "stage_reviewer"
    ALLOCATION_REVIEWER = "allocation_reviewer"


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the machine's
    ``_select`` hook does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  A transition is authorized for an actor whose role is
    in ``roles``, or, when ``requester_only`` is set, for the record's
    requester whatever their role.
    """
    from_state: str
    action: ReviewAction
    to_state: str
    roles: frozenset[ActorRole] = frozenset()
    requester_only: bool = False
    requires_reason: bool = False
    guard: Guard | None = None
    notification: str | None = None
    recipient: NotificationRecipient = NotificationRecipient.REQUESTER
    allows_series_scope: bool = False
    reversal: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for one request kind.

    Contract: frozen; validated on construction.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        states = set(self.states)
        if self.initial_state not in states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state!r} not declared"
            )
        for state in self.terminal_states:
            if state not in states:
                raise ValueError(f"{self.name}: terminal state {state!r} not declared")

        by_key: dict[tuple[str, ReviewAction], list[Transition]] = {}
        for t in self.transitions:
            if t.from_state not in states or t.to_state not in states:
                raise ValueError(
                    f"{self.name}: transition {t.from_state}->{t.to_state} "
                    f"references an undeclared state"
                )
            if not t.roles and not t.requester_only:
                raise ValueError(
                    f"{self.name}: {t.from_state}/{t.action.value} authorizes nobody"
                )
            if t.from_state in self.terminal_states and not t.reversal:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} has a "
                    f"non-reversal transition {t.action.value!r}"
                )
            by_key.setdefault((t.from_state, t.action), []).append(t)

        for (state, action), group in by_key.items():
            if len(group) > 1 and any(t.guard is None for t in group):
                raise ValueError(
                    f"{self.name}: {state}/{action.value} has several targets "
                    f"but not every one is guarded"
                )

    def transitions_from(self, state: str, action: ReviewAction) -> tuple[Transition, ...]:
        return tuple(
            t for t in self.transitions
            if t.from_state == state and t.action == action
        )

    def outgoing(self, state: str) -> tuple[Transition, ...]:
        return tuple(t for t in self.transitions if t.from_state == state)

    @property
    def series_actions(self) -> frozenset[ReviewAction]:
        """Actions that accept ``scope=all``."""
        return frozenset(t.action for t in self.transitions if t.allows_series_scope)

    @property
    def notification_templates(self) -> frozenset[str]:
        return frozenset(t.notification for t in self.transitions if t.notification)


# ---------------------------------------------------------------------------
# Decision inputs and outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActorContext:
    """Who is acting.  Trusted as already authenticated."""
    actor_id: str
    role: ActorRole
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "actor_id", str(self.actor_id))
        object.__setattr__(self, "role", ActorRole(self.role))


@dataclass(frozen=True)
class TransitionRequest:
    """An actor asking to apply ``action`` to a record."""
    action: ReviewAction
    actor: ActorContext
    notes: str | None = None
    scope: ReviewScope = ReviewScope.SINGLE
    approved_amount: Decimal | None = None
    payment_reference: str | None = None

    @property
    def has_reason(self) -> bool:
        return bool(self.notes and self.notes.strip())


class ReviewSubject(Protocol):
    """The record facts a machine needs to decide."""

    @property
    def status(self) -> str: ...

    @property
    def requester_id(self) -> object: ...


@dataclass(frozen=True)
class TransitionDecision:
    """The outcome of a successful ``StatusMachine.decide`` call."""
    transition: Transition
    previous_status: Enum
    new_status: Enum
    approved_amount: Decimal | None = None
    extra: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Status machine
# ---------------------------------------------------------------------------


class StatusMachine:
    """
    Evaluates a ``Workflow`` table for one request kind.

    Contract:
        ``decide`` is pure: it never mutates the subject.  It either returns
        a ``TransitionDecision`` or raises a ``WorkflowError`` subclass.

    Guarantees:
        - Re-issuing an already-applied transition fails InvalidTransition,
          because the new status has no such outgoing row.
        - ``legal_actions`` lists exactly the actions ``decide`` would accept
          for the actor, ignoring reason and amount checks.

    Subclasses override ``_select`` when a ``(status, action)`` pair has
    several guarded targets.
    """

    def __init__(self, workflow: Workflow, status_type: type[Enum]):
        self.workflow = workflow
        self.status_type = status_type
        declared = {s.value for s in status_type}
        if set(workflow.states) != declared:
            raise ValueError(
                f"{workflow.name}: states {sorted(workflow.states)} do not match "
                f"{status_type.__name__} {sorted(declared)}"
            )

    @property
    def name(self) -> str:
        return self.workflow.name

    def coerce_status(self, status: str | Enum) -> Enum:
        """Convert a stored status string to the closed enum."""
        return self.status_type(status)

    def is_terminal(self, status: str | Enum) -> bool:
        return self.coerce_status(status).value in self.workflow.terminal_states

    def decide(self, subject: ReviewSubject, request: TransitionRequest) -> TransitionDecision:
        status = self.coerce_status(subject.status)
        action = ReviewAction(request.action)

        candidates = self.workflow.transitions_from(status.value, action)
        if not candidates:
            raise InvalidTransitionError(self.name, status.value, action.value)

        authorized = tuple(
            t for t in candidates
            if self._authorizes(t, request.actor, subject.requester_id)
        )
        if not authorized:
            raise ForbiddenError(
                action=action.value,
                status=status.value,
                actor_role=request.actor.role.value,
                reason=self._describe_authority(candidates),
            )

        if any(t.requires_reason for t in authorized) and not request.has_reason:
            raise MissingReasonError(action.value)

        return self._select(authorized, status, subject, request)

    def legal_actions(
        self, subject: ReviewSubject, actor: ActorContext,
    ) -> tuple[ReviewAction, ...]:
        status = self.coerce_status(subject.status)
        allowed = {
            t.action for t in self.workflow.outgoing(status.value)
            if self._authorizes(t, actor, subject.requester_id)
        }
        return tuple(a for a in ReviewAction if a in allowed)

    def _select(
        self,
        transitions: tuple[Transition, ...],
        status: Enum,
        subject: ReviewSubject,
        request: TransitionRequest,
    ) -> TransitionDecision:
        transition = transitions[0]
        return TransitionDecision(
            transition=transition,
            previous_status=status,
            new_status=self.coerce_status(transition.to_state),
        )

    @staticmethod
    def _authorizes(transition: Transition, actor: ActorContext, requester_id: object) -> bool:
        if transition.requester_only:
            return actor.actor_id == str(requester_id)
        return actor.role in transition.roles

    @staticmethod
    def _describe_authority(transitions: tuple[Transition, ...]) -> str:
        t = transitions[0]
        if t.requester_only:
            return "only the requester may perform this action"
        roles = ", ".join(sorted(r.value for r in t.roles))
        return f"requires one of: {roles}"
