"""
review_services.review_orchestrator -- the single entry point for reviews.

Responsibility:
    ``review()`` runs one reviewing action end to end:

      1. lock the target record; for series scope, lock target and members
         together in id order
      2. ask the kind's StatusMachine for a decision on every member
      3. apply the decisions, append history, queue notifications
      4. commit
      5. deliver queued notifications through the outbox relay

    Read-only accessors expose current status, the actions an actor may
    take now, and the review history.

Architecture position:
    Services layer.  Imports kernel domain/services and the request
    modules.  Owns the transaction boundary (commit on success, rollback
    on any exception).

Invariants enforced:
    - Every WorkflowError is raised before anything is written: all
      members are decided before the first one is modified.
    - Unknown action, role or scope names fail InvalidTransition, Forbidden
      or InvalidScope respectively, never a bare ValueError.
    - Series scope is all-or-nothing: one illegal member aborts the batch.
    - ``reviewer_id`` / ``reviewer_name`` / ``reviewer_notes`` /
      ``reviewed_at`` are written only by reviewing actions, never by the
      requester's own submit or cancel.
    - A version conflict (``expected_version`` mismatch, a newer row seen at
      lock time, or a versioned UPDATE matching zero rows) rolls back and
      raises StaleStateError.
    - Notification delivery happens after commit; its failure turns the
      result into a WARNING and never undoes the transition.

Failure modes:
    - RequestNotFoundError, InvalidTransitionError, ForbiddenError,
      MissingReasonError, InvalidScopeError, InvalidAmountError,
      StaleStateError -- all with the session rolled back.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from review_config import ReviewConfig, get_active_config
from review_kernel.domain.clock import Clock, SystemClock
from review_kernel.domain.records import RequestRecord
from review_kernel.domain.values import ActorRole, RequestKind, ReviewAction, ReviewScope
from review_kernel.domain.workflow import (
    ActorContext,
    StatusMachine,
    TransitionDecision,
    TransitionRequest,
)
from review_kernel.exceptions import (
    ForbiddenError,
    InvalidScopeError,
    InvalidTransitionError,
    StaleStateError,
    WorkflowError,
)
from review_kernel.logging_config import LogContext, get_logger
from review_kernel.models.review_request import ReviewRequestModel
from review_kernel.services.auditor_service import AuditorService, HistoryTrace
from review_modules.allocations.grants import BudgetGrantService
from review_modules.allocations.orm import AllocationRequestModel
from review_modules.allocations.workflows import ALLOCATION_MACHINE
from review_modules.events.series import SeriesResolver
from review_modules.events.workflows import EVENT_REVIEW_MACHINE
from review_modules.expenses.orm import ExpenseRequestModel
from review_modules.expenses.workflows import EXPENSE_MACHINE
from review_services.notifications import (
    DeliveryReport,
    NotificationDispatcher,
    NotificationOutbox,
    NotificationRelay,
)
from review_services.request_store import RequestStore, as_uuid

logger = get_logger("services.review_orchestrator")

TRACE_TYPE_REVIEW = "REVIEW_TRANSITION"

MACHINES: dict[RequestKind, StatusMachine] = {
    RequestKind.EVENT: EVENT_REVIEW_MACHINE,
    RequestKind.EXPENSE: EXPENSE_MACHINE,
    RequestKind.ALLOCATION: ALLOCATION_MACHINE,
}


def machine_for(kind: RequestKind | str) -> StatusMachine:
    return MACHINES[RequestKind(kind)]


def all_notification_templates() -> frozenset[str]:
    """Every template any workflow can emit (used to validate configuration)."""
    templates: set[str] = set()
    for machine in MACHINES.values():
        templates |= machine.workflow.notification_templates
    return frozenset(templates)


class ReviewOutcome(str, Enum):
    OK = "ok"
    WARNING = "warning"


@dataclass(frozen=True)
class ReviewOptions:
    """Optional inputs to ``review()``."""

    notes: str | None = None
    scope: ReviewScope = ReviewScope.SINGLE
    approved_amount: Decimal | None = None
    payment_reference: str | None = None
    expected_version: int | None = None


@dataclass(frozen=True)
class ReviewResult:
    """
    Outcome of a committed review.

    ``records`` holds the updated snapshot of every transitioned request,
    target first.  ``outcome`` is WARNING when any notification could not
    be delivered; ``warnings`` says which.
    """

    records: tuple[RequestRecord, ...]
    outcome: ReviewOutcome = ReviewOutcome.OK
    warnings: tuple[str, ...] = ()
    notification_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def record(self) -> RequestRecord:
        return self.records[0]

    @property
    def ok(self) -> bool:
        return self.outcome is ReviewOutcome.OK


def _emit_review_trace(
    machine: StatusMachine | None,
    action: ReviewAction | str,
    request_id: UUID | str,
    outcome: str,
    duration_ms: float,
    from_state: str | None = None,
    to_state: str | None = None,
    member_count: int = 0,
    error_code: str | None = None,
) -> None:
    """One structured line per review attempt, committed or refused."""
    extra: dict[str, Any] = {
        "trace_type": TRACE_TYPE_REVIEW,
        "workflow": machine.name if machine else None,
        "action": action.value if isinstance(action, Enum) else str(action),
        "target_id": str(request_id),
        "outcome": outcome,
        "duration_ms": round(duration_ms, 3),
        "member_count": member_count,
    }
    if from_state is not None:
        extra["from_state"] = from_state
    if to_state is not None:
        extra["to_state"] = to_state
    if error_code is not None:
        extra["error_code"] = error_code
    logger.info("review_transition", extra=extra)


class ReviewOrchestrator:
    """
    Applies reviewing actions to requests of one organization.

    Contract:
        ``review`` either commits every member transition, its history
        entries and its outbox rows together, or raises with nothing
        written.  Notification delivery is attempted after commit.

    Guarantees:
        - Decisions come only from the StatusMachine tables.
        - Clock is injectable for deterministic testing.

    Non-goals:
        - Does NOT authenticate the actor; ``actor_id`` and ``actor_role``
          are trusted as supplied.
    """

    def __init__(
        self,
        session: Session,
        organization_id: UUID | str,
        dispatcher: NotificationDispatcher,
        config: ReviewConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or get_active_config(
            required_templates=all_notification_templates(),
        )
        self._store = RequestStore(session, organization_id)
        self._series = SeriesResolver(self._store)
        self._auditor = AuditorService(session, self._clock)
        self._grants = BudgetGrantService(session, self._clock)
        self._outbox = NotificationOutbox(
            session, self._store, self._config.notifications, self._clock,
        )
        self._relay = NotificationRelay(
            session, dispatcher, self._config.notifications, self._clock,
        )

    @property
    def organization_id(self) -> UUID:
        return self._store.organization_id

    @property
    def relay(self) -> NotificationRelay:
        return self._relay

    # =========================================================================
    # Review
    # =========================================================================

    def review(
        self,
        request_id: UUID | str,
        action: ReviewAction | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str,
        options: ReviewOptions | None = None,
        *,
        actor_name: str | None = None,
    ) -> ReviewResult:
        """
        Apply ``action`` to the request as ``actor_id`` / ``actor_role``.

        Args:
            request_id: Target request.
            action: Workflow action.
            actor_id: Acting user.
            actor_role: Acting user's role in this organization.
            options: Notes, scope, approved amount, payment reference,
                expected version.
            actor_name: Display name recorded in history and notifications.

        Returns:
            ReviewResult with the updated record snapshots.

        Raises:
            WorkflowError subclass: nothing was written.
        """
        options = options or ReviewOptions()
        start = time.monotonic()
        with LogContext.bind(
            correlation_id=str(uuid4()),
            organization_id=str(self.organization_id),
            request_id=str(request_id),
            actor_id=str(actor_id),
        ):
            machine: StatusMachine | None = None
            locked_ids: list[UUID] = []
            try:
                head = self._store.peek(request_id)
                machine = machine_for(head.kind)
                request = self._parse_request(
                    head, machine, action, actor_id, actor_role, actor_name, options,
                )

                target, members = self._lock_members(head, machine, request)
                locked_ids = [r.id for r in members]
                self._check_expected_version(target, options.expected_version)

                decisions = [(record, machine.decide(record, request)) for record in members]

                message_ids = self._apply(target, decisions, request)
                self._session.commit()
            except StaleDataError as exc:
                self._session.rollback()
                # the next attempt decides against whatever is committed by then
                self._store.forget(locked_ids)
                _emit_review_trace(
                    machine, action, request_id, "stale_state",
                    (time.monotonic() - start) * 1000, error_code=StaleStateError.code,
                )
                raise StaleStateError(str(request_id)) from exc
            except WorkflowError as exc:
                self._session.rollback()
                _emit_review_trace(
                    machine, action, request_id, "refused",
                    (time.monotonic() - start) * 1000, error_code=exc.code,
                )
                raise
            except Exception:
                self._session.rollback()
                logger.error("review_failed", exc_info=True)
                raise

            self._store.remember(r for r, _ in decisions)
            target_decision = next(d for r, d in decisions if r is target)
            _emit_review_trace(
                machine, action, request_id, "committed",
                (time.monotonic() - start) * 1000,
                from_state=target_decision.previous_status.value,
                to_state=target_decision.new_status.value,
                member_count=len(decisions),
            )

            ordered = [target] + [r for r, _ in decisions if r is not target]
            records = tuple(r.to_dto() for r in ordered)

            report = self._relay.deliver(message_ids)
            return self._result(records, message_ids, report)

    def _parse_request(
        self,
        head: ReviewRequestModel,
        machine: StatusMachine,
        action: ReviewAction | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str,
        actor_name: str | None,
        options: ReviewOptions,
    ) -> TransitionRequest:
        """Coerce caller input, mapping unknown names onto the workflow errors."""
        try:
            parsed_action = ReviewAction(action)
        except ValueError:
            raise InvalidTransitionError(machine.name, head.status, str(action)) from None
        try:
            role = ActorRole(actor_role)
        except ValueError:
            raise ForbiddenError(
                parsed_action.value, head.status, str(actor_role), "unknown role",
            ) from None
        try:
            scope = ReviewScope(options.scope)
        except ValueError:
            raise InvalidScopeError(str(head.id), str(options.scope), "unknown scope") from None
        return TransitionRequest(
            action=parsed_action,
            actor=ActorContext(actor_id=str(actor_id), role=role, name=actor_name),
            notes=options.notes,
            scope=scope,
            approved_amount=options.approved_amount,
            payment_reference=options.payment_reference,
        )

    def _check_expected_version(
        self, target: ReviewRequestModel, expected_version: int | None,
    ) -> None:
        if expected_version is not None and target.version != expected_version:
            raise StaleStateError(str(target.id), expected_version, target.version)

    def _lock_members(
        self,
        head: ReviewRequestModel,
        machine: StatusMachine,
        request: TransitionRequest,
    ) -> tuple[ReviewRequestModel, list[ReviewRequestModel]]:
        """
        Lock the records the action applies to and return (target, members).

        Series scope resolves the members from an unlocked read, then locks
        target and members in one id-ordered pass and checks the series did
        not change in between.
        """
        if request.scope is ReviewScope.SINGLE:
            target = self._store.lock_for_review(head.id)
            return target, [target]

        if RequestKind(head.kind) is not RequestKind.EVENT:
            raise InvalidScopeError(
                str(head.id), request.scope.value, f"{head.kind} requests have no series",
            )
        ids = self._series.resolve(head, request.scope)
        if request.action not in machine.workflow.series_actions:
            raise InvalidScopeError(
                str(head.id), request.scope.value,
                f"action '{request.action.value}' applies to one occurrence only",
            )

        members = self._store.lock_many(ids)
        target = next((r for r in members if r.id == head.id), None)
        if target is None or set(self._series.resolve(target, request.scope)) != set(ids):
            logger.warning("series_changed_before_lock", extra={"target_id": str(head.id)})
            raise StaleStateError(str(head.id))
        return target, members

    def _apply(
        self,
        target: ReviewRequestModel,
        decisions: list[tuple[ReviewRequestModel, TransitionDecision]],
        request: TransitionRequest,
    ) -> tuple[UUID, ...]:
        now = self._clock.now()
        notes = request.notes.strip() if request.has_reason else None

        for record, decision in decisions:
            transition = decision.transition
            from_version = record.version
            record.status = decision.new_status.value
            record.updated_at = now
            if not transition.requester_only:
                record.reviewer_id = as_uuid(request.actor.actor_id)
                record.reviewer_name = request.actor.name
                record.reviewer_notes = notes
                record.reviewed_at = now
            self._apply_kind_effects(record, decision, request)

            self._auditor.record_transition(
                request_id=record.id,
                organization_id=record.organization_id,
                action=request.action.value,
                previous_status=decision.previous_status.value,
                new_status=decision.new_status.value,
                actor_id=request.actor.actor_id,
                actor_name=request.actor.name,
                notes=notes,
                payload={
                    "role": request.actor.role.value,
                    "scope": request.scope.value,
                    "series_target_id": str(target.id),
                    "from_version": from_version,
                    "approved_amount": decision.approved_amount,
                    "payment_reference": request.payment_reference,
                },
            )

        # One notification per action: a series batch describes the target only.
        target_decision = next(d for r, d in decisions if r is target)
        message = self._outbox.enqueue(
            target_decision.transition,
            target,
            notes=notes,
            reviewer_name=None if target_decision.transition.requester_only else request.actor.name,
            series_size=len(decisions),
        )
        return (message.id,) if message is not None else ()

    def _apply_kind_effects(
        self,
        record: ReviewRequestModel,
        decision: TransitionDecision,
        request: TransitionRequest,
    ) -> None:
        if isinstance(record, AllocationRequestModel):
            if request.action is ReviewAction.APPROVE:
                record.approved_amount = decision.approved_amount
                self._grants.credit(record, decision.approved_amount)
            elif request.action is ReviewAction.UNAPPROVE:
                if record.approved_amount is not None:
                    self._grants.debit(record, record.approved_amount)
                record.approved_amount = None
        elif isinstance(record, ExpenseRequestModel):
            if request.action is ReviewAction.COMPLETE and request.payment_reference:
                record.payment_reference = request.payment_reference.strip()

    def _result(
        self,
        records: tuple[RequestRecord, ...],
        message_ids: tuple[UUID, ...],
        report: DeliveryReport,
    ) -> ReviewResult:
        if report.all_sent:
            return ReviewResult(records=records, notification_ids=message_ids)

        for warning in report.warnings:
            logger.warning("review_notification_warning", extra={"detail": warning})
        return ReviewResult(
            records=records,
            outcome=ReviewOutcome.WARNING,
            warnings=report.warnings,
            notification_ids=message_ids,
        )

    # =========================================================================
    # Read-only accessors
    # =========================================================================

    def get(self, request_id: UUID | str) -> RequestRecord:
        return self._store.get(request_id).to_dto()

    def current_status(self, request_id: UUID | str) -> Enum:
        record = self._store.get(request_id)
        return machine_for(record.kind).coerce_status(record.status)

    def legal_actions(
        self,
        request_id: UUID | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str,
    ) -> tuple[ReviewAction, ...]:
        """Actions ``actor_id`` may take on the request right now.  An unknown role may take none."""
        record = self._store.get(request_id)
        try:
            role = ActorRole(actor_role)
        except ValueError:
            return ()
        actor = ActorContext(actor_id=str(actor_id), role=role)
        return machine_for(record.kind).legal_actions(record, actor)

    def history(self, request_id: UUID | str) -> HistoryTrace:
        record = self._store.get(request_id)
        return self._auditor.get_history(record.id)

    def verify_history(self, request_id: UUID | str) -> bool:
        """Recompute the request's history hash chain (raises on tampering)."""
        record = self._store.get(request_id)
        return self._auditor.validate_chain(record.id)

    def retry_notifications(self) -> DeliveryReport:
        """Re-attempt this organization's undelivered notifications."""
        return self._relay.retry_failed(self.organization_id)
