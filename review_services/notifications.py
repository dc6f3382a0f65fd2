"""
review_services.notifications -- templated messages and the outbox relay.

Responsibility:
    Builds the field set for each notification, writes outbox rows inside
    the review transaction, and delivers them after commit through a
    ``NotificationDispatcher``.

Architecture position:
    Services layer.  The dispatcher is an external collaborator; this
    module only depends on its ``send`` signature.

Invariants enforced:
    - Outbox rows are only written by ``NotificationOutbox.enqueue`` inside
      the caller's unit of work, so a rolled-back review owes nothing.
    - ``NotificationRelay`` runs after commit and holds no record lock.
    - A dispatcher failure (receipt with success=False, or any exception)
      marks the message failed; it never propagates to the review caller.

Failure modes:
    - ``DeliveryReport.failures`` lists every message that could not be sent.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from review_config.schema import NotificationSettings
from review_kernel.domain.clock import Clock, SystemClock
from review_kernel.domain.workflow import NotificationRecipient, Transition
from review_kernel.logging_config import get_logger
from review_kernel.models.notification_outbox import NotificationOutboxMessage, OutboxStatus
from review_kernel.models.review_request import ReviewRequestModel
from review_kernel.utils.hashing import to_json_safe
from review_modules.allocations.orm import AllocationRequestModel
from review_modules.events.orm import EventRequestModel
from review_modules.expenses.orm import ExpenseRequestModel
from review_services.request_store import RequestStore

logger = get_logger("services.notifications")


# ---------------------------------------------------------------------------
# Dispatcher interface
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeliveryReceipt:
    """Outcome of one ``send`` call."""

    success: bool
    error: str | None = None


@runtime_checkable
class NotificationDispatcher(Protocol):
    """
    Sends one templated message.

    Implementations may return a failed receipt or raise; both count as a
    failed delivery.  Timeouts are the implementation's responsibility.
    """

    def send(
        self, recipient_email: str, template: str, fields: Mapping[str, Any],
    ) -> DeliveryReceipt: ...


# ---------------------------------------------------------------------------
# Field builders
# ---------------------------------------------------------------------------


class NotificationFieldBuilder:
    """Renders the message fields for a request after a transition."""

    def __init__(self, store: RequestStore, settings: NotificationSettings):
        self._store = store
        self._settings = settings
        self._tz = ZoneInfo(settings.time_zone)

    def _format_time(self, value) -> str:
        return value.astimezone(self._tz).strftime(self._settings.datetime_format)

    def build(
        self,
        record: ReviewRequestModel,
        *,
        notes: str | None = None,
        reviewer_name: str | None = None,
        series_size: int = 1,
    ) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "request_id": str(record.id),
            "kind": record.kind,
            "status": record.status,
            "requester_name": record.requester_name,
        }
        if reviewer_name:
            fields["reviewer_name"] = reviewer_name
        if notes and notes.strip():
            fields["reviewer_notes"] = notes.strip()

        if isinstance(record, EventRequestModel):
            fields.update(self._event_fields(record))
            if series_size > 1:
                fields["series_size"] = series_size
        elif isinstance(record, ExpenseRequestModel):
            fields.update(self._expense_fields(record))
        elif isinstance(record, AllocationRequestModel):
            fields.update(self._allocation_fields(record))

        return to_json_safe(fields)

    def _event_fields(self, record: EventRequestModel) -> dict[str, Any]:
        room = self._store.room(record.room_id)
        return {
            "title": record.title,
            "starts_at": self._format_time(record.starts_at),
            "ends_at": self._format_time(record.ends_at),
            "room_name": room.name if room else None,
        }

    def _expense_fields(self, record: ExpenseRequestModel) -> dict[str, Any]:
        ministry = self._store.ministry(record.ministry_id)
        fields: dict[str, Any] = {
            "title": record.title,
            "amount": str(record.amount),
            "ministry_name": ministry.name if ministry else None,
        }
        if record.payment_reference:
            fields["payment_reference"] = record.payment_reference
        return fields

    def _allocation_fields(self, record: AllocationRequestModel) -> dict[str, Any]:
        ministry = self._store.ministry(record.ministry_id)
        fiscal_year = self._store.fiscal_year(record.fiscal_year_id)
        ministry_name = ministry.name if ministry else None
        year_name = fiscal_year.name if fiscal_year else None
        fields: dict[str, Any] = {
            "title": f"{ministry_name or 'Ministry'} budget {year_name or ''}".strip(),
            "ministry_name": ministry_name,
            "fiscal_year": year_name,
            "period_type": record.period_type,
            "amount": str(record.requested_amount),
        }
        if record.approved_amount is not None:
            fields["approved_amount"] = str(record.approved_amount)
        return fields


# ---------------------------------------------------------------------------
# Outbox writer
# ---------------------------------------------------------------------------


class NotificationOutbox:
    """
    Writes outbox rows inside the caller's transaction.

    Non-goals:
        - Does NOT commit and does NOT send.
    """

    def __init__(
        self,
        session: Session,
        store: RequestStore,
        settings: NotificationSettings,
        clock: Clock | None = None,
    ):
        self._session = session
        self._store = store
        self._settings = settings
        self._clock = clock or SystemClock()
        self._fields = NotificationFieldBuilder(store, settings)

    def recipient_for(
        self, transition: Transition, record: ReviewRequestModel,
    ) -> str | None:
        if transition.recipient is NotificationRecipient.REQUESTER:
            return record.requester_email
        if transition.recipient is NotificationRecipient.ALLOCATION_REVIEWER:
            return self._settings.allocation_reviewer_email
        ministry = self._store.ministry(getattr(record, "ministry_id", None))
        return ministry.leader_email if ministry else None

    def enqueue(
        self,
        transition: Transition,
        record: ReviewRequestModel,
        *,
        notes: str | None = None,
        reviewer_name: str | None = None,
        series_size: int = 1,
    ) -> NotificationOutboxMessage | None:
        """Queue the transition's notification; None when it declares none or has no recipient."""
        if transition.notification is None:
            return None

        recipient = self.recipient_for(transition, record)
        if not recipient:
            logger.warning(
                "notification_skipped_no_recipient",
                extra={
                    "request_id": str(record.id),
                    "template": transition.notification,
                    "recipient_kind": transition.recipient.value,
                },
            )
            return None

        message = NotificationOutboxMessage(
            organization_id=record.organization_id,
            request_id=record.id,
            template=transition.notification,
            recipient_email=recipient,
            fields=self._fields.build(
                record, notes=notes, reviewer_name=reviewer_name, series_size=series_size,
            ),
            status=OutboxStatus.PENDING.value,
            attempts=0,
            created_at=self._clock.now(),
        )
        self._session.add(message)
        self._session.flush()

        logger.info(
            "notification_enqueued",
            extra={
                "message_id": str(message.id),
                "request_id": str(record.id),
                "template": message.template,
            },
        )
        return message


# ---------------------------------------------------------------------------
# Relay
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeliveryFailure:
    message_id: UUID
    template: str
    recipient_email: str
    error: str


@dataclass(frozen=True)
class DeliveryReport:
    """Result of one relay pass."""

    sent: tuple[UUID, ...] = ()
    failures: tuple[DeliveryFailure, ...] = field(default_factory=tuple)

    @property
    def all_sent(self) -> bool:
        return not self.failures

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(
            f"Notification '{f.template}' to {f.recipient_email} failed: {f.error}"
            for f in self.failures
        )


class NotificationRelay:
    """
    Delivers outbox messages after the owning transaction committed.

    Contract:
        Each attempt increments ``attempts``, records ``last_attempt_at``,
        and moves the message to ``sent`` or ``failed``.  The relay commits
        its own bookkeeping per message.

    Non-goals:
        - Does NOT schedule itself.  ``retry_failed`` runs when a caller
          invokes it.
    """

    def __init__(
        self,
        session: Session,
        dispatcher: NotificationDispatcher,
        settings: NotificationSettings,
        clock: Clock | None = None,
    ):
        self._session = session
        self._dispatcher = dispatcher
        self._settings = settings
        self._clock = clock or SystemClock()

    def deliver(self, message_ids: Iterable[UUID]) -> DeliveryReport:
        """Attempt every message in ``message_ids`` once."""
        ids = list(message_ids)
        if not ids:
            return DeliveryReport()
        messages = self._session.execute(
            select(NotificationOutboxMessage)
            .where(NotificationOutboxMessage.id.in_(ids))
            .order_by(NotificationOutboxMessage.created_at)
        ).scalars().all()
        return self._attempt_all(messages)

    def retry_failed(self, organization_id: UUID | None = None) -> DeliveryReport:
        """
        Re-attempt pending and failed messages that still have attempts left.

        Pending messages are included: a process that died between commit
        and delivery leaves them behind.
        """
        query = (
            select(NotificationOutboxMessage)
            .where(
                NotificationOutboxMessage.status.in_(
                    [OutboxStatus.PENDING.value, OutboxStatus.FAILED.value]
                ),
                NotificationOutboxMessage.attempts < self._settings.max_attempts,
            )
            .order_by(NotificationOutboxMessage.created_at)
        )
        if organization_id is not None:
            query = query.where(NotificationOutboxMessage.organization_id == organization_id)
        messages = self._session.execute(query).scalars().all()
        report = self._attempt_all(messages)
        logger.info(
            "notification_retry_pass",
            extra={"sent_count": len(report.sent), "failed_count": len(report.failures)},
        )
        return report

    def _attempt_all(self, messages: Iterable[NotificationOutboxMessage]) -> DeliveryReport:
        sent: list[UUID] = []
        failures: list[DeliveryFailure] = []
        for message in messages:
            if message.status == OutboxStatus.SENT.value:
                continue
            error = self._attempt(message)
            if error is None:
                sent.append(message.id)
            else:
                failures.append(
                    DeliveryFailure(
                        message_id=message.id,
                        template=message.template,
                        recipient_email=message.recipient_email,
                        error=error,
                    )
                )
        return DeliveryReport(sent=tuple(sent), failures=tuple(failures))

    def _attempt(self, message: NotificationOutboxMessage) -> str | None:
        """Send one message and persist the outcome.  Returns the error text or None."""
        now = self._clock.now()
        try:
            receipt = self._dispatcher.send(
                message.recipient_email, message.template, dict(message.fields),
            )
            error = None if receipt.success else (receipt.error or "dispatcher reported failure")
        except Exception as exc:
            logger.warning(
                "notification_dispatcher_raised",
                extra={"message_id": str(message.id), "template": message.template},
                exc_info=True,
            )
            error = f"{type(exc).__name__}: {exc}"

        message.attempts = message.attempts + 1
        message.last_attempt_at = now
        if error is None:
            message.status = OutboxStatus.SENT.value
            message.sent_at = now
            message.last_error = None
            logger.info(
                "notification_sent",
                extra={
                    "message_id": str(message.id),
                    "template": message.template,
                    "attempts": message.attempts,
                },
            )
        else:
            message.status = OutboxStatus.FAILED.value
            message.last_error = error
            logger.warning(
                "notification_failed",
                extra={
                    "message_id": str(message.id),
                    "template": message.template,
                    "attempts": message.attempts,
                    "error": error,
                },
            )
        self._session.commit()
        return error
