"""
review_services.drafts -- creating and editing draft requests.

Responsibility:
    Creates event, expense and allocation requests in ``draft`` status and
    lets the requester edit a draft before submitting it.  Every created
    request gets the genesis entry of its history chain.

Architecture position:
    Services layer.  Owns the transaction boundary for draft writes.

Invariants enforced:
    - Only drafts are editable, and only by their requester.
    - Content is validated before anything is written.
    - Referenced rooms, ministries, fiscal years and series roots must
      belong to the same organization.
    - A series is created root first; every member is recurring and every
      child points at the root.

Failure modes:
    - InvalidRequestDataError / InvalidSeriesError / InvalidBreakdownError
      for bad content.
    - ImmutableRecordError when editing a non-draft.
    - ForbiddenError when someone other than the requester edits.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from review_kernel.domain.clock import Clock, SystemClock
from review_kernel.domain.records import RequestRecord
from review_kernel.domain.values import ActorRole
from review_kernel.exceptions import (
    ForbiddenError,
    ImmutableRecordError,
    InvalidRequestDataError,
)
from review_kernel.logging_config import LogContext, get_logger
from review_kernel.models.review_request import ReviewRequestModel
from review_kernel.services.auditor_service import AuditorService
from review_modules.allocations.models import (
    PeriodEntry,
    PeriodType,
    derive_requested_amount,
    normalize_breakdown,
)
from review_modules.allocations.orm import AllocationPeriodEntryModel, AllocationRequestModel
from review_modules.events.models import (
    EventRequest,
    validate_event_content,
    validate_series_link,
)
from review_modules.events.orm import EventRequestModel
from review_modules.expenses.models import validate_expense_content
from review_modules.expenses.orm import ExpenseRequestModel
from review_services.request_store import RequestStore, as_uuid

logger = get_logger("services.drafts")

DRAFT_STATUS = "draft"

EDITABLE_FIELDS: dict[type[ReviewRequestModel], frozenset[str]] = {
    EventRequestModel: frozenset({"title", "description", "starts_at", "ends_at", "room_id"}),
    ExpenseRequestModel: frozenset({"title", "amount", "justification"}),
    AllocationRequestModel: frozenset({"period_type", "period_breakdown", "annual_amount", "notes"}),
}


class DraftService:
    """
    Creates requests and edits drafts for one organization.

    Contract:
        Each public method commits on success and rolls back on failure.
        Returned values are frozen snapshots, never ORM rows.
    """

    def __init__(
        self,
        session: Session,
        organization_id: UUID | str,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._store = RequestStore(session, organization_id)
        self._auditor = AuditorService(session, self._clock)

    @property
    def organization_id(self) -> UUID:
        return self._store.organization_id

    # =========================================================================
    # Helpers
    # =========================================================================

    def _requester_columns(
        self,
        requester_id: UUID | str,
        requester_name: str,
        requester_email: str | None,
    ) -> dict[str, Any]:
        if not requester_name or not requester_name.strip():
            raise InvalidRequestDataError("requester_name", "must not be empty")
        now = self._clock.now()
        return {
            "id": uuid4(),
            "organization_id": self.organization_id,
            "requester_id": as_uuid(requester_id),
            "requester_name": requester_name.strip(),
            "requester_email": requester_email,
            "status": DRAFT_STATUS,
            "created_at": now,
            "updated_at": now,
        }

    def _require_room(self, room_id: UUID | str | None) -> UUID | None:
        if room_id is None:
            return None
        room = self._store.room(as_uuid(room_id))
        if room is None:
            raise InvalidRequestDataError("room_id", f"room {room_id} not found")
        return room.id

    def _require_ministry(self, ministry_id: UUID | str) -> UUID:
        ministry = self._store.ministry(as_uuid(ministry_id))
        if ministry is None:
            raise InvalidRequestDataError("ministry_id", f"ministry {ministry_id} not found")
        return ministry.id

    def _require_fiscal_year(self, fiscal_year_id: UUID | str) -> UUID:
        fiscal_year = self._store.fiscal_year(as_uuid(fiscal_year_id))
        if fiscal_year is None:
            raise InvalidRequestDataError(
                "fiscal_year_id", f"fiscal year {fiscal_year_id} not found",
            )
        return fiscal_year.id

    def _persist(self, record: ReviewRequestModel, payload: dict[str, Any]) -> ReviewRequestModel:
        self._store.add(record)
        self._auditor.record_created(
            request_id=record.id,
            organization_id=record.organization_id,
            status=record.status,
            actor_id=record.requester_id,
            actor_name=record.requester_name,
            payload=payload,
        )
        logger.info(
            "draft_created",
            extra={"request_id": str(record.id), "kind": record.kind},
        )
        return record

    # =========================================================================
    # Events
    # =========================================================================

    def create_event_request(
        self,
        requester_id: UUID | str,
        requester_name: str,
        title: str,
        starts_at: datetime,
        ends_at: datetime,
        *,
        room_id: UUID | str | None = None,
        description: str | None = None,
        requester_email: str | None = None,
        is_recurring: bool = False,
        parent_event_id: UUID | str | None = None,
    ) -> EventRequest:
        """Create one event request in ``draft``."""
        try:
            record = self._build_event(
                requester_id, requester_name, title, starts_at, ends_at,
                room_id=room_id,
                description=description,
                requester_email=requester_email,
                is_recurring=is_recurring,
                parent_event_id=parent_event_id,
            )
            self._persist(record, {"title": record.title, "is_recurring": record.is_recurring})
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return record.to_dto()

    def create_event_series(
        self,
        requester_id: UUID | str,
        requester_name: str,
        title: str,
        occurrences: Sequence[tuple[datetime, datetime]],
        *,
        room_id: UUID | str | None = None,
        description: str | None = None,
        requester_email: str | None = None,
    ) -> tuple[EventRequest, ...]:
        """
        Create a recurring series: the first occurrence is the root and the
        rest are its children.  Returns the snapshots root first.
        """
        if not occurrences:
            raise InvalidRequestDataError("occurrences", "a series needs at least one occurrence")

        try:
            first_start, first_end = occurrences[0]
            root = self._build_event(
                requester_id, requester_name, title, first_start, first_end,
                room_id=room_id,
                description=description,
                requester_email=requester_email,
                is_recurring=True,
            )
            self._persist(root, {"title": root.title, "is_recurring": True, "series_size": len(occurrences)})

            members = [root]
            for starts_at, ends_at in occurrences[1:]:
                child = self._build_event(
                    requester_id, requester_name, title, starts_at, ends_at,
                    room_id=room_id,
                    description=description,
                    requester_email=requester_email,
                    is_recurring=True,
                    parent_event_id=root.id,
                )
                self._persist(child, {"title": child.title, "is_recurring": True, "parent_event_id": root.id})
                members.append(child)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "event_series_created",
            extra={"root_id": str(root.id), "member_count": len(members)},
        )
        return tuple(m.to_dto() for m in members)

    def _build_event(
        self,
        requester_id: UUID | str,
        requester_name: str,
        title: str,
        starts_at: datetime,
        ends_at: datetime,
        *,
        room_id: UUID | str | None,
        description: str | None,
        requester_email: str | None,
        is_recurring: bool,
        parent_event_id: UUID | str | None = None,
    ) -> EventRequestModel:
        validate_event_content(title, starts_at, ends_at)
        parent_id = as_uuid(parent_event_id) if parent_event_id is not None else None

        record = EventRequestModel(
            **self._requester_columns(requester_id, requester_name, requester_email),
            title=title.strip(),
            description=description,
            starts_at=starts_at,
            ends_at=ends_at,
            room_id=self._require_room(room_id),
            is_recurring=is_recurring,
            parent_event_id=parent_id,
        )
        self._check_series_link(record)
        return record

    def _check_series_link(self, record: EventRequestModel) -> None:
        if record.parent_event_id is None:
            return
        parent_row = self._session.get(EventRequestModel, record.parent_event_id)
        parent = None
        if parent_row is not None and parent_row.organization_id == self.organization_id:
            parent = parent_row.to_dto()
        validate_series_link(record.id, record.is_recurring, record.parent_event_id, parent)

    # =========================================================================
    # Expenses
    # =========================================================================

    def create_expense_request(
        self,
        requester_id: UUID | str,
        requester_name: str,
        ministry_id: UUID | str,
        title: str,
        amount: Decimal | str | int,
        justification: str,
        *,
        requester_email: str | None = None,
    ):
        """Create an expense request in ``draft``."""
        normalized = validate_expense_content(title, amount, justification)
        try:
            record = ExpenseRequestModel(
                **self._requester_columns(requester_id, requester_name, requester_email),
                ministry_id=self._require_ministry(ministry_id),
                title=title.strip(),
                amount=normalized,
                justification=justification.strip(),
            )
            self._persist(record, {"title": record.title, "amount": normalized})
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return record.to_dto()

    # =========================================================================
    # Allocations
    # =========================================================================

    def create_allocation_request(
        self,
        requester_id: UUID | str,
        requester_name: str,
        fiscal_year_id: UUID | str,
        ministry_id: UUID | str,
        period_type: PeriodType | str,
        *,
        period_breakdown: Iterable[PeriodEntry | tuple[str, object]] = (),
        annual_amount: object = None,
        notes: str | None = None,
        requester_email: str | None = None,
    ):
        """
        Create an allocation request in ``draft``.

        Quarterly and monthly requests pass ``period_breakdown``; annual
        requests pass ``annual_amount``.  ``requested_amount`` is derived.
        """
        period_type = PeriodType(period_type)
        entries = normalize_breakdown(period_type, period_breakdown)
        requested = derive_requested_amount(period_type, entries, annual_amount)
        try:
            record = AllocationRequestModel(
                **self._requester_columns(requester_id, requester_name, requester_email),
                fiscal_year_id=self._require_fiscal_year(fiscal_year_id),
                ministry_id=self._require_ministry(ministry_id),
                period_type=period_type.value,
                requested_amount=requested,
                notes=notes,
            )
            record.period_entries = _entry_rows(entries)
            self._persist(
                record,
                {"period_type": period_type.value, "requested_amount": requested},
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return record.to_dto()

    # =========================================================================
    # Draft editing
    # =========================================================================

    def update_draft(
        self,
        request_id: UUID | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str = ActorRole.MEMBER,
        **changes: Any,
    ) -> RequestRecord:
        """
        Edit a draft's content.  Only the requester may edit, and only while
        the request is a draft.

        Raises:
            ImmutableRecordError: the request has left ``draft``.
            ForbiddenError: ``actor_id`` is not the requester.
            InvalidRequestDataError: unknown field or invalid content.
        """
        with LogContext.bind(
            organization_id=str(self.organization_id),
            request_id=str(request_id),
            actor_id=str(actor_id),
        ):
            try:
                record = self._store.lock_for_review(request_id)
                if record.status != DRAFT_STATUS:
                    raise ImmutableRecordError(str(record.id), record.status)
                if str(record.requester_id) != str(actor_id):
                    raise ForbiddenError(
                        "edit", record.status, ActorRole(actor_role).value,
                        "only the requester may edit a draft",
                    )

                allowed = EDITABLE_FIELDS[type(record)]
                unknown = sorted(set(changes) - allowed)
                if unknown:
                    raise InvalidRequestDataError(unknown[0], "field is not editable")

                if isinstance(record, EventRequestModel):
                    self._update_event(record, changes)
                elif isinstance(record, ExpenseRequestModel):
                    self._update_expense(record, changes)
                else:
                    self._update_allocation(record, changes)

                record.updated_at = self._clock.now()
                self._session.flush()
                self._session.commit()
                self._store.remember([record])
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "draft_updated",
                extra={"request_id": str(record.id), "fields": sorted(changes)},
            )
            return record.to_dto()

    def _update_event(self, record: EventRequestModel, changes: dict[str, Any]) -> None:
        title = changes.get("title", record.title)
        starts_at = changes.get("starts_at", record.starts_at)
        ends_at = changes.get("ends_at", record.ends_at)
        validate_event_content(title, starts_at, ends_at)
        record.title = title.strip()
        record.starts_at = starts_at
        record.ends_at = ends_at
        if "description" in changes:
            record.description = changes["description"]
        if "room_id" in changes:
            record.room_id = self._require_room(changes["room_id"])

    def _update_expense(self, record: ExpenseRequestModel, changes: dict[str, Any]) -> None:
        title = changes.get("title", record.title)
        justification = changes.get("justification", record.justification)
        amount = validate_expense_content(title, changes.get("amount", record.amount), justification)
        record.title = title.strip()
        record.justification = justification.strip()
        record.amount = amount

    def _update_allocation(self, record: AllocationRequestModel, changes: dict[str, Any]) -> None:
        period_type = PeriodType(changes.get("period_type", record.period_type))
        if "period_breakdown" in changes or "annual_amount" in changes or "period_type" in changes:
            entries = normalize_breakdown(period_type, changes.get("period_breakdown", ()))
            requested = derive_requested_amount(period_type, entries, changes.get("annual_amount"))
            # old rows must be deleted before labels are reused
            record.period_entries.clear()
            self._session.flush()
            record.period_type = period_type.value
            record.requested_amount = requested
            record.period_entries.extend(_entry_rows(entries))
        if "notes" in changes:
            record.notes = changes["notes"]


def _entry_rows(entries: tuple[PeriodEntry, ...]) -> list[AllocationPeriodEntryModel]:
    return [
        AllocationPeriodEntryModel(position=i, period_label=e.period_label, amount=e.amount)
        for i, e in enumerate(entries)
    ]
