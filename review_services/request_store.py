"""
review_services.request_store -- organization-scoped request persistence.

Responsibility:
    Every read of a reviewable request goes through a ``RequestStore``
    bound to one organization.  Records owned by another organization are
    indistinguishable from missing ones.

Invariants enforced:
    - Loads for review use SELECT ... FOR UPDATE (row lock on PostgreSQL).
    - A locked load always reads the committed row (populate_existing).  If
      this session had already seen an older version of the record, the
      load fails StaleStateError instead of acting on what the caller saw.
    - Seen versions live in ``session.info`` (a plain dict), not in the
      weakly referenced identity map, so they survive callers that keep
      only DTOs.  Every store bound to the same session shares them.
    - ``get`` and every locked load record the version they read;
      ``remember`` records the versions a committed write produced.
    - Multi-record locks are taken in id order so two series batches
      cannot deadlock against each other.
    - Lookups of rooms, ministries and fiscal years are scoped the same way.

Failure modes:
    - RequestNotFoundError for unknown ids (or ids of another organization).
    - StaleStateError when a locked load finds a newer version than the
      session last saw.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from review_kernel.exceptions import RequestNotFoundError, StaleStateError
from review_kernel.logging_config import get_logger
from review_kernel.models.review_request import ReviewRequestModel
from review_modules.events.orm import EventRequestModel
from review_modules.reference.orm import FiscalYearModel, MinistryModel, RoomModel

logger = get_logger("services.request_store")

# session.info key holding {request_id: version} for every record this session has read
SEEN_VERSIONS_KEY = "review_seen_versions"


def as_uuid(value: UUID | str) -> UUID:
    """Accept a UUID or its string form."""
    return value if isinstance(value, UUID) else UUID(str(value))


class RequestStore:
    """
    Persistence adapter for review requests of one organization.

    Non-goals:
        - Does NOT commit; the calling service owns the transaction.
    """

    def __init__(self, session: Session, organization_id: UUID | str):
        self._session = session
        self.organization_id = as_uuid(organization_id)

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _parse_id(self, request_id: UUID | str) -> UUID:
        try:
            return as_uuid(request_id)
        except ValueError:
            raise RequestNotFoundError(str(request_id)) from None

    def _load(self, request_id: UUID | str) -> ReviewRequestModel:
        rid = self._parse_id(request_id)
        record = self._session.execute(
            select(ReviewRequestModel)
            .where(
                ReviewRequestModel.id == rid,
                ReviewRequestModel.organization_id == self.organization_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise RequestNotFoundError(str(request_id))
        return record

    def get(self, request_id: UUID | str) -> ReviewRequestModel:
        """Load the committed state of a request without locking it."""
        record = self._load(request_id)
        self.remember([record])
        return record

    def peek(self, request_id: UUID | str) -> ReviewRequestModel:
        """Unlocked read that leaves the seen versions untouched."""
        return self._load(request_id)

    # ------------------------------------------------------------------
    # Seen versions
    # ------------------------------------------------------------------

    @property
    def _seen(self) -> dict[UUID, int]:
        return self._session.info.setdefault(SEEN_VERSIONS_KEY, {})

    def remember(self, records: Iterable[ReviewRequestModel]) -> None:
        """Record the current version of each record as seen by this session."""
        for record in records:
            self._seen[record.id] = record.version

    def forget(self, request_ids: Iterable[UUID | str]) -> None:
        for request_id in request_ids:
            self._seen.pop(as_uuid(request_id), None)

    def _check_fresh(self, record: ReviewRequestModel, seen: int | None) -> None:
        if seen is not None and record.version != seen:
            logger.warning(
                "stale_record_detected",
                extra={
                    "request_id": str(record.id),
                    "seen_version": seen,
                    "current_version": record.version,
                },
            )
            raise StaleStateError(str(record.id), seen, record.version)

    def lock_for_review(self, request_id: UUID | str) -> ReviewRequestModel:
        """Load and row-lock a request for the current transaction."""
        rid = self._parse_id(request_id)
        seen = self._seen.get(rid)
        record = self._session.execute(
            select(ReviewRequestModel)
            .where(
                ReviewRequestModel.id == rid,
                ReviewRequestModel.organization_id == self.organization_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise RequestNotFoundError(str(request_id))
        # the locked load read the committed row, which is now what this session has seen
        self.remember([record])
        self._check_fresh(record, seen)
        return record

    def lock_many(self, request_ids: Iterable[UUID]) -> list[ReviewRequestModel]:
        """
        Row-lock every id in ``request_ids`` in id order.

        Raises:
            RequestNotFoundError: if any id is missing; nothing is returned.
            StaleStateError: if any member changed since this session saw it.
        """
        ids = sorted({as_uuid(i) for i in request_ids}, key=str)
        seen = {i: self._seen.get(i) for i in ids}
        records = self._session.execute(
            select(ReviewRequestModel)
            .where(
                ReviewRequestModel.id.in_(ids),
                ReviewRequestModel.organization_id == self.organization_id,
            )
            .order_by(ReviewRequestModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        found = {r.id for r in records}
        missing = [i for i in ids if i not in found]
        if missing:
            raise RequestNotFoundError(str(missing[0]))
        self.remember(records)
        for record in records:
            self._check_fresh(record, seen[record.id])

        logger.debug("requests_locked", extra={"lock_count": len(records)})
        return sorted(records, key=lambda r: str(r.id))

    def add(self, record: ReviewRequestModel) -> ReviewRequestModel:
        self._session.add(record)
        self._session.flush()
        return record

    # ------------------------------------------------------------------
    # Series lookups
    # ------------------------------------------------------------------

    def get_event(self, event_id: UUID | str) -> EventRequestModel:
        rid = self._parse_id(event_id)
        record = self._session.execute(
            select(EventRequestModel).where(
                EventRequestModel.id == rid,
                EventRequestModel.organization_id == self.organization_id,
            )
        ).scalar_one_or_none()
        if record is None:
            raise RequestNotFoundError(str(event_id))
        return record

    def find_children(self, parent_id: UUID | str) -> Sequence[EventRequestModel]:
        """Every event whose ``parent_event_id`` is ``parent_id``, in id order."""
        return self._session.execute(
            select(EventRequestModel)
            .where(
                EventRequestModel.parent_event_id == as_uuid(parent_id),
                EventRequestModel.organization_id == self.organization_id,
            )
            .order_by(EventRequestModel.id)
        ).scalars().all()

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------

    def room(self, room_id: UUID | None) -> RoomModel | None:
        if room_id is None:
            return None
        return self._session.execute(
            select(RoomModel).where(
                RoomModel.id == as_uuid(room_id),
                RoomModel.organization_id == self.organization_id,
            )
        ).scalar_one_or_none()

    def ministry(self, ministry_id: UUID | None) -> MinistryModel | None:
        if ministry_id is None:
            return None
        return self._session.execute(
            select(MinistryModel).where(
                MinistryModel.id == as_uuid(ministry_id),
                MinistryModel.organization_id == self.organization_id,
            )
        ).scalar_one_or_none()

    def fiscal_year(self, fiscal_year_id: UUID | None) -> FiscalYearModel | None:
        if fiscal_year_id is None:
            return None
        return self._session.execute(
            select(FiscalYearModel).where(
                FiscalYearModel.id == as_uuid(fiscal_year_id),
                FiscalYearModel.organization_id == self.organization_id,
            )
        ).scalar_one_or_none()
