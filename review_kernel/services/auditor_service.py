"""
AuditorService -- per-request review history and hash chain maintenance.

Responsibility:
    Appends immutable, hash-chained history entries for every draft
    creation and every committed status transition.  Provides chain
    validation for tamper detection and ordered trace queries.

Architecture position:
    Kernel > Services -- imperative shell, called by the review
    orchestrator and the draft service inside their unit of work.

Invariants enforced:
    - Each request has its own chain: entry N carries entry N-1's hash as
      ``prev_hash``; the first entry carries None.
    - Append-only: ReviewHistoryEntry rows are protected by ORM listeners.
    - Notes, actor name and timestamp are part of the hashed payload, so
      editing any of them is detectable.

Failure modes:
    - AuditChainBrokenError: recomputed hash or prev_hash linkage mismatch.
    - IntegrityError: two writers appending the same (request_id, seq),
      which only happens when the caller skipped the record lock.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from review_kernel.domain.clock import Clock, SystemClock
from review_kernel.exceptions import AuditChainBrokenError
from review_kernel.logging_config import get_logger
from review_kernel.models.review_history import HISTORY_CREATE_ACTION, ReviewHistoryEntry
from review_kernel.utils.hashing import hash_history_entry, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class HistoryTraceEntry:
    """A single entry in a request's review history."""

    seq: int
    action: str
    previous_status: str | None
    new_status: str
    actor_id: UUID
    actor_name: str | None
    notes: str | None
    occurred_at: datetime
    hash: str


@dataclass(frozen=True)
class HistoryTrace:
    """Complete review history for one request, oldest first."""

    request_id: UUID
    entries: tuple[HistoryTraceEntry, ...]

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(e.action for e in self.entries)

    @property
    def last_entry(self) -> HistoryTraceEntry | None:
        return self.entries[-1] if self.entries else None


class AuditorService:
    """
    Service for creating and validating review history entries.

    Contract:
        Adds one ``ReviewHistoryEntry`` per call and flushes it.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT lock the request row; callers hold it already.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()

    def _last_entry(self, request_id: UUID) -> ReviewHistoryEntry | None:
        return self._session.execute(
            select(ReviewHistoryEntry)
            .where(ReviewHistoryEntry.request_id == request_id)
            .order_by(ReviewHistoryEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _append(
        self,
        request_id: UUID,
        organization_id: UUID,
        action: str,
        previous_status: str | None,
        new_status: str,
        actor_id: UUID | str,
        actor_name: str | None,
        notes: str | None,
        payload: dict[str, Any] | None,
    ) -> ReviewHistoryEntry:
        last = self._last_entry(request_id)
        seq = last.seq + 1 if last else 1
        prev_hash = last.hash if last else None
        occurred_at = self._clock.now()

        payload_data = to_json_safe({
            **(payload or {}),
            "actor_name": actor_name,
            "notes": notes,
            "occurred_at": occurred_at,
        })
        computed_payload_hash = hash_payload(payload_data)

        entry_hash = hash_history_entry(
            request_id=str(request_id),
            seq=seq,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=str(actor_id),
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
        )

        entry = ReviewHistoryEntry(
            request_id=request_id,
            organization_id=organization_id,
            seq=seq,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=UUID(str(actor_id)),
            actor_name=actor_name,
            notes=notes,
            occurred_at=occurred_at,
            payload=payload_data,
            payload_hash=computed_payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "history_entry_created",
            extra={
                "request_id": str(request_id),
                "seq": seq,
                "action": action,
                "previous_status": previous_status,
                "new_status": new_status,
            },
        )
        return entry

    def record_created(
        self,
        request_id: UUID,
        organization_id: UUID,
        status: str,
        actor_id: UUID | str,
        actor_name: str | None,
        payload: dict[str, Any] | None = None,
    ) -> ReviewHistoryEntry:
        """Record draft creation as the genesis entry of a request's chain."""
        return self._append(
            request_id=request_id,
            organization_id=organization_id,
            action=HISTORY_CREATE_ACTION,
            previous_status=None,
            new_status=status,
            actor_id=actor_id,
            actor_name=actor_name,
            notes=None,
            payload=payload,
        )

    def record_transition(
        self,
        request_id: UUID,
        organization_id: UUID,
        action: str,
        previous_status: str,
        new_status: str,
        actor_id: UUID | str,
        actor_name: str | None,
        notes: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ReviewHistoryEntry:
        """Record one committed status transition."""
        return self._append(
            request_id=request_id,
            organization_id=organization_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=actor_id,
            actor_name=actor_name,
            notes=notes,
            payload=payload,
        )

    # Chain validation

    def validate_chain(self, request_id: UUID) -> bool:
        """
        Validate the history chain of one request.

        Raises:
            AuditChainBrokenError: If any stored hash or linkage is wrong.
        """
        entries = self._entries(request_id)

        prev_hash: str | None = None
        for entry in entries:
            if entry.prev_hash != prev_hash:
                logger.critical(
                    "history_chain_broken",
                    extra={"request_id": str(request_id), "seq": entry.seq},
                )
                raise AuditChainBrokenError(
                    str(request_id), entry.seq, prev_hash or "None", entry.prev_hash or "None",
                )

            expected_payload_hash = hash_payload(entry.payload or {})
            expected_hash = hash_history_entry(
                request_id=str(entry.request_id),
                seq=entry.seq,
                action=entry.action,
                previous_status=entry.previous_status,
                new_status=entry.new_status,
                actor_id=str(entry.actor_id),
                payload_hash=expected_payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash or entry.payload_hash != expected_payload_hash:
                logger.critical(
                    "history_chain_broken",
                    extra={"request_id": str(request_id), "seq": entry.seq},
                )
                raise AuditChainBrokenError(
                    str(request_id), entry.seq, expected_hash, entry.hash,
                )
            prev_hash = entry.hash

        logger.info(
            "history_chain_valid",
            extra={"request_id": str(request_id), "entry_count": len(entries)},
        )
        return True

    # Trace and query methods

    def _entries(self, request_id: UUID) -> list[ReviewHistoryEntry]:
        return list(
            self._session.execute(
                select(ReviewHistoryEntry)
                .where(ReviewHistoryEntry.request_id == request_id)
                .order_by(ReviewHistoryEntry.seq)
            ).scalars().all()
        )

    def get_history(self, request_id: UUID) -> HistoryTrace:
        """Ordered review history for ``request_id``."""
        entries = tuple(
            HistoryTraceEntry(
                seq=e.seq,
                action=e.action,
                previous_status=e.previous_status,
                new_status=e.new_status,
                actor_id=e.actor_id,
                actor_name=e.actor_name,
                notes=e.notes,
                occurred_at=e.occurred_at,
                hash=e.hash,
            )
            for e in self._entries(request_id)
        )
        return HistoryTrace(request_id=request_id, entries=entries)
