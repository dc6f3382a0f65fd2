"""
Records -- Frozen snapshots of reviewable requests.

Responsibility:
    The common RequestRecord shape returned to callers.  Each request
    kind extends it in ``review_modules.<kind>.models``.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ORM models produce these through
    ``to_dto()``; callers never receive live ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from review_kernel.domain.values import RequestKind


@dataclass(frozen=True, kw_only=True)
class RequestRecord:
    """Fields every request kind carries."""
    id: UUID
    organization_id: UUID
    requester_id: UUID
    requester_name: str
    status: Enum
    created_at: datetime
    updated_at: datetime
    version: int
    requester_email: str | None = None
    reviewer_id: UUID | None = None
    reviewer_name: str | None = None
    reviewer_notes: str | None = None
    reviewed_at: datetime | None = None

    @property
    def kind(self) -> RequestKind:
        raise NotImplementedError

    @property
    def is_draft(self) -> bool:
        return self.status.value == "draft"
