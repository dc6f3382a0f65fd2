"""
Reference Domain Models (``review_modules.reference.models``).

Frozen snapshots of the lookup rows that notifications and validation
read.  Maintenance screens for these rows are outside this package.
"""

from dataclasses import dataclass
from datetime import date
from uuid import UUID


@dataclass(frozen=True)
class Room:
    id: UUID
    organization_id: UUID
    name: str
    capacity: int | None = None


@dataclass(frozen=True)
class Ministry:
    """A ministry (department); its leader reviews the first expense stage."""
    id: UUID
    organization_id: UUID
    name: str
    leader_id: UUID | None = None
    leader_email: str | None = None


@dataclass(frozen=True)
class FiscalYear:
    id: UUID
    organization_id: UUID
    name: str
    starts_on: date
    ends_on: date
