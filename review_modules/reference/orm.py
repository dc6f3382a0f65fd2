"""
SQLAlchemy ORM models for reference data.

Invariants enforced
-------------------
* Names are unique per organization.
* A fiscal year ends after it starts.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from review_kernel.db.base import Base, UUIDString


class RoomModel(Base):
    """Bookable room.  Maps to ``Room``."""

    __tablename__ = "rooms"

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_room_org_name"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def to_dto(self):
        from review_modules.reference.models import Room

        return Room(
            id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            capacity=self.capacity,
        )


class MinistryModel(Base):
    """Ministry.  Maps to ``Ministry``."""

    __tablename__ = "ministries"

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_ministry_org_name"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    leader_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    leader_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    def to_dto(self):
        from review_modules.reference.models import Ministry

        return Ministry(
            id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            leader_id=self.leader_id,
            leader_email=self.leader_email,
        )


class FiscalYearModel(Base):
    """Fiscal year.  Maps to ``FiscalYear``."""

    __tablename__ = "fiscal_years"

    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_fiscal_year_org_name"),
        CheckConstraint("ends_on > starts_on", name="chk_fiscal_year_range"),
        Index("idx_fiscal_year_org", "organization_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    starts_on: Mapped[date] = mapped_column(Date, nullable=False)
    ends_on: Mapped[date] = mapped_column(Date, nullable=False)

    def to_dto(self):
        from review_modules.reference.models import FiscalYear

        return FiscalYear(
            id=self.id,
            organization_id=self.organization_id,
            name=self.name,
            starts_on=self.starts_on,
            ends_on=self.ends_on,
        )
