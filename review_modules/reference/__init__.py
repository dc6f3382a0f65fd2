"""Reference data consulted by workflows: rooms, ministries, fiscal years."""

from review_modules.reference.models import FiscalYear, Ministry, Room

__all__ = ["FiscalYear", "Ministry", "Room"]
