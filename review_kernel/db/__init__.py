"""Database layer - engine, base classes, column types."""

from review_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from review_kernel.db.engine import create_tables, get_engine, get_session

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
]
