"""
Clock -- injectable source of "now" for review services.

Responsibility:
    ``updated_at``, history ``occurred_at`` and outbox timestamps all come
    from a Clock passed to the service, so tests pin time with
    ``DeterministicClock`` and production uses ``SystemClock``.

Architecture position:
    Kernel > Domain -- pure, zero I/O (except SystemClock).
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

# Default instant for DeterministicClock
DEFAULT_TEST_INSTANT = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` always returns an aware datetime."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at a chosen instant.

    Time moves only through ``advance`` or ``set_time``, so two
    reviews issued back to back share a timestamp unless a test moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._start = fixed_time or DEFAULT_TEST_INSTANT
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._start + self._offset

    def set_time(self, time: datetime) -> None:
        self._start = time
        self._offset = timedelta(0)

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)
