"""
Injectable time source for the ledger.

Invoice dates, transaction dates, void/cancel/delete timestamps and rate
cache expiry are all read from a ``Clock`` handed to the service that needs
them.  ``SystemClock`` is the only implementation that reads the host
clock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current UTC time."""

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware UTC datetime."""
        ...

    def today(self) -> date:
        """Business date used when a caller omits invoice or transaction dates."""
        return self.now().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at ``start`` until moved with ``advance()`` or ``set_time()``.

    Naive datetimes are taken to be UTC.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = self._as_utc(start or self.DEFAULT_START)

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = self._as_utc(value)

    def advance(self, seconds: float | None = None, *, days: int = 0) -> datetime:
        """Move forward and return the new time.  With no arguments, one second."""
        if seconds is None:
            seconds = 0 if days else 1
        self._current += timedelta(days=days, seconds=seconds)
        return self._current
