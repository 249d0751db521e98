"""
Injectable time source.

Services take a ``Clock`` in their constructor and never read the system
time themselves.  fetched_at, finalized_at, calculated_at and every audit
occurred_at therefore come from one place, and tests pin them with
``DeterministicClock``.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Clock frozen at ``fixed_time`` until moved with ``advance()``.

    Naive datetimes are taken as UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        if fixed_time is None:
            fixed_time = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        elif fixed_time.tzinfo is None:
            fixed_time = fixed_time.replace(tzinfo=UTC)
        self._current = fixed_time

    def now(self) -> datetime:
        return self._current

    def advance(self, **delta: float) -> datetime:
        """``clock.advance(hours=2)``; returns the new time."""
        self._current += timedelta(**delta)
        return self._current
