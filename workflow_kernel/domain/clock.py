"""
Clock -- injectable source of the current time.

Every timestamp the kernel writes (created_at, acted_at, started_at,
completed_at, SLA due_at, audit occurred_at) is taken from a Clock handed
to the owning service.  SystemClock is the only place that reads the
wall clock.
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

DEFAULT_TEST_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class Clock(ABC):
    """Source of timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Repeated ``now()`` calls return the same instant, so rows written in
    one operation share a timestamp.  SLA tests move time with
    ``advance_hours``.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or DEFAULT_TEST_START

    def now(self) -> datetime:
        return self._current

    def set_time(self, when: datetime) -> None:
        self._current = when

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_hours(self, hours: int) -> None:
        self.advance(hours * 3600)
