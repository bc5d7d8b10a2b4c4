"""
Where the kernel gets "now" from.

Timestamps on work orders (created, decided, issued) and on audit records
are all taken from a Clock handed to the service, never from
``datetime.now()`` inline.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware, in UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves when told to: ``advance(seconds)`` moves it forward,
    ``set_time()`` jumps to an instant.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, instant: datetime) -> None:
        self._current = instant

    def advance(self, seconds: int = 1) -> datetime:
        self._current += timedelta(seconds=seconds)
        return self._current
