"""
Clock -- injectable source of "now" for the posting engine.

Registry transaction dates, balance ``last_updated`` stamps, fixing
``fixed_at`` times, the year inside TXN batch and transfer ids, and the
default voucher date all come from a Clock.  Services never call
``datetime.now()`` themselves, so scenario tests can pin time and compare
rows exactly.

The business day is taken in the clock's zone.  A desk in Dubai runs
``SystemClock(ZoneInfo("Asia/Dubai"))`` so that a sale booked at 01:00
local time carries that day's voucher date rather than the UTC one.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """``now()`` is timezone-aware; ``today()`` is its business date."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def __init__(self, zone: tzinfo = timezone.utc):
        self._zone = zone

    def now(self) -> datetime:
        return datetime.now(self._zone)


class DeterministicClock(Clock):
    """
    Pinned clock for tests.

    Repeated ``now()`` calls return the same instant until the clock is
    moved with ``advance()`` or ``set_time()``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        if fixed_time is not None and fixed_time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        self._now = fixed_time or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set_time(self, moment: datetime) -> None:
        self._now = moment

    def advance(self, seconds: float = 0, days: int = 0) -> datetime:
        """Move forward and return the new instant."""
        self._now += timedelta(days=days, seconds=seconds)
        return self._now
