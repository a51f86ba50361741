"""
Time source for every date rule (56-day donation interval, 42-day shelf life,
expiry windows). Services take a clock so tests can pin "now".

Datetimes are naive and expressed in UTC, matching how they are stored.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """Clock frozen at a given instant; `advance` moves it forward."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed between `moment` and `now`."""
    return (now - moment).days


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Shift an offset-aware datetime to UTC and drop the tzinfo; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


system_clock = SystemClock()
