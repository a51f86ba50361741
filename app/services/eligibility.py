"""Donation interval rules."""
from datetime import datetime, timedelta
from typing import Optional

from app.core.clock import days_since
from app.core.config import settings


def eligible_to_notify(last_donation: Optional[datetime], now: datetime) -> bool:
    """A donor can be asked again once the donation interval has passed; never donated counts as eligible."""
    if last_donation is None:
        return True
    return days_since(last_donation, now) >= settings.DONATION_INTERVAL_DAYS


def days_until_eligible(last_donation: Optional[datetime], now: datetime) -> int:
    if last_donation is None:
        return 0
    return max(0, settings.DONATION_INTERVAL_DAYS - days_since(last_donation, now))


def next_eligible_date(last_donation: Optional[datetime]) -> Optional[datetime]:
    if last_donation is None:
        return None
    return last_donation + timedelta(days=settings.DONATION_INTERVAL_DAYS)
