"""Date formatting utilities."""

from datetime import datetime, timezone
from typing import Optional


# Standard format constants
DATE_FORMAT = "%Y-%m-%d"

SECONDS_PER_DAY = 60 * 60 * 24


def today() -> str:
    """
    Get today's date as YYYY-MM-DD string.

    Returns:
        Date string in YYYY-MM-DD format
    """
    return datetime.now().strftime(DATE_FORMAT)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def age_in_days(then: datetime, now: Optional[datetime] = None) -> float:
    """
    Fractional days elapsed between two points in time.

    Args:
        then: Earlier point in time
        now: Reference point (default: current UTC time)

    Returns:
        Age in days; negative if `then` lies in the future
    """
    now = ensure_aware(now or utcnow())
    return (now - ensure_aware(then)).total_seconds() / SECONDS_PER_DAY
