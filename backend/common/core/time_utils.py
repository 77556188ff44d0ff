"""
Time helpers shared by domain models and services.

All timestamps handled by the engine are timezone-aware UTC. SQLite (used in
tests) hands back naive datetimes, so domain models normalise on the way in.
"""

import calendar
from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: datetime, months: int) -> datetime:
    """
    Calendar month addition.

    The day is clamped to the last day of the target month
    (Jan 31 + 1 month = Feb 29 in a leap year).
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    """Calendar year addition (Feb 29 falls back to Feb 28)."""
    return add_months(value, years * 12)


UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]
