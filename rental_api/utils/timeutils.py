"""
UTC time helpers shared by models, services and background jobs.
"""

from datetime import datetime, date, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite hands back naive values for timezone-aware columns; everything
    stored by the API is UTC so the missing tzinfo is always UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = ensure_utc(value)
    return value.isoformat() if value else None


def date_isoformat(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def today_utc(now: Optional[datetime] = None) -> date:
    return ensure_utc(now or utcnow()).date()
