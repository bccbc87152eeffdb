"""
Time helpers.

Every instant handled by the ledger is a timezone-aware UTC datetime.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current instant in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize ``value`` to an aware UTC datetime.

    Naive datetimes are taken to already be in UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: Optional[datetime]) -> Optional[str]:
    """Fixed-width ISO text, so that string order equals time order."""
    if value is None:
        return None
    return as_utc(value).isoformat(timespec="microseconds")


def from_storage(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return as_utc(datetime.fromisoformat(value))
