from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    SQLite hands back naive values for DateTime(timezone=True) columns, so
    anything read from the store goes through here before it is compared
    with utcnow().
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def epoch_millis(value: Optional[datetime] = None) -> int:
    return int((value or utcnow()).timestamp() * 1000)
