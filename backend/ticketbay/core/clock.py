"""Time helpers. All timestamps are UTC; naive values read back from the
database are UTC wall time."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hours_until(moment: datetime, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    return (as_utc(moment) - as_utc(now)).total_seconds() / 3600
