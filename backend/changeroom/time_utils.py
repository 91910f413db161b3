from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC, stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 query parameter into a UTC-naive datetime.

    - None / "" -> None
    - naive values are taken as UTC
    - "...Z" or an explicit offset is converted to UTC
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    return to_naive_utc(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a stored datetime as ISO-8601 with a trailing 'Z'."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def elapsed_minutes(start: datetime, now: Optional[datetime] = None) -> float:
    """Minutes from start to now (both compared as UTC-naive)."""
    now = to_naive_utc(now) if now is not None else utcnow()
    return (now - to_naive_utc(start)).total_seconds() / 60.0
