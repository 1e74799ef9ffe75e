"""
UTC helpers. Timestamps are stored naive and always mean UTC; the API emits
them with a trailing 'Z'.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

DATE_ONLY_LENGTH = len("YYYY-MM-DD")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-10-19", "2026-10-19T08:30" or "2026-10-19T08:30:00+05:30" -> naive UTC.

    Blank input gives None; anything unparseable raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None

    parsed = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_range_bound(value: Optional[str], *, upper: bool) -> Optional[datetime]:
    """Like parse_timestamp, but a date-only upper bound covers that whole day."""
    parsed = parse_timestamp(value)
    if parsed is not None and upper and len(value.strip()) == DATE_ONLY_LENGTH:
        parsed += timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)
