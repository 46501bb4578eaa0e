# Overview: UTC clock, due-date parsing and timestamp serialization helpers.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(moment: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are already UTC."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def days_since(moment: datetime, now: Optional[datetime] = None) -> int:
    """Whole days elapsed between ``moment`` and ``now`` (both read as UTC)."""
    now = as_utc_naive(now) if now is not None else utcnow()
    return (now - as_utc_naive(moment)).days


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a due date.

    - None / "" -> None
    - "YYYY-MM-DD" -> that date
    - a full ISO-8601 timestamp ("...Z" or with offset) -> its UTC calendar date

    Raises ValueError for anything else.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if "T" not in text and " " not in text:
        return date.fromisoformat(text)

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc_naive(datetime.fromisoformat(text)).date()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing 'Z' and whole seconds. Naive input is UTC."""
    if dt is None:
        return None
    return as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"
