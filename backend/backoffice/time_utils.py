# Overview: UTC helpers. Timestamps are stored naive-UTC and rendered with a trailing Z.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC 'now'; every stored timestamp uses this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Report/query parameter parsing. Blank -> None, a bare date is midnight,
    an offset or Z suffix is converted to UTC. Raises ValueError otherwise.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Seconds-precision ISO string ending in Z (naive input is taken as UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def as_date(value: date | datetime | None) -> date:
    """Calendar date for a datetime/date; defaults to today (UTC)."""
    if value is None:
        return utcnow().date()
    if isinstance(value, datetime):
        return value.date()
    return value
