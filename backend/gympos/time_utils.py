"""
Sale timestamps are stored as naive UTC.

Everything entering the ledger (caller-supplied sale dates, CLI filters)
passes through to_naive_utc or parse_iso_datetime; everything leaving it is
rendered with to_utc_z.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return to_naive_utc(datetime.now(timezone.utc))


def to_naive_utc(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def is_date_only(value: str) -> bool:
    """True for a bare "YYYY-MM-DD" with no time part."""
    return len(value.strip()) == 10 and "T" not in value


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    "YYYY-MM-DD", "YYYY-MM-DDTHH:MM[:SS]" and offset/"Z" forms, as naive UTC.

    A bare date means midnight, or 23:59:59.999999 with end_of_day=True so it
    can close an inclusive range. Blank input gives None; garbage raises
    ValueError.
    """
    if value is None or not value.strip():
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = to_naive_utc(datetime.fromisoformat(s))
    if end_of_day and is_date_only(s):
        dt = dt.replace(hour=23, minute=59, second=59, microsecond=999999)
    return dt


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 at second precision with a trailing 'Z'; None passes through."""
    if dt is None:
        return None
    dt_utc = to_naive_utc(dt).replace(microsecond=0)
    return dt_utc.isoformat() + "Z"
