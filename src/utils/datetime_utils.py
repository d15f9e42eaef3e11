"""
Centralized datetime and timezone utilities.

Every instant stored or compared by the assistant is timezone-aware UTC.
Local time zones only matter for rendering text that goes to the LLM.
"""

import logging
import re
from datetime import datetime, date, time, timedelta, timezone as dt_timezone
from typing import Optional

import pytz

from config import settings

logger = logging.getLogger(__name__)

DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    """Get the current instant as an aware UTC datetime."""
    return datetime.now(dt_timezone.utc)


def resolve_timezone(name: Optional[str]) -> pytz.BaseTzInfo:
    """
    Get a pytz zone for an IANA name.

    Falls back to the configured default (and then UTC) for empty or
    unknown names, so a bad client header never fails a request.
    """
    for candidate in (name, settings.timezone):
        if not candidate:
            continue
        try:
            return pytz.timezone(candidate)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Unknown timezone '{candidate}', falling back")
    return pytz.UTC


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def utc_day(now: datetime) -> date:
    """Get the UTC calendar day of an instant."""
    return ensure_utc(now).date()


def utc_day_range(day: date) -> tuple[datetime, datetime]:
    """
    Get the inclusive UTC bounds of a calendar day.

    Returns (00:00:00.000, 23:59:59.999) so the upper bound matches the
    millisecond precision clients send.
    """
    start = datetime.combine(day, time.min, tzinfo=dt_timezone.utc)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


def is_date_only(value: str) -> bool:
    """Check if a string is a bare YYYY-MM-DD token."""
    return bool(DATE_ONLY_PATTERN.match(value.strip()))


def parse_instant(value: str) -> datetime:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Handles:
    - "Z" suffix: "2025-11-15T10:00:00.000Z"
    - Explicit offsets: "2025-11-15T17:00:00+07:00"
    - Naive values, which are taken as UTC
    - Date-only values, which become UTC midnight

    Raises:
        ValueError: if the string is not ISO-8601
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def parse_day(value: str) -> date:
    """Parse a YYYY-MM-DD token or a full ISO instant into a UTC day."""
    if is_date_only(value):
        return date.fromisoformat(value.strip())
    return parse_instant(value).date()


def format_date(value: Optional[datetime | date]) -> str:
    """Render a date or instant as YYYY-MM-DD (UTC day for instants)."""
    if value is None:
        return "N/A"
    if isinstance(value, datetime):
        return ensure_utc(value).strftime("%Y-%m-%d")
    return value.strftime("%Y-%m-%d")


def format_local(dt: Optional[datetime], tz: pytz.BaseTzInfo) -> str:
    """Render an instant in a local zone, e.g. '2025-11-15 17:00 (Asia/Bangkok)'."""
    if dt is None:
        return "N/A"
    local = ensure_utc(dt).astimezone(tz)
    return f"{local.strftime('%Y-%m-%d %H:%M')} ({tz.zone})"


def to_iso_z(dt: Optional[datetime]) -> Optional[str]:
    """Render an instant as UTC ISO-8601 with millisecond precision and a Z suffix."""
    if dt is None:
        return None
    utc = ensure_utc(dt)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def is_overdue(deadline: Optional[datetime], now: datetime) -> bool:
    """Check if a deadline has passed at `now`."""
    if deadline is None:
        return False
    return ensure_utc(deadline) < ensure_utc(now)
