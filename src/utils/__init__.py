"""Utility modules for E-Manager AI."""

from .datetime_utils import (
    utc_now,
    resolve_timezone,
    ensure_utc,
    utc_day,
    utc_day_range,
    is_date_only,
    parse_instant,
    parse_day,
    format_date,
    format_local,
    to_iso_z,
    is_overdue,
)

from .background_tasks import create_safe_task, safe_background_task, drain_background_tasks

__all__ = [
    # Datetime utilities
    "utc_now",
    "resolve_timezone",
    "ensure_utc",
    "utc_day",
    "utc_day_range",
    "is_date_only",
    "parse_instant",
    "parse_day",
    "format_date",
    "format_local",
    "to_iso_z",
    "is_overdue",
    # Background tasks
    "create_safe_task",
    "safe_background_task",
    "drain_background_tasks",
]
