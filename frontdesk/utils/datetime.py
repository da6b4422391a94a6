"""
Calendar-date helpers.

A "date key" is a local calendar date rendered as ``YYYY-MM-DD``. Night
reservations, room-charge metadata and the operational "today" are all
compared as date keys, so every conversion in the package goes through
this module. Arithmetic is done on ``datetime.date`` values, never on
millisecond deltas, which keeps it correct across daylight-saving changes.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from dateutil import parser as date_parser

from frontdesk.config import HOTEL_TIMEZONE

logger = structlog.get_logger(__name__)

_DATE_KEY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def hotel_tz() -> Optional[tzinfo]:
    """
    Return the configured hotel timezone, or None for interpreter local time.
    """
    if not HOTEL_TIMEZONE:
        return None
    try:
        return ZoneInfo(HOTEL_TIMEZONE)
    except ZoneInfoNotFoundError:
        logger.warning("unknown_hotel_timezone", timezone=HOTEL_TIMEZONE)
        return None


def _local(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        # Naive timestamps are already wall-clock time at the hotel
        return dt
    return dt.astimezone(hotel_tz())


def parse_date_key(value: str) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` key. Returns None when it is not one."""
    m = _DATE_KEY_RE.match(value or "")
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def to_date_key(value: Any) -> Optional[str]:
    """
    Convert a timestamp, ISO string, ``date`` or date key to a local date key.

    Args:
        value: datetime, date, epoch-free ISO-8601 string or ``YYYY-MM-DD``

    Returns:
        The local calendar date as ``YYYY-MM-DD``, or None if the value
        cannot be interpreted. Never raises.

    Example:
        >>> to_date_key("2024-05-01")
        '2024-05-01'
        >>> to_date_key("not a date") is None
        True
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return _local(value).date().isoformat()

    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    strict = parse_date_key(text)
    if strict is not None:
        return strict.isoformat()

    try:
        parsed = date_parser.isoparse(text)
    except (ValueError, OverflowError):
        return None
    return _local(parsed).date().isoformat()


def add_days(date_key: str, days: int) -> str:
    """
    Add calendar days to a date key. Malformed keys are returned unchanged.

    Example:
        >>> add_days("2024-03-30", 2)
        '2024-04-01'
    """
    d = parse_date_key(date_key)
    if d is None:
        return date_key
    return (d + timedelta(days=days)).isoformat()


def date_range(start_key: str, nights: int) -> list[str]:
    """Return ``nights`` consecutive date keys starting at ``start_key``."""
    return [add_days(start_key, i) for i in range(max(1, nights))]


def today_key() -> str:
    """Today's date key in the hotel timezone."""
    return _local(utc_now()).date().isoformat()


def date_key_to_local_noon(date_key: str) -> datetime:
    """
    Timestamp used when creating a night reservation for ``date_key``.

    Noon keeps the night on the same calendar date whatever offset the
    backend stores it with.
    """
    d = parse_date_key(date_key)
    if d is None:
        raise ValueError(f"invalid date key: {date_key!r}")
    tz = hotel_tz()
    noon = datetime(d.year, d.month, d.day, 12, 0, 0)
    if tz is not None:
        return noon.replace(tzinfo=tz)
    return noon.astimezone()
