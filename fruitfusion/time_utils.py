# fruitfusion/time_utils.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser


def utc_now_iso() -> str:
    """UTC now as ISO string with trailing Z, millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts ISO strings (with or without Z), free-form date strings,
    and epoch numbers in seconds or milliseconds. Returns None when unparseable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        seconds = float(value)
        # the realtime database stores Date.now() style epochs in milliseconds
        if seconds > 1e11:
            seconds = seconds / 1000.0
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    s = str(value).strip()
    if not s:
        return None
    try:
        dt = parser.parse(s)
    except (ValueError, OverflowError):
        return None
    if dt.tzinfo is None:
        # assume already UTC if no tz given
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
