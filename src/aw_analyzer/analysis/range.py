"""Parsing of range bounds and human-readable range labels."""

import re
from datetime import datetime, timezone

from ..config import get_report_language

_DIGITS_RE = re.compile(r'^\d+$')


def parse_date_input(value: str | None) -> datetime | None:
    """Parse a range bound from user input.

    Accepts epoch seconds (up to 10 digits), epoch milliseconds (more than
    10 digits) or an ISO 8601 string where a single space may separate date
    and time. Naive datetimes are taken as local time.

    Returns:
        Aware datetime, or None when the input is empty or unparsable
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    if _DIGITS_RE.match(text):
        numeric = int(text)
        seconds = numeric if len(text) <= 10 else numeric / 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    try:
        dt = datetime.fromisoformat(text.replace(' ', 'T', 1))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


def to_iso_z(dt: datetime) -> str:
    """UTC ISO 8601 with millisecond precision and a Z suffix."""
    utc = dt.astimezone(timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc.microsecond // 1000:03d}Z"


def format_range_label(start: datetime, end: datetime, language: str | None = None) -> str:
    """Label a range by its length, e.g. '1時間30分' or '1h 30m'."""
    language = language or get_report_language()
    diff = max(0.0, (end - start).total_seconds())
    total_minutes = int(diff / 60 + 0.5)
    hours, minutes = divmod(total_minutes, 60)

    if language == 'en':
        if hours > 0:
            return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
        return f"{minutes}m"

    if hours > 0:
        return f"{hours}時間{minutes}分" if minutes > 0 else f"{hours}時間"
    return f"{minutes}分"
