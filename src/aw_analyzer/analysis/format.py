"""Formatting helpers shared by the serializer and prompt builder."""

import math
import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_report_timezone

_XML_ESCAPES = (
    ('&', '&amp;'),
    ('<', '&lt;'),
    ('>', '&gt;'),
    ('"', '&quot;'),
    ("'", '&#39;'),
)

_TRAILING_SEP_RE = re.compile(r'[/\\]+$')
_SEP_RE = re.compile(r'[/\\]')


def format_duration(seconds: float) -> str:
    """Format seconds as '10m12s', '10m' or '12s'."""
    total = math.floor(seconds) if math.isfinite(seconds) else 0
    minutes, secs = divmod(total, 60)
    if minutes > 0:
        return f"{minutes}m{secs}s" if secs > 0 else f"{minutes}m"
    return f"{secs}s"


def report_zone(tz_name: str | None = None) -> ZoneInfo:
    return ZoneInfo(tz_name or get_report_timezone())


def to_report_time(dt: datetime, tz_name: str | None = None) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(report_zone(tz_name))


def format_timestamp(dt: datetime, tz_name: str | None = None) -> str:
    """Format a time of day as HH:MM:SS in the report time zone."""
    return to_report_time(dt, tz_name).strftime('%H:%M:%S')


def format_datetime_for_prompt(dt: datetime, tz_name: str | None = None) -> str:
    """Format a full date and time (YYYY/MM/DD HH:MM:SS) in the report time zone."""
    return to_report_time(dt, tz_name).strftime('%Y/%m/%d %H:%M:%S')


def escape_xml(text: str) -> str:
    """Escape the five XML-significant characters (ampersand first)."""
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def basename_maybe(value) -> str | None:
    """Last path component of a slash- or backslash-separated path."""
    if not isinstance(value, str):
        return None
    trimmed = _TRAILING_SEP_RE.sub('', value)
    name = _SEP_RE.split(trimmed)[-1]
    return name or trimmed


def normalize_path_like(value: str) -> str:
    """Convert backslashes to slashes and strip trailing separators."""
    return re.sub(r'/+$', '', value.replace('\\', '/'))


def file_relative_to_project_maybe(file_val, project_val) -> str | None:
    """Path of a file relative to its project root.

    Returns the textual suffix when the file lies under the project,
    otherwise the file's base name.
    """
    if not isinstance(file_val, str) or not isinstance(project_val, str):
        return None
    file_path = normalize_path_like(file_val)
    project = normalize_path_like(project_val)
    if not file_path or not project:
        return None

    if file_path.startswith(f"{project}/"):
        return file_path[len(project) + 1:]
    return basename_maybe(file_path) or None
