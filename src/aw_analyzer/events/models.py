"""Event records shared by the event store, git collector and normalizer."""

import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Category = Literal[
    'coding',
    'browsing',
    'communication',
    'terminal',
    'media',
    'settings',
    'afk',
    'other',
]

CATEGORIES: tuple[str, ...] = (
    'coding', 'browsing', 'communication', 'terminal',
    'media', 'settings', 'afk', 'other',
)

_NUMERIC_PREFIX_RE = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')


def coerce_duration(raw: float | int | str | None) -> float:
    """Coerce a numeric or numeric-string duration to float.

    Strings are read up to the end of their leading number, so "12.5s" is
    12.5 and "1_000" is 1. Unparsable values become NaN so callers can
    filter them with ``math.isfinite``.
    """
    if raw is None:
        return math.nan
    if isinstance(raw, str):
        match = _NUMERIC_PREFIX_RE.match(raw.strip())
        return float(match.group(0)) if match else math.nan
    try:
        return float(raw)
    except (TypeError, ValueError):
        return math.nan


def has_positive_duration(raw: float | int | str | None) -> bool:
    duration = coerce_duration(raw)
    return math.isfinite(duration) and duration > 0


@dataclass(frozen=True)
class RawEvent:
    """One event as stored by ActivityWatch (or synthesized from a commit)."""
    id: int
    bucket_id: int
    timestamp: datetime
    duration: float | str
    datastr: str
    bucket_type: str
    bucket_name: str | None = None
    hostname: str | None = None

    @property
    def duration_seconds(self) -> float:
        return coerce_duration(self.duration)


@dataclass(frozen=True)
class NormalizedEvent:
    """Canonical shape of an event with its derived category."""
    start: datetime
    end: datetime
    duration_sec: int
    bucket_type: str
    category: Category
    app: str | None = None
    url: str | None = None
    domain: str | None = None
    title: str | None = None
    project: str | None = None
    file: str | None = None
    language: str | None = None
    slack_channel: str | None = None
    slack_workspace: str | None = None
