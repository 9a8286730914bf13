"""Statistics over normalized activity events.

Totals per dimension, category/app switch counts, longest focus streaks,
peak 10- and 5-minute buckets and a local-development heuristic.

Every event contributes its floored duration to total_seconds, by_bucket
and by_category exactly once, so the three always sum to the same value.
Dimensions an event has no label for (project, file, domain, ...) are
skipped for that event only.
"""

import math
import re
from functools import lru_cache
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..config import (
    BUCKET_EDITOR,
    PEAK_WINDOW_MINUTES,
    SWITCH_DENSITY_BASIS_MS,
    get_local_dev_pattern,
)
from ..events.categories import CategoryRules
from ..events.models import NormalizedEvent, RawEvent
from ..events.normalize import normalize_events
from .format import format_duration

EDITOR_APP_KEY = 'Editor'
UNKNOWN_APP_KEY = 'unknown'


@dataclass(frozen=True)
class Streak:
    label: str
    seconds: int


@dataclass(frozen=True)
class PeakWindow:
    start: datetime
    seconds: int


@dataclass(frozen=True)
class Switches:
    category: int = 0
    app: int = 0


@dataclass(frozen=True)
class LongestFocus:
    category: Optional[Streak] = None
    app: Optional[Streak] = None


@dataclass
class Stats:
    """Aggregate over one range of normalized events."""
    total_seconds: int = 0
    by_bucket: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)
    by_app: dict[str, int] = field(default_factory=dict)
    by_project: dict[str, int] = field(default_factory=dict)
    by_file: dict[str, int] = field(default_factory=dict)
    by_language: dict[str, int] = field(default_factory=dict)
    by_domain: dict[str, int] = field(default_factory=dict)
    by_slack_channel: dict[str, int] = field(default_factory=dict)
    switches: Switches = field(default_factory=Switches)
    longest_focus: LongestFocus = field(default_factory=LongestFocus)
    peak_10m: Optional[PeakWindow] = None
    peak_5m: Optional[PeakWindow] = None
    local_dev_seconds: int = 0
    switch_density_per_10m: float = 0.0
    normalized: list[NormalizedEvent] = field(default_factory=list)


def add_to(mapping: dict[str, int], key: Optional[str], value: int) -> None:
    """Add value under key; empty keys are skipped."""
    if not key:
        return
    mapping[key] = mapping.get(key, 0) + value


def top_n(mapping: dict[str, int], n: int) -> list[tuple[str, int]]:
    """Top n (key, seconds) pairs by seconds; ties keep insertion order."""
    return sorted(mapping.items(), key=lambda kv: kv[1], reverse=True)[:n]


def format_kv_list(pairs: Iterable[tuple[str, int]]) -> str:
    """Render pairs as 'key 1m30s, other 10s'."""
    return ', '.join(f"{key} {format_duration(seconds)}" for key, seconds in pairs)


def app_key(event: NormalizedEvent) -> str:
    """Label used for app totals and app switches.

    Editor-extension events count as one 'Editor' app so they are not
    double counted against the editor's own window events.
    """
    if event.bucket_type == BUCKET_EDITOR:
        return EDITOR_APP_KEY
    return event.app or UNKNOWN_APP_KEY


def bucket_time_by(events: Iterable[NormalizedEvent], minutes: int) -> Optional[PeakWindow]:
    """Find the epoch-aligned bucket of the given size with the most seconds.

    Ties go to the earliest bucket start.
    """
    bucket_ms = minutes * 60 * 1000
    buckets: dict[int, int] = {}
    for event in events:
        start_ms = math.floor(event.start.timestamp() * 1000)
        t = (start_ms // bucket_ms) * bucket_ms
        buckets[t] = buckets.get(t, 0) + event.duration_sec

    best: Optional[tuple[int, int]] = None
    for t in sorted(buckets):
        seconds = buckets[t]
        if best is None or seconds > best[1]:
            best = (t, seconds)

    if best is None:
        return None
    return PeakWindow(
        start=datetime.fromtimestamp(best[0] / 1000, tz=timezone.utc),
        seconds=best[1],
    )


class _StreakTracker:
    """Running label/accumulator for one dimension during the chronological walk."""

    def __init__(self):
        self.label: Optional[str] = None
        self.accum = 0
        self.switches = 0
        self.best = Streak(label='', seconds=0)

    def feed(self, label: str, seconds: int) -> None:
        if self.label is None:
            self.label, self.accum = label, seconds
        elif self.label == label:
            self.accum += seconds
        else:
            self.switches += 1
            self._close()
            self.label, self.accum = label, seconds

    def _close(self) -> None:
        # Strict comparison: on equal lengths the earlier streak stays
        if self.label and self.accum > self.best.seconds:
            self.best = Streak(label=self.label, seconds=self.accum)

    def finish(self) -> Optional[Streak]:
        self._close()
        return self.best if self.best.seconds > 0 else None


@lru_cache(maxsize=32)
def _local_dev_matchers(pattern: str):
    escaped = re.escape(pattern)
    return (
        re.compile(rf'—\s*{escaped}', re.IGNORECASE),
        re.compile(escaped, re.IGNORECASE),
    )


def is_local_dev(event: NormalizedEvent, pattern: Optional[str] = None) -> bool:
    """Heuristic for time spent on the local development project."""
    title_re, project_re = _local_dev_matchers(pattern or get_local_dev_pattern())
    if event.domain == 'localhost':
        return True
    if event.title and title_re.search(event.title):
        return True
    return bool(event.project and project_re.search(event.project))


def aggregate(normalized: Iterable[NormalizedEvent], range_ms: float) -> Stats:
    """Aggregate normalized events over a range of range_ms milliseconds."""
    events = sorted(normalized, key=lambda e: e.start)
    stats = Stats(normalized=events)
    pattern = get_local_dev_pattern()

    for ev in events:
        seconds = ev.duration_sec
        stats.total_seconds += seconds
        add_to(stats.by_bucket, ev.bucket_type, seconds)
        add_to(stats.by_category, ev.category, seconds)
        add_to(stats.by_app, app_key(ev), seconds)
        add_to(stats.by_project, ev.project, seconds)
        add_to(stats.by_file, ev.file, seconds)
        add_to(stats.by_language, ev.language, seconds)
        add_to(stats.by_domain, ev.domain, seconds)
        add_to(stats.by_slack_channel, ev.slack_channel, seconds)
        if is_local_dev(ev, pattern):
            stats.local_dev_seconds += seconds

    category_streaks = _StreakTracker()
    app_streaks = _StreakTracker()
    for ev in events:
        category_streaks.feed(ev.category, ev.duration_sec)
        app_streaks.feed(app_key(ev), ev.duration_sec)

    stats.longest_focus = LongestFocus(
        category=category_streaks.finish(),
        app=app_streaks.finish(),
    )
    stats.switches = Switches(
        category=category_streaks.switches,
        app=app_streaks.switches,
    )

    peak_10m, peak_5m = PEAK_WINDOW_MINUTES
    stats.peak_10m = bucket_time_by(events, peak_10m)
    stats.peak_5m = bucket_time_by(events, peak_5m)

    if range_ms > 0:
        stats.switch_density_per_10m = stats.switches.category / (range_ms / SWITCH_DENSITY_BASIS_MS)

    return stats


def compute_stats(
    events: Iterable[RawEvent],
    range_ms: float,
    rules: Optional[CategoryRules] = None,
) -> Stats:
    """Normalize raw events and aggregate them.

    Events with non-finite or non-positive durations are dropped before
    aggregation.
    """
    return aggregate(normalize_events(events, rules=rules), range_ms)
