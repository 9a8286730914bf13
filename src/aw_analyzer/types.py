"""Type definitions for the range analyzer.

This module provides TypedDict definitions for the dict-shaped records
exchanged with external collaborators and returned over the wire.
"""

from typing import TypedDict
from typing_extensions import NotRequired


class BucketInfo(TypedDict):
    """An ActivityWatch bucket (one channel of a single event type)."""
    key: int
    id: str
    created: str  # ISO timestamp
    name: str | None
    type: str
    client: str
    hostname: str


class CalendarResult(TypedDict):
    """Outcome of a best-effort calendar insertion."""
    inserted: bool
    calendarId: NotRequired[str]
    eventId: NotRequired[str]
    htmlLink: NotRequired[str]
    reason: NotRequired[str]


class AuthorFilter(TypedDict, total=False):
    """Commit author filter; the first configured field wins (regex > email > name)."""
    regex: str
    email: str
    name: str


class RunSummary(TypedDict):
    """Log payload emitted by the scheduler after a successful run."""
    trigger: str
    start: str
    end: str
    activityEvents: int
    gitCommits: int
    calendarInserted: bool | None
