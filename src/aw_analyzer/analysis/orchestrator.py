"""Range analysis: from raw events and commits to a report and calendar entry.

run_range_analysis is the single use case behind the HTTP endpoint, the
one-shot CLI and the window scheduler. Its collaborators (event source,
commit source, calendar, persistence) are passed in, with the real
implementations as defaults.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..config import CALENDAR_SUMMARY_MAX_CHARS, get_machine_name, get_report_language, get_report_timezone
from ..errors import InvalidInputError, NotFoundError
from ..events.models import RawEvent, has_positive_duration
from ..events.store import ActivityWatchDB
from ..git_tracker import (
    GitCommitRecord,
    build_file_snapshots_from_commits,
    build_git_commit_events,
    collect_commits_in_range,
)
from ..logging_config import get_logger
from ..services.calendar import create_calendar_event_if_configured
from ..services.llm import CalendarObject, generate_structured, generate_text, select_model
from ..types import CalendarResult
from .files import persist_xml
from .prompt import build_calendar_object_prompt, build_human_summary, build_prompt
from .range import format_range_label, to_iso_z
from .stats import compute_stats
from .xml import build_activity_xml

logger = get_logger(__name__, namespace='analysis')


class EventSource(Protocol):
    def get_events_by_time_range(self, start: datetime, end: datetime) -> list[RawEvent]: ...


CommitSource = Callable[[datetime, datetime], list[GitCommitRecord]]
CalendarSink = Callable[..., Awaitable[CalendarResult]]
Persist = Callable[[str], Optional[str]]


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class RangeInfo(_CamelModel):
    start: str
    end: str
    label: str


class Counts(_CamelModel):
    activity_events: int
    git_commits: int


class RangeAnalysisResult(_CamelModel):
    """Outcome of one analysis; serialized with camelCase keys."""
    ok: bool = True
    range: RangeInfo
    provider: str
    counts: Counts
    human_summary: str
    prompt: str
    result: str
    xml_path: Optional[str] = None
    calendar_object: CalendarObject
    calendar_result: Optional[dict] = None


def _validate_range(start, end) -> tuple[datetime, datetime]:
    """Check the bounds and make them aware; naive values are local time."""
    if not isinstance(start, datetime):
        raise InvalidInputError("Invalid start date")
    if not isinstance(end, datetime):
        raise InvalidInputError("Invalid end date")
    start = start.astimezone() if start.tzinfo is None else start
    end = end.astimezone() if end.tzinfo is None else end
    if end <= start:
        raise InvalidInputError("'end' must be after 'start'")
    return start, end


def build_calendar_summary(calendar_object: CalendarObject, time_range_label: str, machine: str) -> str:
    """Calendar title: '[machine] title', truncated to the calendar limit."""
    title = (calendar_object.title or '').strip()
    if not title:
        title = f"Work ({time_range_label})" if get_report_language() == 'en' else f"作業 ({time_range_label})"
    summary = f"[{machine}] {title}" if machine else title
    return summary[:CALENDAR_SUMMARY_MAX_CHARS]


def build_calendar_description(calendar_object: CalendarObject, fallback_text: str) -> str:
    """Calendar body: summary then bullet lines, or the free text when both are empty."""
    lines = []
    if calendar_object.summary:
        lines.append(calendar_object.summary)
    if calendar_object.bullets:
        lines.append('\n・' + '\n・'.join(calendar_object.bullets))
    output = '\n'.join(lines).strip()
    return output or fallback_text


def _fetch_events(event_source: Optional[EventSource], start: datetime, end: datetime) -> list[RawEvent]:
    if event_source is not None:
        return event_source.get_events_by_time_range(start, end)
    with ActivityWatchDB() as db:
        return db.get_events_by_time_range(start, end)


async def run_range_analysis(
    start: datetime,
    end: datetime,
    provider: str,
    create_calendar: bool = False,
    save_xml: bool = False,
    *,
    event_source: Optional[EventSource] = None,
    commit_source: CommitSource = collect_commits_in_range,
    calendar: CalendarSink = create_calendar_event_if_configured,
    persist: Persist = persist_xml,
    log_prefix: str = '[range-analysis]',
) -> RangeAnalysisResult:
    """Analyze activity in [start, end) and generate a report.

    Args:
        start: Inclusive range start (naive datetimes are local time)
        end: Exclusive range end
        provider: Generation provider name ('openai', 'gemini', 'bedrock')
        create_calendar: Insert a calendar entry for the range
        save_xml: Persist the structured document
        event_source: Object with get_events_by_time_range (default: a fresh
                      read-only ActivityWatchDB)
        commit_source: Callable returning commits in the range
        calendar: Async calendar insertion callable
        persist: Document persistence callable
        log_prefix: Prefix for log lines of this run

    Raises:
        InvalidInputError: Bad range or unknown provider (400)
        NotFoundError: No events and no commits in the range (404)
        ConfigurationError: Provider credentials missing (500)
    """
    start, end = _validate_range(start, end)
    logger.info(f"{log_prefix} range {to_iso_z(start)} -> {to_iso_z(end)}")

    events, commits = await asyncio.gather(
        asyncio.to_thread(_fetch_events, event_source, start, end),
        asyncio.to_thread(commit_source, start, end),
    )
    logger.info(f"{log_prefix} fetched {len(events)} events, {len(commits)} commits")

    sorted_events = sorted(events, key=lambda e: e.timestamp)
    if not sorted_events and not commits:
        raise NotFoundError("No activity or commit data found for the given range")

    tracked = [e for e in sorted_events if has_positive_duration(e.duration)]
    git_events = build_git_commit_events(commits)
    logger.info(f"{log_prefix} prepared {len(tracked)} non-zero events, {len(git_events)} git events")

    range_ms = (end - start).total_seconds() * 1000
    stats = compute_stats(tracked, range_ms)
    logger.info(
        f"{log_prefix} stats total={stats.total_seconds}s "
        f"switches={stats.switches.category}/{stats.switches.app} "
        f"localDev={stats.local_dev_seconds}s "
        f"peak10m={stats.peak_10m.seconds if stats.peak_10m else 0}s "
        f"peak5m={stats.peak_5m.seconds if stats.peak_5m else 0}s"
    )

    merged = sorted([*tracked, *git_events], key=lambda e: e.timestamp)
    snapshots = await asyncio.to_thread(build_file_snapshots_from_commits, commits)
    activity_xml = build_activity_xml(stats, merged, snapshots)
    logger.info(f"{log_prefix} document built: {len(snapshots)} file snapshots, {len(activity_xml)} chars")

    xml_path = None
    if save_xml:
        try:
            xml_path = await asyncio.to_thread(persist, activity_xml)
        except Exception as e:
            logger.error(f"{log_prefix} failed to persist xml: {e}")
        logger.info(f"{log_prefix} xml saved to {xml_path}")

    time_range_label = format_range_label(start, end)
    human_summary = build_human_summary(stats)
    prompt = build_prompt(start, end, time_range_label, human_summary, activity_xml)
    logger.info(f"{log_prefix} prompt {len(prompt)} chars")

    model = select_model(provider)
    text = await generate_text(model, prompt)
    logger.info(f"{log_prefix} analysis generated ({len(text)} chars)")

    calendar_prompt = build_calendar_object_prompt(start, end, time_range_label, human_summary, activity_xml)
    calendar_object = await generate_structured(model, calendar_prompt)
    logger.info(
        f"{log_prefix} calendar object title={calendar_object.title!r} "
        f"bullets={len(calendar_object.bullets)}"
    )

    calendar_result = None
    if create_calendar:
        try:
            calendar_result = await calendar(
                start=start,
                end=end,
                summary=build_calendar_summary(calendar_object, time_range_label, get_machine_name()),
                description=build_calendar_description(calendar_object, text),
                time_zone=get_report_timezone(),
            )
        except Exception as e:
            logger.error(f"{log_prefix} calendar insertion failed: {e}")
            calendar_result = {"inserted": False, "reason": str(e) or type(e).__name__}
        logger.info(
            f"{log_prefix} calendar inserted={calendar_result.get('inserted')} "
            f"link={calendar_result.get('htmlLink')} reason={calendar_result.get('reason')}"
        )
    else:
        logger.info(f"{log_prefix} calendar insertion disabled")

    return RangeAnalysisResult(
        range=RangeInfo(start=to_iso_z(start), end=to_iso_z(end), label=time_range_label),
        provider=provider,
        counts=Counts(activity_events=len(tracked), git_commits=len(commits)),
        human_summary=human_summary,
        prompt=prompt,
        result=text,
        xml_path=xml_path,
        calendar_object=calendar_object,
        calendar_result=calendar_result,
    )
