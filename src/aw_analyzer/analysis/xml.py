"""Structured XML document handed to the generation service.

The document has four sections in this order: statistics summary,
'before' file snapshots, the event list (one <event> per line) and
'after' file snapshots. All free text is escaped with escape_xml; the
output is not validated against any schema.
"""

from typing import Iterable

from ..config import (
    BUCKET_AFK,
    BUCKET_EDITOR,
    BUCKET_GIT_COMMIT,
    BUCKET_WEB_TAB,
    BUCKET_WINDOW,
)
from ..events.models import RawEvent
from ..events.normalize import parse_json_safe
from ..git_tracker import FileSnapshot
from .format import (
    basename_maybe,
    escape_xml,
    file_relative_to_project_maybe,
    format_duration,
    format_timestamp,
)
from .stats import Stats, format_kv_list, top_n

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'

# Payload fields rendered (in order) for simple source types
_SIMPLE_FIELDS = {
    BUCKET_WINDOW: ('app', 'title'),
    BUCKET_WEB_TAB: ('url', 'title'),
    BUCKET_AFK: ('status',),
    BUCKET_GIT_COMMIT: ('repo', 'subject', 'path', 'diff'),
}


def _element(tag: str, value) -> str:
    return f"<{tag}>{escape_xml(str(value))}</{tag}>"


def _editor_data(data: dict) -> str:
    inner = ''
    file_val = data.get('file')
    project_val = data.get('project')
    if file_val:
        rel = file_relative_to_project_maybe(file_val, project_val)
        inner += _element('file', rel or basename_maybe(file_val) or file_val)
    if data.get('language'):
        inner += _element('language', data['language'])
    if project_val:
        inner += _element('project', basename_maybe(project_val) or project_val)
    if data.get('branch'):
        inner += _element('branch', data['branch'])
    return inner


def _event_data(bucket_type: str, datastr: str) -> str:
    data = parse_json_safe(datastr)
    if data is None:
        return ''
    if bucket_type == BUCKET_EDITOR:
        return _editor_data(data)
    fields = _SIMPLE_FIELDS.get(bucket_type, ())
    return ''.join(_element(key, data[key]) for key in fields if data.get(key))


def format_event_xml(event: RawEvent) -> str:
    """Render one event as a single-line <event> element."""
    bucket_type = event.bucket_type or 'unknown'
    parts = [
        _element('timestamp', format_timestamp(event.timestamp)),
        _element('duration', format_duration(event.duration_seconds)),
        _element('type', bucket_type),
        f"<data>{_event_data(bucket_type, event.datastr)}</data>",
    ]
    return f"<event>{''.join(parts)}</event>"


def format_activity_data_as_xml(events: Iterable[RawEvent]) -> str:
    """Render events as an <events> document, one event per line."""
    lines = [XML_HEADER, '<events>']
    lines.extend(format_event_xml(event) for event in events)
    lines.append('</events>')
    return '\n'.join(lines)


def build_stats_summary_xml(stats: Stats) -> str:
    """Render the <stats> block summarizing a range."""
    lines = ['<stats>']
    lines.append(
        f'<total seconds="{stats.total_seconds}">'
        f'{escape_xml(format_duration(stats.total_seconds))}</total>'
    )
    for tag, mapping, n in (
        ('byBucket', stats.by_bucket, 10),
        ('byCategory', stats.by_category, 10),
        ('apps', stats.by_app, 5),
        ('projects', stats.by_project, 5),
        ('languages', stats.by_language, 5),
        ('domains', stats.by_domain, 5),
        ('slack', stats.by_slack_channel, 5),
    ):
        lines.append(_element(tag, format_kv_list(top_n(mapping, n))))

    lines.append(
        f'<switches category="{stats.switches.category}" app="{stats.switches.app}" '
        f'densityPer10m="{stats.switch_density_per_10m:.1f}"/>'
    )

    focus = stats.longest_focus
    if focus.category:
        lines.append(
            f'<longestFocusCategory label="{escape_xml(focus.category.label)}">'
            f'{escape_xml(format_duration(focus.category.seconds))}</longestFocusCategory>'
        )
    if focus.app:
        lines.append(
            f'<longestFocusApp label="{escape_xml(focus.app.label)}">'
            f'{escape_xml(format_duration(focus.app.seconds))}</longestFocusApp>'
        )
    for tag, peak in (('peak10m', stats.peak_10m), ('peak5m', stats.peak_5m)):
        if peak:
            lines.append(
                f'<{tag} start="{escape_xml(format_timestamp(peak.start))}">'
                f'{escape_xml(format_duration(peak.seconds))}</{tag}>'
            )
    if stats.local_dev_seconds > 0:
        lines.append(_element('localDev', format_duration(stats.local_dev_seconds)))

    lines.append('</stats>')
    return '\n'.join(lines)


def format_file_snapshots_as_xml(snapshots: Iterable[FileSnapshot], which: str) -> str:
    """Render the 'before' or 'after' side of the file snapshots."""
    if which not in ('before', 'after'):
        raise ValueError(f"which must be 'before' or 'after', got {which!r}")
    lines = [f'<fileSnapshots kind="{which}">']
    for snap in snapshots:
        content = snap.before if which == 'before' else snap.after
        lines.append(
            f'<file repo="{escape_xml(snap.repo_name)}" path="{escape_xml(snap.path)}">'
            f'<content>{escape_xml(content)}</content></file>'
        )
    lines.append('</fileSnapshots>')
    return '\n'.join(lines)


def build_activity_xml(
    stats: Stats,
    merged_events: Iterable[RawEvent],
    snapshots: list[FileSnapshot],
) -> str:
    """Assemble the full document: stats, before, events, after."""
    return '\n'.join([
        build_stats_summary_xml(stats),
        format_file_snapshots_as_xml(snapshots, 'before'),
        format_activity_data_as_xml(merged_events),
        format_file_snapshots_as_xml(snapshots, 'after'),
    ])
