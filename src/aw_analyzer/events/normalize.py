"""Event normalization for ActivityWatch events.

This module provides functions for:
- Safely decoding event payloads (never raises on malformed JSON)
- Extracting per-source payload fields (window, web tab, AFK, editor, commit)
- Deriving domain, project/file and Slack channel enrichment
- Converting a RawEvent into a NormalizedEvent with its category
"""

import json
import math
import re
from datetime import timedelta
from urllib.parse import urlsplit

from ..config import (
    BUCKET_AFK,
    BUCKET_EDITOR,
    BUCKET_GIT_COMMIT,
    BUCKET_WEB_TAB,
    BUCKET_WINDOW,
)
from .categories import CategoryRules, categorize, get_category_rules
from .models import NormalizedEvent, RawEvent
from .titles import parse_editor_title, parse_slack_title

_HOST_RE = re.compile(r'^https?://([^/:?#]+)', re.IGNORECASE)


# Fields read from the payload of each source type
PAYLOAD_FIELDS: dict[str, tuple[str, ...]] = {
    BUCKET_WINDOW: ('app', 'title'),
    BUCKET_WEB_TAB: ('url', 'title'),
    BUCKET_AFK: ('status',),
    BUCKET_EDITOR: ('file', 'project', 'language', 'branch'),
    BUCKET_GIT_COMMIT: ('repo', 'path', 'subject', 'diff'),
}

# Fields read from sources without a known shape
_GENERIC_FIELDS = ('app', 'title', 'url')


def parse_json_safe(text: str | bytes | None) -> dict | None:
    """Decode a JSON object, returning None on any failure or non-object."""
    if text is None:
        return None
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def parse_payload(bucket_type: str, datastr: str | bytes | None) -> dict:
    """Decode a payload into the string fields known for its source type.

    Non-string values are dropped, so every accessor on the result is an
    optional string.
    """
    data = parse_json_safe(datastr) or {}
    keys = PAYLOAD_FIELDS.get(bucket_type, _GENERIC_FIELDS)
    return {k: data[k] for k in keys if isinstance(data.get(k), str)}


def extract_domain(url: str | None) -> str | None:
    """Extract the lower-cased hostname from a URL.

    Falls back to a regex over the scheme/host prefix when URL parsing
    fails, and to None when neither works.
    """
    if not url:
        return None
    try:
        host = urlsplit(url).hostname
        if host:
            return host.lower()
    except ValueError:
        pass
    m = _HOST_RE.match(url)
    return m.group(1).lower() if m else None


def normalize_event(event: RawEvent, rules: CategoryRules | None = None) -> NormalizedEvent | None:
    """Convert a raw event into its canonical shape.

    Args:
        event: Raw event from the event store or the git collector
        rules: Category vocabulary (default: the rules loaded at startup)

    Returns:
        NormalizedEvent, or None when the duration is non-finite or <= 0
    """
    duration = event.duration_seconds
    if not math.isfinite(duration) or duration <= 0:
        return None

    rules = rules or get_category_rules()
    bucket_type = event.bucket_type or 'unknown'
    data = parse_payload(bucket_type, event.datastr)

    app = data.get('app')
    title = data.get('title')
    url = data.get('url')
    domain = extract_domain(url)

    project = None
    file = None
    language = None
    slack_channel = None
    slack_workspace = None

    if bucket_type == BUCKET_EDITOR:
        project = data.get('project')
        file = data.get('file')
        language = data.get('language')
    elif bucket_type == BUCKET_WINDOW and app and title:
        if rules.is_editor_app(app):
            parsed = parse_editor_title(title)
            project = parsed.get('project')
            file = parsed.get('file')
        if rules.is_messaging_app(app):
            parsed = parse_slack_title(title)
            slack_channel = parsed.get('channel')
            slack_workspace = parsed.get('workspace')

    start = event.timestamp
    end = start + timedelta(milliseconds=math.floor(duration * 1000))

    return NormalizedEvent(
        start=start,
        end=end,
        duration_sec=math.floor(duration),
        bucket_type=bucket_type,
        category=categorize(bucket_type, app, domain, title, rules=rules),
        app=app,
        url=url,
        domain=domain,
        title=title,
        project=project,
        file=file,
        language=language,
        slack_channel=slack_channel,
        slack_workspace=slack_workspace,
    )


def normalize_events(events, rules: CategoryRules | None = None) -> list[NormalizedEvent]:
    """Normalize a sequence of raw events, dropping those without duration."""
    normalized = []
    for event in events:
        n = normalize_event(event, rules=rules)
        if n is not None:
            normalized.append(n)
    return normalized
