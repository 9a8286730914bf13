"""Window-title grammars for recovering structure from free-text titles.

Each parser is a pure function for one application family. A title that
matches none of its grammars yields an empty dict (no enrichment), never
an error.
"""

import re

# "Settings — project"
_EDITOR_SETTINGS_RE = re.compile(r'^Settings\s+—\s+(.+)$')
# "Extension: name — project"
_EDITOR_EXTENSION_RE = re.compile(r'^Extension:\s*([^\n]+?)\s+—\s+(.+)$')
# "file — project"
_EDITOR_FILE_RE = re.compile(r'^(.+?)\s+—\s+(.+)$')

# Localized Slack UI: "matching_all（チャンネル） - Workspace - Slack"
_SLACK_LOCALIZED_RE = re.compile(
    r'^(.+?)（(?:チャンネル|スレッド|ダイレクトメッセージ)）\s+-\s+(.+?)\s+-\s+Slack$'
)
# English Slack UI: "#general - Workspace - Slack"
_SLACK_ENGLISH_RE = re.compile(r'^(.+?)\s+-\s+(.+?)\s+-\s+Slack$')

# Titles of editor views that are not source files
_EDITOR_SETTINGS_VIEW_RE = re.compile(r'^(settings\s+—|extension:)', re.IGNORECASE)


def parse_editor_title(title: str | None) -> dict:
    """Parse a VS Code / Cursor window title.

    Returns:
        Dict with any of 'file', 'project', 'is_settings', 'is_extension'
    """
    if not title:
        return {}

    m = _EDITOR_SETTINGS_RE.match(title)
    if m:
        return {'project': m.group(1), 'is_settings': True}

    m = _EDITOR_EXTENSION_RE.match(title)
    if m:
        return {'file': m.group(1), 'project': m.group(2), 'is_extension': True}

    m = _EDITOR_FILE_RE.match(title)
    if m:
        return {'file': m.group(1), 'project': m.group(2)}

    return {}


def parse_slack_title(title: str | None) -> dict:
    """Parse a Slack window title into 'channel' and 'workspace'."""
    if not title:
        return {}

    for pattern in (_SLACK_LOCALIZED_RE, _SLACK_ENGLISH_RE):
        m = pattern.match(title)
        if m:
            return {'channel': m.group(1), 'workspace': m.group(2)}

    return {}


def is_editor_settings_title(title: str | None) -> bool:
    """Check if an editor title shows the Settings or an Extension page."""
    if not title:
        return False
    return bool(_EDITOR_SETTINGS_VIEW_RE.match(title))
