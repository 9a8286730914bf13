"""Category vocabulary and the categorization algorithm.

The vocabulary (which app names count as editors, which domains as media,
...) lives in a CategoryRules value loaded once at startup, either from
the defaults below or from a JSON file named by AW_CATEGORY_RULES_FILE:

    {
        "messaging_apps": ["slack", "discord"],
        "media_domains": ["youtube.com", "twitch.tv"]
    }

Keys that are omitted keep their defaults.
"""

import json
from dataclasses import dataclass, fields
from pathlib import Path

from ..config import (
    BUCKET_AFK,
    BUCKET_EDITOR,
    BUCKET_GIT_COMMIT,
    BUCKET_WEB_TAB,
    BUCKET_WINDOW,
    get_category_rules_file,
)
from ..logging_config import get_logger
from .models import Category
from .titles import is_editor_settings_title

logger = get_logger(__name__, namespace='events')


@dataclass(frozen=True)
class CategoryRules:
    """Name/domain vocabulary used to categorize events.

    App names match case-insensitively as substrings of the window's app;
    media domains match as hostname suffixes; media title suffixes match the
    end of a lower-cased tab title.
    """
    messaging_apps: tuple[str, ...] = ('slack',)
    terminal_apps: tuple[str, ...] = ('iterm', 'terminal')
    browser_apps: tuple[str, ...] = ('arc', 'chrome', 'safari')
    editor_apps: tuple[str, ...] = ('cursor', 'code')
    media_domains: tuple[str, ...] = ('youtube.com',)
    media_title_suffixes: tuple[str, ...] = ('- youtube',)

    def is_messaging_app(self, app: str | None) -> bool:
        return _app_matches(app, self.messaging_apps)

    def is_terminal_app(self, app: str | None) -> bool:
        return _app_matches(app, self.terminal_apps)

    def is_browser_app(self, app: str | None) -> bool:
        return _app_matches(app, self.browser_apps)

    def is_editor_app(self, app: str | None) -> bool:
        return _app_matches(app, self.editor_apps)

    def is_media(self, domain: str | None, title: str | None) -> bool:
        domain_l = (domain or '').lower()
        title_l = (title or '').lower()
        if domain_l and any(domain_l.endswith(d) for d in self.media_domains):
            return True
        return any(title_l.endswith(s) for s in self.media_title_suffixes)


def _app_matches(app: str | None, names: tuple[str, ...]) -> bool:
    if not app:
        return False
    app_l = app.lower()
    return any(name in app_l for name in names)


def load_category_rules(path: Path | None = None) -> CategoryRules:
    """Load category rules from a JSON file, falling back to defaults.

    Args:
        path: JSON file with any subset of CategoryRules fields
              (default: AW_CATEGORY_RULES_FILE, if set)

    Returns:
        CategoryRules instance
    """
    path = path if path is not None else get_category_rules_file()
    if path is None:
        return CategoryRules()

    try:
        data = json.loads(Path(path).read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load category rules from {path}: {e}; using defaults")
        return CategoryRules()

    if not isinstance(data, dict):
        logger.warning(f"Category rules in {path} must be a JSON object; using defaults")
        return CategoryRules()

    known = {f.name for f in fields(CategoryRules)}
    overrides = {}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown category rule '{key}'")
            continue
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            logger.warning(f"Category rule '{key}' must be a list of strings; keeping default")
            continue
        overrides[key] = tuple(v.lower() for v in value)

    return CategoryRules(**overrides)


_active_rules: CategoryRules | None = None


def get_category_rules() -> CategoryRules:
    """Get the rules loaded at startup (loaded lazily on first use)."""
    global _active_rules
    if _active_rules is None:
        _active_rules = load_category_rules()
    return _active_rules


def set_category_rules(rules: CategoryRules | None) -> None:
    """Replace the active rules (None reloads from configuration on next use)."""
    global _active_rules
    _active_rules = rules


def categorize(
    bucket_type: str,
    app: str | None = None,
    domain: str | None = None,
    title: str | None = None,
    rules: CategoryRules | None = None,
) -> Category:
    """Assign exactly one category; first matching rule wins."""
    rules = rules or get_category_rules()

    if bucket_type == BUCKET_EDITOR:
        return 'coding'
    if bucket_type == BUCKET_GIT_COMMIT:
        return 'coding'
    if bucket_type == BUCKET_WEB_TAB:
        return 'media' if rules.is_media(domain, title) else 'browsing'
    if bucket_type == BUCKET_AFK:
        return 'afk'
    if bucket_type == BUCKET_WINDOW:
        if rules.is_messaging_app(app):
            return 'communication'
        if rules.is_terminal_app(app):
            return 'terminal'
        if rules.is_browser_app(app):
            return 'browsing'
        if rules.is_editor_app(app):
            return 'settings' if is_editor_settings_title(title) else 'coding'
    return 'other'
