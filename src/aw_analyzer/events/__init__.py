"""Event modules for ActivityWatch data.

This package contains modules for:
- Event records and duration coercion (models.py)
- Read-only database access (store.py)
- Category vocabulary and categorization (categories.py)
- Window-title grammars (titles.py)
- Event normalization (normalize.py)

Import functions from here for a clean API:
    from aw_analyzer.events import ActivityWatchDB, normalize_event
"""

# Records
from .models import (
    CATEGORIES,
    NormalizedEvent,
    RawEvent,
    coerce_duration,
    has_positive_duration,
)

# Database access
from .store import (
    ActivityWatchDB,
    safe_parse_datastr,
    safe_to_string,
)

# Categorization
from .categories import (
    CategoryRules,
    categorize,
    get_category_rules,
    load_category_rules,
    set_category_rules,
)

# Title grammars
from .titles import (
    parse_editor_title,
    parse_slack_title,
)

# Normalization
from .normalize import (
    extract_domain,
    normalize_event,
    normalize_events,
    parse_json_safe,
    parse_payload,
)

__all__ = [
    # Records
    'CATEGORIES',
    'NormalizedEvent',
    'RawEvent',
    'coerce_duration',
    'has_positive_duration',
    # Database access
    'ActivityWatchDB',
    'safe_parse_datastr',
    'safe_to_string',
    # Categorization
    'CategoryRules',
    'categorize',
    'get_category_rules',
    'load_category_rules',
    'set_category_rules',
    # Title grammars
    'parse_editor_title',
    'parse_slack_title',
    # Normalization
    'extract_domain',
    'normalize_event',
    'normalize_events',
    'parse_json_safe',
    'parse_payload',
]
