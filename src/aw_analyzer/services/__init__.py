"""External service clients: text generation and calendar insertion."""

from .calendar import (
    create_calendar_event_if_configured,
    has_calendar_credentials,
    normalize_private_key,
)
from .llm import (
    CalendarObject,
    ModelHandle,
    generate_structured,
    generate_text,
    select_model,
)

__all__ = [
    'create_calendar_event_if_configured',
    'has_calendar_credentials',
    'normalize_private_key',
    'CalendarObject',
    'ModelHandle',
    'generate_structured',
    'generate_text',
    'select_model',
]
