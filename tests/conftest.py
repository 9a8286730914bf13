"""Shared fixtures for range analyzer tests."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from aw_analyzer.events.categories import set_category_rules
from aw_analyzer.events.models import RawEvent

T0 = datetime(2024, 1, 5, 0, 0, tzinfo=timezone.utc)


def make_event(
    bucket_type: str,
    data: dict | str | None = None,
    start: datetime = T0,
    duration=60,
    offset: float = 0,
    event_id: int = 1,
) -> RawEvent:
    """Build a RawEvent starting offset seconds after start."""
    datastr = data if isinstance(data, str) else json.dumps(data or {})
    return RawEvent(
        id=event_id,
        bucket_id=1,
        timestamp=start + timedelta(seconds=offset),
        duration=duration,
        datastr=datastr,
        bucket_type=bucket_type,
    )


@pytest.fixture(autouse=True)
def default_category_rules():
    """Use built-in category rules regardless of AW_CATEGORY_RULES_FILE."""
    from aw_analyzer.events.categories import CategoryRules
    set_category_rules(CategoryRules())
    yield
    set_category_rules(None)
