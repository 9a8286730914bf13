"""Range analysis routes."""

import re
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from ..analysis.orchestrator import run_range_analysis
from ..analysis.range import parse_date_input
from ..config import DEFAULT_HTTP_PROVIDER
from ..errors import RangeAnalysisError
from ..logging_config import get_logger
from ..services.calendar import get_calendar_id, has_calendar_credentials

logger = get_logger(__name__, namespace='api')

router = APIRouter(prefix="/api", tags=["analysis"])

LOG_PREFIX = '[api/analyze-activity/by-range]'

_TRUTHY_RE = re.compile(r'^(1|true|yes)$', re.IGNORECASE)


@router.get("/health")
def health(request: Request):
    """Report service liveness and whether the event database is open."""
    db = getattr(request.app.state, 'db', None)
    return {
        "status": "ok",
        "database": bool(db is not None and db.is_open),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/analyze-activity/by-range")
async def analyze_by_range(
    request: Request,
    start: Optional[str] = None,
    end: Optional[str] = None,
    provider: Optional[str] = None,
    create: Optional[str] = None,
):
    """Analyze activity in [start, end) and generate a report.

    Args:
        start: ISO 8601 string or epoch seconds/milliseconds
        end: ISO 8601 string or epoch seconds/milliseconds
        provider: 'openai' (default), 'gemini' or 'bedrock'
        create: '1', 'true' or 'yes' to insert a calendar entry

    Returns:
        Range analysis result with camelCase keys
    """
    provider = (provider or DEFAULT_HTTP_PROVIDER).lower()
    create_calendar = bool(_TRUTHY_RE.match(create or ''))
    logger.info(
        f"{LOG_PREFIX} request start={start} end={end} provider={provider} "
        f"create={create_calendar} calendarIdPresent={bool(get_calendar_id())} "
        f"serviceCredsPresent={has_calendar_credentials()}"
    )

    start_dt = parse_date_input(start)
    end_dt = parse_date_input(end)
    if start_dt is None or end_dt is None:
        raise HTTPException(400, "Missing or invalid 'start'/'end'. Use ISO string or epoch (s/ms)")

    try:
        result = await run_range_analysis(
            start_dt,
            end_dt,
            provider,
            create_calendar=create_calendar,
            event_source=getattr(request.app.state, 'db', None),
            log_prefix=LOG_PREFIX,
        )
    except RangeAnalysisError as e:
        logger.error(f"{LOG_PREFIX} {e}")
        raise HTTPException(e.status, str(e))
    except Exception as e:
        logger.exception(f"{LOG_PREFIX} unexpected error: {e}")
        raise HTTPException(500, "Failed to analyze activity data for the given range")

    return result.model_dump(by_alias=True)
