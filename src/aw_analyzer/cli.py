"""Command-line entry point.

    aw-analyzer run       one-shot analysis of a range (default: the last 30 minutes)
    aw-analyzer schedule  analyze every 30-minute window as it elapses
    aw-analyzer serve     run the HTTP API

Exit codes for `run`: 0 on success, 2 for invalid input or missing data,
1 for configuration, provider and unexpected failures.
"""

import argparse
import asyncio
import json
import os
import signal
import sqlite3
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .analysis.orchestrator import RangeAnalysisResult, run_range_analysis
from .analysis.range import parse_date_input
from .config import (
    DEFAULT_CLI_PROVIDER,
    DEFAULT_HOST,
    DEFAULT_PORT,
    SCHEDULER_CREATE_ENV_NAMES,
    WINDOW_MINUTES,
)
from .errors import InvalidInputError, RangeAnalysisError
from .events.categories import load_category_rules, set_category_rules
from .events.store import ActivityWatchDB
from .logging_config import get_logger, set_log_level, setup_logging
from .scheduler import WindowScheduler
from .services.calendar import has_calendar_credentials

logger = get_logger(__name__, namespace='scheduler')

DEFAULT_LOOKBACK_MINUTES = 30

_TRUE_VALUES = ('1', 'true', 'yes', 'y', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'n', 'off')


def load_environment(root: Optional[Path] = None) -> None:
    """Load .env.local (overriding) or else .env from the working directory."""
    root = root or Path.cwd()
    env_local = root / '.env.local'
    env_file = root / '.env'
    if env_local.exists():
        load_dotenv(env_local, override=True)
    elif env_file.exists():
        load_dotenv(env_file, override=False)


def read_boolean_env(*names: str, env: Optional[dict] = None) -> Optional[bool]:
    """First recognizable boolean among the named environment variables."""
    env = env if env is not None else os.environ
    for name in names:
        raw = env.get(name)
        if raw is None:
            continue
        value = raw.strip().lower()
        if not value:
            continue
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
    return None


def exit_code_for(error: Exception) -> int:
    if isinstance(error, RangeAnalysisError):
        return 2 if error.is_client_error else 1
    return 1


def _dump_result(result: RangeAnalysisResult) -> dict:
    return result.model_dump(by_alias=True)


def print_result(result: RangeAnalysisResult, save_xml: bool, create_calendar: bool) -> None:
    print("=== run-range-analysis ===")
    print(f"range: {result.range.start} -> {result.range.end} ({result.range.label})")
    print(f"provider: {result.provider}")
    print(f"counts: activity={result.counts.activity_events}, commits={result.counts.git_commits}")
    print()
    print("human summary:")
    print(result.human_summary)
    print()
    print("analysis:")
    print(result.result)
    print()
    if result.xml_path:
        print(f"xml: {result.xml_path}")
    elif save_xml:
        print("xml: save requested but file was not written")
    else:
        print("xml: not saved (--save-xml not set)")
    if result.calendar_result:
        print(f"calendar: {result.calendar_result}")
    elif not create_calendar:
        print("calendar: disabled (--no-calendar)")
    else:
        print("calendar: not requested")


def resolve_run_range(args, now: datetime) -> tuple[datetime, datetime]:
    """Range for `run`: explicit bounds, else a lookback ending at end (or now).

    Raises:
        InvalidInputError: If an explicit bound cannot be parsed
    """
    end = now
    if args.end:
        end = parse_date_input(args.end)
        if end is None:
            raise InvalidInputError("Invalid end date")

    if args.start:
        start = parse_date_input(args.start)
        if start is None:
            raise InvalidInputError("Invalid start date")
    else:
        if args.minutes is not None:
            lookback = args.minutes
        elif args.hours is not None:
            lookback = args.hours * 60
        else:
            lookback = DEFAULT_LOOKBACK_MINUTES
        start = end - timedelta(minutes=lookback)
    return start, end


def cmd_run(args) -> int:
    provider = (args.provider or DEFAULT_CLI_PROVIDER).lower()
    create_calendar = True if args.create is None else args.create
    if args.no_calendar:
        create_calendar = False

    try:
        start, end = resolve_run_range(args, datetime.now(timezone.utc))
        with ActivityWatchDB() as db:
            result = asyncio.run(run_range_analysis(
                start,
                end,
                provider,
                create_calendar=create_calendar,
                save_xml=args.save_xml,
                event_source=db,
                log_prefix='[cli/run]',
            ))
    except RangeAnalysisError as e:
        print(f"run-range-analysis failed: {e}", file=sys.stderr)
        return exit_code_for(e)
    except sqlite3.Error as e:
        print(f"run-range-analysis failed: cannot open ActivityWatch database: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"run-range-analysis failed: {e}")
        return 1

    if args.json:
        print(json.dumps(_dump_result(result), ensure_ascii=False, indent=2))
    else:
        print_result(result, args.save_xml, create_calendar)
    return 0


def resolve_schedule_calendar(flag: Optional[bool]) -> bool:
    """Calendar default for the scheduler: flag, then env, then credentials."""
    env_create = read_boolean_env(*SCHEDULER_CREATE_ENV_NAMES)
    configured = has_calendar_credentials()
    create_calendar = flag if flag is not None else (env_create if env_create is not None else configured)
    logger.info(
        f"[cli/schedule] calendar settings flag={flag} env={env_create} "
        f"calendarConfigured={configured} createCalendar={create_calendar}"
    )
    if flag is None:
        reason = 'env' if env_create is not None else 'calendar-config'
        logger.info(f"[cli/schedule] calendar default reason={reason} enabled={create_calendar}")
    return create_calendar


def warn_ignored_window_overrides(args) -> None:
    """The window is fixed; other interval/lookback values are reported and ignored."""
    if args.interval is not None and args.interval != WINDOW_MINUTES:
        logger.warning(
            f"[cli/schedule] interval option {args.interval}m is ignored; "
            f"forcing {WINDOW_MINUTES}m interval"
        )
    if ((args.minutes is not None and args.minutes != WINDOW_MINUTES)
            or (args.hours is not None and args.hours * 60 != WINDOW_MINUTES)):
        logger.warning(f"[cli/schedule] custom lookback is ignored; forcing {WINDOW_MINUTES}m window")


async def _schedule(args, db: ActivityWatchDB) -> None:
    provider = (args.provider or DEFAULT_CLI_PROVIDER).lower()
    create_calendar = resolve_schedule_calendar(args.create)
    warn_ignored_window_overrides(args)

    seed = None
    if args.start:
        seed = parse_date_input(args.start)
        if seed is None:
            logger.warning(f"[cli/schedule] could not parse start option {args.start!r}; ignoring it")

    async def analyze(start: datetime, end: datetime) -> RangeAnalysisResult:
        return await run_range_analysis(
            start,
            end,
            provider,
            create_calendar=create_calendar,
            event_source=db,
            log_prefix='[cli/schedule]',
        )

    def print_json(trigger: str, start: datetime, end: datetime, result: RangeAnalysisResult) -> None:
        print(json.dumps({
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'trigger': trigger,
            'result': _dump_result(result),
        }, ensure_ascii=False, indent=2), flush=True)

    scheduler = WindowScheduler(
        analyze,
        start=seed,
        on_success=print_json if args.json else None,
        log_prefix='[cli/schedule]',
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.shutdown)
        except (NotImplementedError, RuntimeError):
            logger.debug(f"Signal handler for {sig.name} not supported on this platform")

    await scheduler.run_forever()


def cmd_schedule(args) -> int:
    try:
        with ActivityWatchDB() as db:
            asyncio.run(_schedule(args, db))
    except sqlite3.Error as e:
        logger.error(f"[cli/schedule] cannot open ActivityWatch database: {e}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def cmd_serve(args) -> int:
    import uvicorn
    from .server import app

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='aw-analyzer',
        description="ActivityWatch range analyzer",
    )
    parser.add_argument('--log-level', default=None, help='Log level (default: AWA_LOG_LEVEL or INFO)')
    sub = parser.add_subparsers(dest='command', required=True)

    run = sub.add_parser('run', help='Analyze one range')
    run.add_argument('--start', help='Range start (ISO 8601 or epoch s/ms)')
    run.add_argument('--end', help='Range end (default: now)')
    run.add_argument('--provider', help=f'Generation provider (default: {DEFAULT_CLI_PROVIDER})')
    run.add_argument('--create', action=argparse.BooleanOptionalAction, default=None,
                     help='Insert a calendar entry (default: on)')
    run.add_argument('--no-calendar', action='store_true', help='Disable calendar insertion')
    run.add_argument('--save-xml', action='store_true', help='Persist the structured document')
    run.add_argument('--minutes', type=int, help='Lookback in minutes when --start is omitted')
    run.add_argument('--hours', type=int, help='Lookback in hours when --start is omitted')
    run.add_argument('--json', action='store_true', help='Print the result as JSON')
    run.set_defaults(func=cmd_run)

    schedule = sub.add_parser('schedule', help=f'Analyze every {WINDOW_MINUTES}-minute window')
    schedule.add_argument('--provider', help=f'Generation provider (default: {DEFAULT_CLI_PROVIDER})')
    schedule.add_argument('--create', action=argparse.BooleanOptionalAction, default=None,
                          help='Insert calendar entries (default: env flags, then credentials present)')
    schedule.add_argument('--minutes', type=int, help=f'Ignored; the window is {WINDOW_MINUTES} minutes')
    schedule.add_argument('--hours', type=int, help=f'Ignored; the window is {WINDOW_MINUTES} minutes')
    schedule.add_argument('--interval', type=int, help=f'Ignored; the interval is {WINDOW_MINUTES} minutes')
    schedule.add_argument('--start', help='Seed for the first window start (floored to a boundary)')
    schedule.add_argument('--json', action='store_true', help='Print each result as JSON')
    schedule.set_defaults(func=cmd_schedule)

    serve = sub.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', default=DEFAULT_HOST, help='Host to bind to')
    serve.add_argument('--port', type=int, default=DEFAULT_PORT, help='Port to bind to')
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    load_environment()
    args = build_parser().parse_args(argv)
    setup_logging()
    if args.log_level:
        set_log_level(args.log_level)
    set_category_rules(load_category_rules())
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
