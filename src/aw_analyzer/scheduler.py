"""Boundary-aligned window scheduler for range analysis.

Windows are anchored to multiples of the window size since the Unix
epoch. On each boundary the scheduler analyzes [start, end) where end is
the boundary just reached and start is the end of the last successful
window when it precedes end, otherwise end minus one window. Consecutive
successful runs therefore tile the timeline with no gaps or overlaps.

Only one run is in flight at a time. A boundary that fires while a run
is still in progress is skipped (not queued); since last_window_end only
advances on success, the next successful run back-fills the skipped span.
Failed runs are logged and back-filled the same way.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from .config import WINDOW_MINUTES
from .errors import RangeAnalysisError
from .logging_config import get_logger
from .types import RunSummary

logger = get_logger(__name__, namespace='scheduler')

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_WINDOW = timedelta(minutes=WINDOW_MINUTES)


def floor_to_boundary(dt: datetime, window: timedelta = DEFAULT_WINDOW) -> datetime:
    """Largest boundary <= dt (dt itself when already on a boundary)."""
    return EPOCH + ((dt - EPOCH) // window) * window


def next_boundary_after(dt: datetime, window: timedelta = DEFAULT_WINDOW) -> datetime:
    """Smallest boundary strictly after dt."""
    return floor_to_boundary(dt, window) + window


def is_exact_boundary(dt: datetime, window: timedelta = DEFAULT_WINDOW) -> bool:
    return (dt - EPOCH) % window == timedelta(0)


def _utcnow() -> datetime:
    return datetime.fromtimestamp(time.time(), tz=timezone.utc)


RunAnalysis = Callable[[datetime, datetime], Awaitable[object]]
OnSuccess = Callable[[str, datetime, datetime, object], None]


class WindowScheduler:
    """Drives run_analysis once per window boundary.

    Args:
        run_analysis: Async callable taking (start, end)
        window: Window size (boundaries are multiples of it since the epoch)
        start: Optional seed for the first window start; floored to a boundary
        on_success: Called with (trigger, start, end, result) after each success
        now: Clock returning an aware datetime
        sleep: Async sleep used between boundaries
    """

    def __init__(
        self,
        run_analysis: RunAnalysis,
        window: timedelta = DEFAULT_WINDOW,
        start: Optional[datetime] = None,
        on_success: Optional[OnSuccess] = None,
        now: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        log_prefix: str = '[scheduler]',
    ):
        self.run_analysis = run_analysis
        self.window = window
        self.on_success = on_success or self._log_success
        self._now = now
        self._sleep = sleep
        self.log_prefix = log_prefix

        self.last_window_end: Optional[datetime] = None
        self.is_running = False
        self._timer_task: Optional[asyncio.Task] = None
        self._runs: set[asyncio.Task] = set()
        self._stopping = False

        if start is not None:
            self.seed(start)

    def seed(self, start: datetime) -> None:
        """Use start (floored to a boundary) as the end of the last window."""
        aligned = floor_to_boundary(start, self.window)
        if aligned != start:
            logger.warning(
                f"{self.log_prefix} start option rounded down to {aligned.isoformat()} "
                f"to keep {self.window_minutes}m window alignment"
            )
        self.last_window_end = aligned

    @property
    def window_minutes(self) -> int:
        return int(self.window.total_seconds() // 60)

    def compute_window(self, end: datetime) -> tuple[datetime, datetime]:
        """Range for a run ending at end, back-filling from the last success."""
        if self.last_window_end is not None and self.last_window_end < end:
            start = self.last_window_end
        else:
            start = end - self.window
        if start >= end:
            start = end - self.window
        return start, end

    async def run_once(self, trigger: str, target_end: datetime) -> bool:
        """Run one analysis ending at target_end.

        Returns:
            True when the analysis succeeded, False when it was skipped or failed
        """
        if self.is_running:
            logger.warning(
                f"{self.log_prefix} skip run triggered by {trigger} because previous run is in progress"
            )
            return False

        self.is_running = True
        try:
            start, end = self.compute_window(target_end)
            logger.info(f"{self.log_prefix} start ({trigger}) {start.isoformat()} -> {end.isoformat()}")
            try:
                result = await self.run_analysis(start, end)
            except RangeAnalysisError as e:
                logger.error(f"{self.log_prefix} failed: RangeAnalysisError status={e.status} message={e}")
                return False
            except Exception as e:
                logger.exception(f"{self.log_prefix} failed: {e}")
                return False

            self.last_window_end = end
            try:
                self.on_success(trigger, start, end, result)
            except Exception as e:
                logger.warning(f"{self.log_prefix} success callback failed: {e}")
            return True
        finally:
            self.is_running = False

    def _log_success(self, trigger: str, start: datetime, end: datetime, result) -> None:
        counts = getattr(result, 'counts', None)
        calendar_result = getattr(result, 'calendar_result', None)
        summary: RunSummary = {
            'trigger': trigger,
            'start': start.isoformat(),
            'end': end.isoformat(),
            'activityEvents': counts.activity_events if counts else 0,
            'gitCommits': counts.git_commits if counts else 0,
            'calendarInserted': calendar_result.get('inserted') if calendar_result else None,
        }
        logger.info(f"{self.log_prefix} success {summary}")

    def _spawn_run(self, trigger: str, target_end: datetime) -> asyncio.Task:
        task = asyncio.create_task(self.run_once(trigger, target_end))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return task

    async def _timer_loop(self, reference: datetime) -> None:
        while True:
            target = next_boundary_after(reference, self.window)
            delay = max(0.0, (target - self._now()).total_seconds())
            logger.info(
                f"{self.log_prefix} next run at {target.isoformat()} (in {round(delay)}s)"
            )
            await self._sleep(delay)
            self._spawn_run('scheduled', target)
            reference = target

    def start_timer(self, reference: datetime) -> asyncio.Task:
        """Start the boundary timer from reference."""
        self._timer_task = asyncio.create_task(self._timer_loop(reference))
        return self._timer_task

    async def run_forever(self) -> None:
        """Run until shutdown() is called.

        If now is exactly on a boundary the first window runs immediately;
        otherwise the scheduler waits for the next boundary.
        """
        now = self._now()
        if is_exact_boundary(now, self.window):
            await self.run_once('startup-boundary', now)
        else:
            first = next_boundary_after(now, self.window)
            logger.info(
                f"{self.log_prefix} waiting {round((first - now).total_seconds())}s "
                f"for first boundary run at {first.isoformat()}"
            )

        if self._stopping:
            return
        timer = self.start_timer(now)
        try:
            await timer
        except asyncio.CancelledError:
            if not self._stopping:
                raise
        await self.wait_for_runs()

    def shutdown(self) -> None:
        """Cancel the pending timer; in-flight runs are allowed to finish."""
        self._stopping = True
        if self._timer_task is not None and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = None
        logger.info(f"{self.log_prefix} shutting down scheduler")

    async def wait_for_runs(self) -> None:
        """Wait for runs already in flight."""
        if self._runs:
            await asyncio.gather(*self._runs, return_exceptions=True)
