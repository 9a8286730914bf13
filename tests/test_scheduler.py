"""Tests for the boundary-aligned window scheduler."""

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from aw_analyzer.errors import ConfigurationError
from aw_analyzer.scheduler import (
    DEFAULT_WINDOW,
    WindowScheduler,
    floor_to_boundary,
    is_exact_boundary,
    next_boundary_after,
)

from conftest import T0

W = DEFAULT_WINDOW


class Recorder:
    """Async analysis stub recording each (start, end)."""

    def __init__(self, fail_with=None):
        self.calls = []
        self.fail_with = fail_with

    async def __call__(self, start, end):
        self.calls.append((start, end))
        if self.fail_with is not None:
            raise self.fail_with
        return {'start': start, 'end': end}


class TestBoundaries:
    """Tests for boundary arithmetic."""

    def test_exact_boundary_is_fixed_point(self):
        """Test a boundary floors to itself and the next one is one window later."""
        for k in range(4):
            t = T0 + k * W
            assert is_exact_boundary(t)
            assert floor_to_boundary(t) == t
            assert next_boundary_after(t) == t + W

    def test_floor_within_window(self):
        """Test instants inside a window floor to its start."""
        t = T0 + timedelta(minutes=17, seconds=3)
        assert floor_to_boundary(t) == T0
        assert next_boundary_after(t) == T0 + W
        assert not is_exact_boundary(t)

    def test_boundaries_are_epoch_aligned(self):
        """Test boundaries do not depend on the local offset of the input."""
        from datetime import timezone
        india = timezone(timedelta(hours=5, minutes=30))
        t = (T0 + timedelta(minutes=5)).astimezone(india)
        assert floor_to_boundary(t) == T0


class TestComputeWindow:
    """Tests for WindowScheduler.compute_window."""

    def test_first_run_is_one_window(self):
        """Test the first window without history."""
        scheduler = WindowScheduler(Recorder())
        assert scheduler.compute_window(T0) == (T0 - W, T0)

    def test_back_fill_from_last_success(self):
        """Test a run starts at the last successful end."""
        scheduler = WindowScheduler(Recorder(), start=T0)
        assert scheduler.compute_window(T0 + 3 * W) == (T0, T0 + 3 * W)

    def test_last_end_not_before_target(self):
        """Test a stale future last end falls back to one window."""
        scheduler = WindowScheduler(Recorder(), start=T0 + 2 * W)
        assert scheduler.compute_window(T0 + W) == (T0, T0 + W)

    def test_seed_is_floored(self):
        """Test an unaligned seed is rounded down."""
        scheduler = WindowScheduler(Recorder(), start=T0 + timedelta(minutes=7))
        assert scheduler.last_window_end == T0


class TestRunOnce:
    """Tests for WindowScheduler.run_once."""

    @pytest.mark.asyncio
    async def test_consecutive_runs_tile_timeline(self):
        """Test back-to-back runs share their boundary exactly."""
        analysis = Recorder()
        scheduler = WindowScheduler(analysis)
        assert await scheduler.run_once('scheduled', T0)
        assert await scheduler.run_once('scheduled', T0 + W)
        assert analysis.calls == [(T0 - W, T0), (T0, T0 + W)]
        assert scheduler.last_window_end == T0 + W

    @pytest.mark.asyncio
    async def test_failure_keeps_last_end_and_back_fills(self):
        """Test a failed window is covered by the next success."""
        analysis = Recorder(fail_with=ConfigurationError('Missing OPENAI_API_KEY for OpenAI provider'))
        scheduler = WindowScheduler(analysis, start=T0)

        assert not await scheduler.run_once('scheduled', T0 + W)
        assert scheduler.last_window_end == T0

        analysis.fail_with = None
        assert await scheduler.run_once('scheduled', T0 + 2 * W)
        assert analysis.calls[-1] == (T0, T0 + 2 * W)

    @pytest.mark.asyncio
    async def test_unexpected_failure_does_not_raise(self):
        """Test arbitrary exceptions are logged, not propagated."""
        scheduler = WindowScheduler(Recorder(fail_with=RuntimeError('boom')), start=T0)
        assert not await scheduler.run_once('scheduled', T0 + W)
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_skip_while_running_preserves_back_fill(self):
        """Test an overlapping trigger is skipped and later covered."""
        release = asyncio.Event()
        calls = []

        async def slow_analysis(start, end):
            calls.append((start, end))
            if len(calls) == 1:
                await release.wait()
            return None

        scheduler = WindowScheduler(slow_analysis, start=T0)
        first = asyncio.create_task(scheduler.run_once('scheduled', T0 + W))
        await asyncio.sleep(0)
        assert scheduler.is_running

        assert not await scheduler.run_once('scheduled', T0 + 2 * W)
        assert scheduler.last_window_end == T0

        release.set()
        assert await first
        assert scheduler.last_window_end == T0 + W

        assert await scheduler.run_once('scheduled', T0 + 3 * W)
        assert calls == [(T0, T0 + W), (T0 + W, T0 + 3 * W)]

    @pytest.mark.asyncio
    async def test_on_success_called(self):
        """Test the success callback receives trigger, range and result."""
        on_success = MagicMock()
        scheduler = WindowScheduler(Recorder(), on_success=on_success)
        await scheduler.run_once('manual', T0)
        on_success.assert_called_once_with('manual', T0 - W, T0, {'start': T0 - W, 'end': T0})

    @pytest.mark.asyncio
    async def test_on_success_failure_still_advances(self):
        """Test a raising callback does not undo the success."""
        scheduler = WindowScheduler(Recorder(), on_success=MagicMock(side_effect=ValueError('x')))
        assert await scheduler.run_once('manual', T0)
        assert scheduler.last_window_end == T0


class TestRunForever:
    """Tests for the timer loop."""

    def _scheduler(self, now, analysis, stop_after):
        delays = []
        holder = {}

        async def fake_sleep(delay):
            delays.append(delay)
            if len(delays) >= stop_after:
                holder['scheduler'].shutdown()
            await asyncio.sleep(0)

        scheduler = WindowScheduler(analysis, now=lambda: now, sleep=fake_sleep)
        holder['scheduler'] = scheduler
        return scheduler, delays

    @pytest.mark.asyncio
    async def test_startup_on_boundary_runs_immediately(self):
        """Test a start exactly on a boundary analyzes the window just ended."""
        analysis = Recorder()
        scheduler, delays = self._scheduler(T0, analysis, stop_after=2)

        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert analysis.calls == [(T0 - W, T0), (T0, T0 + W)]
        assert delays[0] == W.total_seconds()

    @pytest.mark.asyncio
    async def test_startup_off_boundary_waits(self):
        """Test an unaligned start waits for the next boundary."""
        analysis = Recorder()
        now = T0 + timedelta(minutes=10)
        scheduler, delays = self._scheduler(now, analysis, stop_after=2)

        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert delays[0] == timedelta(minutes=20).total_seconds()
        assert analysis.calls == [(T0, T0 + W)]

    @pytest.mark.asyncio
    async def test_shutdown_before_first_boundary(self):
        """Test shutdown cancels the pending timer without running."""
        analysis = Recorder()
        scheduler, delays = self._scheduler(T0 + timedelta(minutes=1), analysis, stop_after=1)

        await asyncio.wait_for(scheduler.run_forever(), timeout=5)

        assert analysis.calls == []
        assert len(delays) == 1
