"""
Unit tests for periodic background tasks.
"""

import asyncio

import pytest

from predictive_optimization.core.scheduling import PeriodicTask


class TestPeriodicTask:
    """Test the periodic task loop."""

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, lambda: None)

    @pytest.mark.asyncio
    async def test_run_once_returns_result(self):
        async def work():
            return "done"

        task = PeriodicTask("work", 10, work)

        assert await task.run_once() == "done"
        assert task.run_count == 1

    @pytest.mark.asyncio
    async def test_overlapping_run_is_skipped(self):
        """Test that a second run while one is in flight is skipped."""
        release = asyncio.Event()
        calls = []

        async def slow():
            calls.append(1)
            await release.wait()
            return "slow"

        task = PeriodicTask("slow", 10, slow)
        first = asyncio.create_task(task.run_once())
        await asyncio.sleep(0)

        assert task.in_flight
        assert await task.run_once() is None
        assert task.skipped_count == 1

        release.set()
        assert await first == "slow"
        assert len(calls) == 1
        assert not task.in_flight

    @pytest.mark.asyncio
    async def test_loop_runs_and_stop_flushes(self):
        """Test that the loop runs immediately and on_stop runs at stop."""
        ran = asyncio.Event()
        flushed = []

        async def work():
            ran.set()

        async def flush():
            flushed.append(True)

        task = PeriodicTask("loop", 60, work, on_stop=flush, run_immediately=True)
        task.start()
        await asyncio.wait_for(ran.wait(), timeout=1)

        assert task.is_started
        await task.stop()

        assert not task.is_started
        assert flushed == [True]

    @pytest.mark.asyncio
    async def test_first_run_waits_one_interval(self):
        """Test that the default loop sleeps before its first run."""
        calls = []

        async def work():
            calls.append(1)

        task = PeriodicTask("patient", 60, work)
        task.start()
        await asyncio.sleep(0.05)

        assert task.is_started
        assert calls == []
        await task.stop()
        assert task.run_count == 0

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self):
        """Test that a failing run is counted and the loop keeps going."""
        attempts = []

        async def flaky():
            attempts.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("flaky", 0.01, flaky, run_immediately=True)
        task.start()
        await asyncio.sleep(0.1)
        await task.stop()

        assert len(attempts) >= 2
        assert task.error_count == len(attempts)

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self):
        async def work():
            return None

        task = PeriodicTask("twice", 60, work)
        task.start()
        first = task._task
        task.start()

        assert task._task is first
        await task.stop()
