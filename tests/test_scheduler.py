"""
Tests for periodic and catch-up sync passes.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from tradesync.core import GroupResult, PassResult, run_once, run_periodic, run_until_caught_up


def make_job(side_effect=None):
    job = Mock()
    job.tag.return_value = "trades_table"
    job.period.return_value = 600.0
    if side_effect is not None:
        job.run.side_effect = side_effect
    else:
        job.run.return_value = PassResult(started_at=datetime.now(timezone.utc))
    return job


class TestScheduler:
    """Tests for run_once and run_periodic."""

    @pytest.mark.asyncio
    async def test_run_once(self):
        job = make_job()

        result = await run_once(job)

        assert isinstance(result, PassResult)
        job.run.assert_called_once()

    @pytest.mark.asyncio
    async def test_shutdown_before_start(self):
        """Test nothing runs when shutdown is already requested."""
        job = make_job()
        shutdown_event = asyncio.Event()
        shutdown_event.set()

        passes = await run_periodic(job, shutdown_event, interval=0.01)

        assert passes == 0
        job.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_runs_until_shutdown(self):
        """Test passes repeat on the interval and stop on shutdown."""
        job = make_job()
        shutdown_event = asyncio.Event()

        task = asyncio.create_task(run_periodic(job, shutdown_event, interval=0.01))
        await asyncio.sleep(0.1)
        shutdown_event.set()
        passes = await asyncio.wait_for(task, timeout=5)

        assert passes >= 2
        assert job.run.call_count == passes

    @pytest.mark.asyncio
    async def test_pass_error_does_not_stop_loop(self):
        """Test an exception in one pass is logged and the loop continues."""
        result = PassResult(started_at=datetime.now(timezone.utc))
        job = make_job(side_effect=[RuntimeError("boom")] + [result] * 100)
        shutdown_event = asyncio.Event()

        task = asyncio.create_task(run_periodic(job, shutdown_event, interval=0.01))
        await asyncio.sleep(0.1)
        shutdown_event.set()
        await asyncio.wait_for(task, timeout=5)

        assert job.run.call_count >= 2

    @pytest.mark.asyncio
    async def test_default_interval_from_job(self):
        """Test the job's period is used when no interval is given."""
        job = make_job()
        shutdown_event = asyncio.Event()

        task = asyncio.create_task(run_periodic(job, shutdown_event))
        await asyncio.sleep(0.05)
        shutdown_event.set()
        passes = await asyncio.wait_for(task, timeout=5)

        assert passes == 1
        job.period.assert_called_once()


def pass_result(fetched=0, stored=0, error=None, skipped=False):
    return PassResult(
        started_at=datetime.now(timezone.utc),
        skipped=skipped,
        groups=[] if skipped else [
            GroupResult(name="main", fetched=fetched, stored=stored, error=error)
        ],
    )


class TestRunUntilCaughtUp:
    """Tests for back to back catch-up passes."""

    def test_stops_on_empty_fetch(self):
        job = make_job([pass_result(100, 100), pass_result(40, 40), pass_result(0, 0)])

        total = run_until_caught_up(job, max_passes=10)

        assert total == 140
        assert job.run.call_count == 3

    def test_continues_past_already_stored_page(self):
        """Test a page of known trades does not end the catch-up."""
        job = make_job([pass_result(100, 0), pass_result(60, 60), pass_result(0, 0)])

        total = run_until_caught_up(job, max_passes=10)

        assert total == 60
        assert job.run.call_count == 3

    def test_stops_on_skipped_pass(self):
        job = make_job([pass_result(100, 100), pass_result(skipped=True)])
        progress = Mock()

        total = run_until_caught_up(job, max_passes=10, progress=progress)

        assert total == 100
        assert job.run.call_count == 2
        progress.assert_called_once()

    def test_stops_on_failed_group(self):
        """Test a failing group ends the run after counting what was stored."""
        job = make_job([pass_result(30, 30, error="boom"), pass_result(100, 100)])

        total = run_until_caught_up(job, max_passes=10)

        assert total == 30
        assert job.run.call_count == 1

    def test_respects_max_passes(self):
        job = make_job()
        job.run.return_value = pass_result(100, 100)

        total = run_until_caught_up(job, max_passes=3)

        assert total == 300
        assert job.run.call_count == 3

    def test_progress_receives_pass_number(self):
        second = pass_result(0, 0)
        job = make_job([pass_result(5, 5), second])
        progress = Mock()

        run_until_caught_up(job, max_passes=10, progress=progress)

        assert progress.call_count == 2
        progress.assert_called_with(2, second)
