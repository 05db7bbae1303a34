# tests/core/test_scheduler.py

import asyncio
from unittest.mock import MagicMock

import pytest

from kubefeed.core.scheduler import Scheduler


@pytest.mark.asyncio
async def test_add_job_schedules_correctly():
    """
    Tests that add_job adds a running task to the asyncio loop.
    """
    scheduler = Scheduler()
    mock_job = MagicMock()

    async def async_job():
        mock_job()

    scheduler.add_job(async_job, interval_seconds=3600)

    assert len(scheduler.tasks) == 1
    task = scheduler.tasks[0]
    assert not task.done()

    await asyncio.sleep(0)
    mock_job.assert_called_once()

    await scheduler.stop()
    assert task.cancelled()
    assert scheduler.tasks == []


@pytest.mark.asyncio
async def test_add_job_from_string_schedules_correctly():
    scheduler = Scheduler()

    async def async_job():
        pass

    scheduler.add_job_from_string(async_job, "10m")

    assert len(scheduler.tasks) == 1
    await scheduler.stop()


def test_add_job_from_string_rejects_invalid_interval():
    scheduler = Scheduler()

    async def async_job():
        pass

    with pytest.raises(ValueError):
        scheduler.add_job_from_string(async_job, "every minute")


@pytest.mark.asyncio
async def test_job_errors_do_not_stop_the_schedule():
    scheduler = Scheduler()
    calls = []

    async def flaky_job():
        calls.append(1)
        raise RuntimeError("pass failed")

    scheduler.add_job(flaky_job, interval_seconds=1)
    await asyncio.sleep(0)

    assert len(calls) == 1
    assert not scheduler.tasks[0].done()
    await scheduler.stop()
