"""Tests for fire-and-forget background tasks."""

import asyncio
import logging

import pytest

from nodetree.tasks import BackgroundTasks


async def test_tasks_are_tracked_until_done() -> None:
    tasks = BackgroundTasks()
    done = asyncio.Event()

    async def work() -> None:
        await done.wait()

    tasks.spawn(work())
    assert len(tasks) == 1

    done.set()
    await tasks.join()
    assert len(tasks) == 0


async def test_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    tasks = BackgroundTasks()

    async def boom() -> None:
        raise RuntimeError("refresh failed")

    with caplog.at_level(logging.DEBUG, logger="nodetree.tasks"):
        tasks.spawn(boom(), name="refresh:cache_cv")
        await tasks.join()

    assert len(tasks) == 0
    assert "refresh:cache_cv" in caplog.text


async def test_cancel() -> None:
    tasks = BackgroundTasks()
    task = tasks.spawn(asyncio.sleep(10))

    await tasks.cancel()

    assert task.cancelled()
    assert len(tasks) == 0
