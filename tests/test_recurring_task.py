"""Tests for the recurring task"""
import asyncio

import pytest

from hybrid_ai.infrastructure.adapters.ai.functionality.recurring_task import RecurringTask


async def test_ticks_until_stopped():
    ticks = []

    async def callback():
        ticks.append(1)

    task = RecurringTask("ticker", callback, interval=0.01)
    task.start()
    await asyncio.sleep(0.08)
    await task.stop_and_wait()
    count = len(ticks)
    await asyncio.sleep(0.03)

    assert count >= 2
    assert len(ticks) == count
    assert not task.running


async def test_run_immediately():
    ticks = []

    async def callback():
        ticks.append(1)

    task = RecurringTask("eager", callback, interval=10, run_immediately=True)
    task.start()
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert ticks == [1]
    task.stop()


async def test_restart_from_outside_applies_new_interval():
    async def callback():
        pass

    task = RecurringTask("slow", callback, interval=10)
    task.start()
    first = task._task
    task.restart(0.01)
    await asyncio.sleep(0.05)

    assert task.interval == 0.01
    assert task.restarts == 1
    assert task._task is not first
    assert task.ticks >= 2
    await task.stop_and_wait()


async def test_restart_from_inside_callback():
    task = None

    async def callback():
        if task.ticks == 1:
            task.restart(0.01)

    task = RecurringTask("self-restarting", callback, interval=0.01)
    task.start()
    await asyncio.sleep(0.06)

    assert task.restarts == 1
    assert task.running
    assert task.ticks >= 3
    await task.stop_and_wait()


async def test_restart_when_stopped_only_sets_interval():
    async def callback():
        pass

    task = RecurringTask("idle", callback, interval=1)
    task.restart(2)

    assert task.interval == 2
    assert task.restarts == 0
    assert not task.running


async def test_failing_callback_keeps_running():
    ticks = []

    async def callback():
        ticks.append(1)
        raise RuntimeError("boom")

    task = RecurringTask("flaky", callback, interval=0.01)
    task.start()
    await asyncio.sleep(0.05)

    assert len(ticks) >= 2
    assert task.running
    await task.stop_and_wait()


def test_rejects_non_positive_interval():
    async def callback():
        pass

    with pytest.raises(ValueError):
        RecurringTask("bad", callback, interval=0)
