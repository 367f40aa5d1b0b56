"""Tests for PollScheduler with a controllable sleep."""

import asyncio
import logging

import pytest

from marketing_agents.core.scheduler import PollScheduler


class StepSleep:
    """Sleep replacement that yields control and stops after ``limit`` calls."""

    def __init__(self, limit):
        self.limit = limit
        self.delays = []
        self.exhausted = asyncio.Event()

    async def __call__(self, delay):
        self.delays.append(delay)
        if len(self.delays) > self.limit:
            self.exhausted.set()
            await asyncio.Event().wait()
        await asyncio.sleep(0)


class TestPollScheduler:
    @pytest.mark.asyncio
    async def test_runs_cycles_at_interval(self):
        calls = []

        async def callback():
            calls.append(1)

        sleep = StepSleep(limit=3)
        scheduler = PollScheduler(15, callback, sleep=sleep)

        scheduler.start()
        await asyncio.wait_for(sleep.exhausted.wait(), timeout=1)
        await scheduler.stop()

        assert len(calls) == 3
        assert scheduler.cycles == 3
        assert set(sleep.delays) == {15}

    @pytest.mark.asyncio
    async def test_error_is_logged_and_loop_continues(self, caplog):
        calls = []

        async def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("board unreachable")

        sleep = StepSleep(limit=2)
        scheduler = PollScheduler(1, callback, sleep=sleep)

        with caplog.at_level(logging.ERROR, logger="marketing_agents.core.scheduler"):
            scheduler.start()
            await asyncio.wait_for(sleep.exhausted.wait(), timeout=1)
            await scheduler.stop()

        assert len(calls) == 2
        assert "board unreachable" in caplog.text

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        async def callback():
            pass

        scheduler = PollScheduler(1, callback, sleep=StepSleep(limit=0))

        scheduler.start()
        first = scheduler._task
        scheduler.start()

        assert scheduler._task is first
        assert scheduler.running
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        async def callback():
            pass

        scheduler = PollScheduler(1, callback, sleep=StepSleep(limit=0))

        await scheduler.stop()
        scheduler.start()
        await scheduler.stop()
        await scheduler.stop()

        assert not scheduler.running
