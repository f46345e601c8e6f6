"""PollScheduler single-slot and timeout behaviour."""

import asyncio

import pytest

from logic.scheduler import CycleAlreadyRunning, PollScheduler, SchedulerState


class TestTick:

    @pytest.mark.asyncio
    async def test_runs_cycle(self):
        calls = []

        async def cycle():
            calls.append(1)
            return "ok"

        scheduler = PollScheduler(cycle, interval=300)

        assert await scheduler.tick() is True
        assert calls == [1]
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self):
        release = asyncio.Event()
        started = asyncio.Event()
        calls = []

        async def cycle():
            calls.append(1)
            started.set()
            await release.wait()

        scheduler = PollScheduler(cycle, interval=300)
        first = asyncio.create_task(scheduler.tick())
        await started.wait()

        assert scheduler.state == SchedulerState.RUNNING
        assert await scheduler.tick() is False
        with pytest.raises(CycleAlreadyRunning):
            await scheduler.run_once()

        release.set()
        assert await first is True
        assert calls == [1]
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_timeout_frees_the_slot(self):
        async def stuck():
            await asyncio.sleep(10)

        scheduler = PollScheduler(stuck, interval=300, cycle_timeout=0.05)

        assert await scheduler.tick() is False
        assert scheduler.state == SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_cycle_exception_is_contained(self):
        async def broken():
            raise RuntimeError("boom")

        scheduler = PollScheduler(broken, interval=300)

        assert await scheduler.tick() is False

    @pytest.mark.asyncio
    async def test_run_once_returns_result(self):
        async def cycle():
            return 42

        assert await PollScheduler(cycle, interval=300).run_once() == 42


class TestRunForever:

    @pytest.mark.asyncio
    async def test_fires_immediately(self):
        calls = []

        async def cycle():
            calls.append(1)

        scheduler = PollScheduler(cycle, interval=3600)
        await asyncio.wait_for(scheduler.run_forever(max_ticks=1), timeout=1)

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_fires_on_interval(self):
        calls = []

        async def cycle():
            calls.append(1)

        scheduler = PollScheduler(cycle, interval=0.01)
        await asyncio.wait_for(scheduler.run_forever(max_ticks=3), timeout=1)

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_slow_cycle_does_not_overlap(self):
        running = 0
        max_running = 0
        calls = []

        async def slow():
            nonlocal running, max_running
            running += 1
            max_running = max(max_running, running)
            calls.append(1)
            await asyncio.sleep(0.2)
            running -= 1

        scheduler = PollScheduler(slow, interval=0.01)
        await asyncio.wait_for(scheduler.run_forever(max_ticks=3), timeout=1)

        assert max_running == 1
        assert len(calls) < 3

    @pytest.mark.asyncio
    async def test_cancel_waits_for_in_flight_cycle(self):
        started = asyncio.Event()
        cancelled = []

        async def cycle():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(1)
                raise

        scheduler = PollScheduler(cycle, interval=3600)
        poller = asyncio.create_task(scheduler.run_forever())
        await started.wait()

        poller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await poller

        assert cancelled == [1]
        assert scheduler.state == SchedulerState.IDLE
