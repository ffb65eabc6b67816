import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.scheduler import CycleScheduler, SchedulerState


def test_tick_while_running_is_skipped() -> None:
    async def scenario():
        release = asyncio.Event()
        runs = []

        async def cycle() -> None:
            runs.append("start")
            await release.wait()

        scheduler = CycleScheduler(cycle, interval_seconds=60)
        first = asyncio.create_task(scheduler.tick())
        await asyncio.sleep(0)
        assert scheduler.state is SchedulerState.RUNNING

        assert await scheduler.tick() is False
        release.set()
        assert await first is True
        assert scheduler.state is SchedulerState.IDLE
        return scheduler, runs

    scheduler, runs = asyncio.run(scenario())
    assert runs == ["start"]
    assert scheduler.skipped == 1
    assert scheduler.completed == 1


def test_failing_cycle_returns_to_idle() -> None:
    async def cycle() -> None:
        raise RuntimeError("boom")

    scheduler = CycleScheduler(cycle, interval_seconds=60)
    assert asyncio.run(scheduler.tick()) is True
    assert scheduler.state is SchedulerState.IDLE
    assert scheduler.failed == 1
    assert scheduler.completed == 0


def test_run_forever_fires_immediately_and_on_interval() -> None:
    loop_times = []

    async def scenario():
        loop = asyncio.get_running_loop()
        started = loop.time()
        scheduler = None

        async def cycle() -> None:
            loop_times.append(loop.time() - started)
            if len(loop_times) == 3:
                scheduler.stop()

        scheduler = CycleScheduler(cycle, interval_seconds=0.05)
        await asyncio.wait_for(scheduler.run_forever(), timeout=5)
        return scheduler

    scheduler = asyncio.run(scenario())
    assert len(loop_times) == 3
    assert loop_times[0] < 0.04
    assert loop_times[1] >= 0.04
    assert scheduler.skipped == 0


def test_overrunning_cycle_skips_ticks_instead_of_overlapping() -> None:
    active = []
    overlaps = []

    async def scenario():
        scheduler = None
        runs = 0

        async def cycle() -> None:
            nonlocal runs
            runs += 1
            if active:
                overlaps.append(runs)
            active.append(runs)
            await asyncio.sleep(0.12)
            active.pop()
            if runs == 2:
                scheduler.stop()

        scheduler = CycleScheduler(cycle, interval_seconds=0.05)
        await asyncio.wait_for(scheduler.run_forever(), timeout=5)
        return scheduler

    scheduler = asyncio.run(scenario())
    assert not overlaps
    assert scheduler.skipped >= 1
    assert scheduler.completed == 2


def test_interval_must_be_positive() -> None:
    async def cycle() -> None:
        return None

    with pytest.raises(ValueError):
        CycleScheduler(cycle, interval_seconds=0)
