"""Single-flight periodic scheduler for the monitoring cycle."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Set

LOGGER = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class CycleScheduler:
    """Fire ``cycle`` every ``interval_seconds`` while never running two at once.

    Ticks are started on the wall-clock interval regardless of how long the
    previous cycle took. A tick that lands while a cycle is still RUNNING is
    skipped, not queued. The first tick fires as soon as :meth:`run_forever`
    starts.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[object]],
        interval_seconds: float = 300.0,
        name: str = "price_monitor",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._cycle = cycle
        self.interval_seconds = interval_seconds
        self.name = name
        self._state = SchedulerState.IDLE
        self._stop: Optional[asyncio.Event] = None
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0
        self.skipped = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    async def tick(self) -> bool:
        """Run one cycle if idle. Returns ``False`` when the tick was skipped."""

        if self._state is SchedulerState.RUNNING:
            self.skipped += 1
            LOGGER.warning("%s: previous cycle still running; skipping tick", self.name)
            return False
        self._state = SchedulerState.RUNNING
        try:
            await self._cycle()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            self.failed += 1
            LOGGER.exception("%s: cycle failed", self.name)
        else:
            self.completed += 1
        finally:
            self._state = SchedulerState.IDLE
        return True

    def _spawn(self) -> None:
        task = asyncio.create_task(self.tick(), name=f"{self.name}-tick")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run_forever(self) -> None:
        self._stop = asyncio.Event()
        LOGGER.info("%s: scheduler started, interval %.0fs", self.name, self.interval_seconds)
        try:
            while not self._stop.is_set():
                self._spawn()
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            LOGGER.info(
                "%s: scheduler stopped: %d completed, %d failed, %d skipped",
                self.name,
                self.completed,
                self.failed,
                self.skipped,
            )

    def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()


__all__ = ["SchedulerState", "CycleScheduler"]
