"""
Refresh Scheduler

Two asyncio tasks drive the engine: a one-off startup task that runs
initialize(), and a timer that starts refresh_cycle() every interval. A tick
that fires while a cycle is still running is dropped.
"""

import asyncio
import logging
from typing import Optional

from loopscape.services.background_engine import BackgroundEngine

logger = logging.getLogger(__name__)

REFRESH_INTERVAL_MS = 20000


class RefreshScheduler:

    def __init__(self, engine: BackgroundEngine, interval_ms: int = REFRESH_INTERVAL_MS):
        self.engine = engine
        self.interval_ms = interval_ms
        self.ticks = 0
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self):
        if self.running:
            return

        # A previous stop() leaves the poller cancelled
        self.engine.poller.reset()
        logger.info(f"Starting background refresh every {self.interval_ms} ms")
        self._spawn(self.engine.initialize())
        self._timer_task = asyncio.create_task(self._timer_loop())

    def tick(self) -> bool:
        """Start a refresh cycle unless one is already running."""
        self.ticks += 1
        if self.engine.busy:
            self.engine.record_skipped_tick()
            return False
        self._spawn(self.engine.refresh_cycle())
        return True

    async def stop(self):
        """Cancel the timer, any in-flight cycle, and every poll wait."""
        self.engine.poller.cancel()

        tasks = list(self._cycle_tasks)
        if self._timer_task:
            tasks.append(self._timer_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._timer_task = None
        self._cycle_tasks.clear()
        logger.info("Background refresh stopped")

    async def _timer_loop(self):
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            self.tick()

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)
