from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledTask:
    """
    Runs an async job immediately and then every `interval` seconds until
    stopped. Single-flight: a tick that fires while the previous run is still
    going is skipped, never overlapped.
    """

    def __init__(self, job: Callable[[], Awaitable[object]], interval: float, name: str = "scheduled task") -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.job = job
        self.interval = interval
        self.name = name
        self.runs = 0
        self.skipped = 0
        self.failures = 0
        self._ticker: Optional[asyncio.Task[None]] = None
        self._current: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Scheduling %s every %ss", self.name, self.interval)
        self._ticker = asyncio.create_task(self._tick_forever())

    async def wait(self) -> None:
        """Block until the schedule ends (it only ends when stopped or cancelled)."""
        if self._ticker is not None:
            await asyncio.gather(self._ticker, return_exceptions=True)

    async def stop(self) -> None:
        """Cancel the schedule and any run in progress."""
        for task in (self._ticker, self._current):
            if task is not None and not task.done():
                task.cancel()
        for task in (self._ticker, self._current):
            if task is not None:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._ticker = self._current = None
        logger.info("Stopped %s", self.name)

    async def _tick_forever(self) -> None:
        while True:
            if self._current is not None and not self._current.done():
                self.skipped += 1
                logger.info("Skipping %s tick: previous run still in progress", self.name)
            else:
                self._current = asyncio.create_task(self._run_once())
            await asyncio.sleep(self.interval)

    async def _run_once(self) -> None:
        self.runs += 1
        try:
            await self.job()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.failures += 1
            logger.exception("Error in %s: %r", self.name, exc)
