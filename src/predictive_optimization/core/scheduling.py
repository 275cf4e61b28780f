"""
Periodic background tasks.

Each loop of the engine (collection, detection, prediction, optimization and
cost analysis) runs as a ``PeriodicTask``: an asyncio task that calls its
coroutine on a fixed interval and never overlaps with itself.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class PeriodicTask:
    """
    Cooperative timer-driven task with an in-flight guard.

    The first run happens one ``interval`` after ``start()`` unless
    ``run_immediately`` is set.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[Any]],
        on_stop: Optional[Callable[[], Awaitable[Any]]] = None,
        run_immediately: bool = False,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.name = name
        self.interval = interval
        self.func = func
        self.on_stop = on_stop
        self.run_immediately = run_immediately

        self._task: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Future] = None
        self._running = False
        self.run_count = 0
        self.skipped_count = 0
        self.error_count = 0

    @property
    def is_started(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def in_flight(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the background loop."""
        if self.is_started:
            logger.warning("Periodic task already running", task=self.name)
            return

        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info("Periodic task started", task=self.name, interval=self.interval)

    async def stop(self) -> None:
        """Cancel the loop, wait for it to finish and flush state."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._current is not None and not self._current.done():
            try:
                await self._current
            except Exception as e:
                logger.error("In-flight run failed during stop", task=self.name, error=str(e))
        self._current = None

        if self.on_stop is not None:
            await self.on_stop()

        logger.info("Periodic task stopped", task=self.name, runs=self.run_count)

    async def run_once(self) -> Any:
        """Run the task once unless a previous run is still in flight."""
        if self._running:
            self.skipped_count += 1
            logger.warning("Previous run still in flight, skipping", task=self.name)
            return None

        self._running = True
        try:
            return await self.func()
        finally:
            self._running = False
            self.run_count += 1

    async def _loop(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval)

        while True:
            try:
                # shielded so cancellation never interrupts a store write mid-run
                self._current = asyncio.ensure_future(self.run_once())
                await asyncio.shield(self._current)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.error_count += 1
                logger.error("Periodic task failed", task=self.name, error=str(e))

            await asyncio.sleep(self.interval)


__all__ = ["PeriodicTask"]
