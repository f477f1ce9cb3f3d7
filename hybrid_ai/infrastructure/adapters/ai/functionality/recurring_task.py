# hybrid_ai/infrastructure/adapters/ai/functionality/recurring_task.py

"""Cancellable periodic asyncio task"""

import asyncio
from typing import Awaitable, Callable, Optional
import structlog

logger = structlog.get_logger()


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class RecurringTask:
    """
    Runs ``callback`` every ``interval`` seconds on the running event loop.

    ``restart()`` cancels the running task and starts a fresh one, so a new
    interval takes effect from the moment of the restart. When called from
    inside the callback itself, the restart happens right after the callback
    returns instead of cancelling it midway.
    """

    def __init__(
            self,
            name: str,
            callback: Callable[[], Awaitable[object]],
            interval: float,
            run_immediately: bool = False
    ):
        """
        Args:
            name: Task name for logging
            callback: Coroutine function invoked on every tick
            interval: Seconds between ticks
            run_immediately: Tick once right after start()
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.name = name
        self.interval = interval
        self.run_immediately = run_immediately
        self.restarts = 0
        self.ticks = 0
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._restart_requested = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking (no-op if already running)"""
        if self.running:
            return
        self._spawn(self.run_immediately)
        logger.debug("recurring_task_started", name=self.name, interval_s=self.interval)

    def stop(self) -> None:
        """Cancel the task; safe to call repeatedly"""
        task, self._task = self._task, None
        self._restart_requested = False
        if task is not None and not task.done():
            task.cancel()

    async def stop_and_wait(self) -> None:
        task = self._task
        self.stop()
        if task is not None and task is not _current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass

    def restart(self, interval: Optional[float] = None) -> None:
        """Apply a new interval by replacing the running task"""
        if interval is not None:
            if interval <= 0:
                raise ValueError("interval must be positive")
            self.interval = interval

        if not self.running:
            return

        self.restarts += 1
        if self._task is _current_task():
            self._restart_requested = True
            return

        self._task.cancel()
        self._spawn(False)
        logger.debug("recurring_task_restarted", name=self.name, interval_s=self.interval)

    def _spawn(self, immediate: bool) -> None:
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(immediate), name=self.name)

    async def _run(self, immediate: bool) -> None:
        if not immediate:
            await asyncio.sleep(self.interval)

        while True:
            await self._tick()

            if self._restart_requested:
                self._restart_requested = False
                self._spawn(False)
                logger.debug("recurring_task_restarted", name=self.name, interval_s=self.interval)
                return

            await asyncio.sleep(self.interval)

    async def _tick(self) -> None:
        self.ticks += 1
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("recurring_task_tick_failed", name=self.name, error=str(e), exc_info=True)
