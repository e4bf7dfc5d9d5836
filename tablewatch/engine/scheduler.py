"""
Periodic scheduling for the snapshot poller.

`PollScheduler` owns exactly one asyncio task. Stopping it cancels the task
and waits for it to finish, so no timer is left behind after teardown. The
sleep function is injectable: tests pass a fake that returns immediately (or
blocks on an event) instead of waiting on the wall clock.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Tick = Callable[[], Awaitable[object]]
Sleep = Callable[[float], Awaitable[object]]
ErrorHandler = Callable[[Exception], None]


class PollScheduler:
    """
    Runs a coroutine function at a fixed interval until stopped.

    There is no backoff or jitter: a slow or failed tick only delays the next
    one. A tick that raises is handed to `on_error`; by default the error is
    logged and polling continues, unless `stop_on_error` is set.

    Attributes:
        interval: Seconds to sleep between the end of one tick and the next
        ticks: Number of ticks started so far
        errors: Number of ticks that raised
    """

    def __init__(
        self,
        interval: float,
        sleep: Sleep = asyncio.sleep,
        on_error: Optional[ErrorHandler] = None,
        stop_on_error: bool = False,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.interval = interval
        self.stop_on_error = stop_on_error
        self.ticks = 0
        self.errors = 0
        self._sleep = sleep
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, tick: Tick) -> None:
        """
        Start calling `tick` periodically. Must be called from a running loop.

        Raises:
            RuntimeError: If the scheduler is already running
        """
        if self.running:
            raise RuntimeError("Scheduler already running")
        self._task = asyncio.get_running_loop().create_task(self._run(tick))

    async def stop(self) -> None:
        """Cancel the periodic task and wait until it has finished."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            # Stopped from inside a tick; the cancellation lands at the next await
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self, tick: Tick) -> None:
        while True:
            self.ticks += 1
            try:
                await tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.errors += 1
                self._handle_error(e)
                if self.stop_on_error:
                    logger.info("Stopping poll loop after error")
                    return
            await self._sleep(self.interval)

    def _handle_error(self, error: Exception) -> None:
        if self._on_error is None:
            logger.warning("Poll tick failed: %s", error)
            return
        try:
            self._on_error(error)
        except Exception as e:
            logger.error(f"Error in poll error handler: {e}", exc_info=True)
