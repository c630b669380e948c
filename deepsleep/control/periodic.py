"""PeriodicTask — runs a callback on a fixed interval inside the event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class PeriodicTask:
    """Calls ``callback()`` every ``interval`` seconds until stopped.

    The callback runs on the event loop, so everything it touches is mutated
    from a single timeline. A callback that raises is logged and the loop
    carries on. ``start`` is idempotent; ``stop`` cancels the loop.

    Usage::

        ticker = PeriodicTask(1.0, timer.tick, name="sleep-timer")
        ticker.start()
        ...
        await ticker.stop()
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], object],
        *,
        name: str = "periodic",
        sleep: Sleep = asyncio.sleep,
    ):
        self.interval = interval
        self.callback = callback
        self.name = name
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)

    def cancel(self) -> None:
        """Request cancellation without waiting for the task to unwind."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                self.callback()
            except Exception:
                logger.exception("Periodic task %s: callback failed", self.name)
            await self._sleep(self.interval)
