"""Cancellable once-per-interval countdown.

Runs as an ``asyncio.Task``; every tick decrements ``remaining`` and awaits
``on_tick``; reaching zero awaits ``on_complete``. ``cancel()`` stops it
without calling ``on_complete`` so no timer outlives its owner.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class CountdownTimer:
    """Counts ``seconds`` ticks down to zero.

    Args:
        seconds: Number of ticks.
        on_tick: Async callback receiving the remaining count after each tick.
        on_complete: Async callback awaited once the count reaches zero.
        interval: Seconds between ticks.
        sleep: Sleep coroutine; tests substitute a manually driven one.
    """

    def __init__(
        self,
        seconds: int,
        on_tick: Callable[[int], Awaitable[None]],
        on_complete: Callable[[], Awaitable[None]],
        interval: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.remaining = seconds
        self._on_tick = on_tick
        self._on_complete = on_complete
        self._interval = interval
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        if self.running:
            self._task.cancel()
            logger.debug("Countdown cancelled with %s ticks left", self.remaining)

    async def wait(self) -> None:
        """Wait for the countdown to finish or be cancelled."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        while self.remaining > 0:
            await self._sleep(self._interval)
            self.remaining -= 1
            await self._on_tick(self.remaining)
        await self._on_complete()
