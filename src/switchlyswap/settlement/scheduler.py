"""Cancellable repeating task with exponential backoff.

The next poll is scheduled only after the previous one finished, so polls for
one session never overlap.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

StepFn = Callable[[], Awaitable[Optional[float]]]
SleepFn = Callable[[float], Awaitable[None]]


class Backoff:
    """Exponential delay: initial, initial*factor, ... capped at maximum."""

    def __init__(self, initial: float = 5.0, maximum: float = 60.0, factor: float = 2.0):
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self.failures = 0

    def next_delay(self) -> float:
        delay = min(self.initial * (self.factor ** self.failures), self.maximum)
        self.failures += 1
        return delay

    def reset(self) -> None:
        self.failures = 0


class PollingTask:
    """Runs ``step`` until it returns None or the task is cancelled.

    ``step`` returns the delay before the next run. If it raises, the next run
    is delayed by the backoff instead; the loop itself never dies from a step
    error.
    """

    def __init__(
        self,
        step: StepFn,
        name: str = "poll",
        backoff: Optional[Backoff] = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.step = step
        self.name = name
        self.backoff = backoff or Backoff()
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=self.name)
        return self._task

    async def _run(self) -> None:
        while not self._cancelled:
            try:
                delay = await self.step()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                delay = self.backoff.next_delay()
                logger.error(f"{self.name}: poll failed, retrying in {delay:.0f}s: {e}")
            else:
                if delay is None:
                    logger.debug(f"{self.name}: finished")
                    return

            await self._sleep(delay)

    def cancel(self) -> bool:
        """Stop polling. Safe to call more than once.

        Returns:
            True if this call stopped a running task; False if it was
            already cancelled or had finished on its own
        """
        if self._cancelled or self.done:
            return False
        self._cancelled = True

        if self._task is not None and not self._task.done():
            self._task.cancel()
        logger.debug(f"{self.name}: cancelled")
        return True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def wait(self) -> None:
        """Wait for the loop to finish without raising on cancellation."""
        if self._task is not None:
            await asyncio.wait({self._task})
