"""Epoch-based admission control for the generation queue."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

EPOCH_SECONDS = 60.0


@dataclass(frozen=True)
class Admit:
    """The caller may dispatch one request now."""


@dataclass(frozen=True)
class WaitFor:
    """The epoch budget is spent; retry after ``seconds``."""

    seconds: float


Decision = Admit | WaitFor


async def sleep_or_stop(seconds: float, stop_event: asyncio.Event) -> bool:
    """Sleep for ``seconds`` unless the stop event fires first.

    Returns:
        True if the stop event was set
    """
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, seconds))
    except asyncio.TimeoutError:
        return False
    return True


class RateLimiter:
    """Counts dispatches per fixed epoch.

    The counter is zeroed by :meth:`reset`, which :meth:`run_ticker` calls on a
    fixed period regardless of traffic. This is an epoch, not a sliding
    window: a burst at the end of one epoch followed by another at the start
    of the next can exceed the nominal rate within any 60 second slice.

    All methods are synchronous and must be called from the event loop
    thread, which is what serialises :meth:`try_admit` against :meth:`reset`.
    """

    def __init__(
        self,
        limit_per_minute: int,
        epoch_seconds: float = EPOCH_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit_per_minute < 1:
            raise ValueError("limit_per_minute must be at least 1")
        self.limit_per_minute = limit_per_minute
        self.epoch_seconds = epoch_seconds
        self._clock = clock
        self.requests_this_epoch = 0
        self.epoch_start = clock()
        self.last_request_at: float | None = None

    @property
    def pacing_delay(self) -> float:
        """Pause after every admitted dispatch, spreading the limit over the minute."""
        return 60.0 / max(1, self.limit_per_minute)

    def try_admit(self) -> Decision:
        now = self._clock()
        if self.requests_this_epoch >= self.limit_per_minute:
            last = self.last_request_at if self.last_request_at is not None else self.epoch_start
            delay = max(0.0, self.epoch_seconds - (now - last))
            logger.debug(f"Rate limit reached ({self.requests_this_epoch}/{self.limit_per_minute}), wait {delay:.1f}s")
            return WaitFor(delay)

        self.requests_this_epoch += 1
        self.last_request_at = now
        return Admit()

    def reset(self) -> None:
        """Start a new epoch."""
        self.requests_this_epoch = 0
        self.epoch_start = self._clock()
        logger.debug("Rate limit counter reset")

    async def run_ticker(self, stop_event: asyncio.Event) -> None:
        """Reset the counter every epoch until the stop event is set."""
        logger.info(
            f"Rate limit ticker started: {self.limit_per_minute} req/{self.epoch_seconds:g}s"
        )
        while not await sleep_or_stop(self.epoch_seconds, stop_event):
            self.reset()
        logger.info("Rate limit ticker stopped")
