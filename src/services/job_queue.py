"""FIFO job queue with a single rate-limited dispatch loop."""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable

from src.services.jobs import Job
from src.services.rate_limiter import RateLimiter, WaitFor, sleep_or_stop

logger = logging.getLogger(__name__)

# Floor for rate-limit waits so a zero-length wait can't spin the loop
MIN_WAIT_SECONDS = 0.05


class JobQueue:
    """Holds pending jobs and feeds them to the executor at the admitted rate.

    ``enqueue`` never blocks and never rejects. ``run`` is the only consumer:
    it takes jobs in FIFO order, launches each one as its own task and moves
    on without waiting for it, so generation latency never slows the pacing
    cadence.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        execute: Callable[[Job], Awaitable[None]],
        *,
        pacing_delay: float | None = None,
        error_backoff: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """Initialize queue.

        Args:
            rate_limiter: Admission control consulted before every dequeue
            execute: Coroutine function run once per dispatched job
            pacing_delay: Pause after each dispatch. Defaults to the limiter's
                ``60 / limit`` seconds.
            error_backoff: Pause after an unexpected fault in the loop
            sleep: Replacement for the stop-aware sleep (used by tests)
        """
        self.rate_limiter = rate_limiter
        self._execute = execute
        self._pacing_delay = pacing_delay
        self.error_backoff = error_backoff
        self._sleep = sleep
        self._pending: deque[Job] = deque()
        self._not_empty = asyncio.Event()
        self._in_flight: set[asyncio.Task] = set()

    @property
    def pacing_delay(self) -> float:
        if self._pacing_delay is not None:
            return self._pacing_delay
        return self.rate_limiter.pacing_delay

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def enqueue(self, job: Job) -> None:
        self._pending.append(job)
        self._not_empty.set()
        logger.info(f"[JOB {job.id}] Enqueued for user {job.user_id}. Queue size: {len(self._pending)}")

    async def run(self, stop_event: asyncio.Event) -> None:
        """Dispatch jobs until the stop event is set.

        Jobs still queued at that point are dropped; tasks already launched
        are left to finish on their own.
        """
        logger.info(
            f"Starting queue processing: {self.rate_limiter.limit_per_minute} req/min, "
            f"pacing {self.pacing_delay:.2f}s"
        )
        while not stop_event.is_set():
            try:
                await self._dispatch_once(stop_event)
            except Exception as e:
                logger.error(f"Error in queue processing: {e}", exc_info=True)
                await self._pause(self.error_backoff, stop_event)

        if self._pending:
            logger.warning(f"Queue processing stopped, dropping {len(self._pending)} queued job(s)")
        else:
            logger.info("Queue processing stopped")

    async def _dispatch_once(self, stop_event: asyncio.Event) -> None:
        if not self._pending:
            await self._wait_for_job(stop_event)
            return

        decision = self.rate_limiter.try_admit()
        if isinstance(decision, WaitFor):
            logger.debug(f"Rate limit reached. Waiting {decision.seconds:.1f}s...")
            await self._pause(max(decision.seconds, MIN_WAIT_SECONDS), stop_event)
            return

        self._launch(self._pending.popleft())
        await self._pause(self.pacing_delay, stop_event)

    async def _wait_for_job(self, stop_event: asyncio.Event) -> None:
        self._not_empty.clear()
        job_ready = asyncio.create_task(self._not_empty.wait())
        stopped = asyncio.create_task(stop_event.wait())
        try:
            await asyncio.wait({job_ready, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            job_ready.cancel()
            stopped.cancel()

    def _launch(self, job: Job) -> None:
        logger.info(f"[JOB {job.id}] Dispatching. Remaining in queue: {len(self._pending)}")
        task = asyncio.create_task(self._execute(job), name=f"job-{job.id}")
        self._in_flight.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            logger.warning(f"Task {task.get_name()} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Task {task.get_name()} crashed: {error}", exc_info=error)

    async def _pause(self, seconds: float, stop_event: asyncio.Event) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
        else:
            await sleep_or_stop(seconds, stop_event)
