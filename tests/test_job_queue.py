"""Tests for the rate-limited dispatch loop."""

import asyncio
from unittest.mock import MagicMock

import pytest

from src.services.job_queue import JobQueue
from src.services.rate_limiter import Admit, RateLimiter


class EpochSimulator:
    """Sleep replacement that moves a fake clock and runs the epoch ticker."""

    def __init__(self, limiter: RateLimiter, clock):
        self.limiter = limiter
        self.clock = clock
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        before = self.clock.now
        self.clock.advance(seconds)
        if int(self.clock.now // 60) > int(before // 60):
            self.limiter.reset()
        await asyncio.sleep(0)


async def yield_only(seconds: float) -> None:
    await asyncio.sleep(0)


async def stop_queue(task: asyncio.Task, stop_event: asyncio.Event) -> None:
    stop_event.set()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_jobs_dispatch_in_fifo_order(make_job):
    dispatched = []
    all_done = asyncio.Event()

    async def execute(job):
        dispatched.append(job.user_id)
        if len(dispatched) == 4:
            all_done.set()

    queue = JobQueue(RateLimiter(100), execute, pacing_delay=0.0, sleep=yield_only)
    for user_id in (1, 2, 3, 4):
        queue.enqueue(make_job(user_id=user_id))

    stop_event = asyncio.Event()
    task = asyncio.create_task(queue.run(stop_event))
    await asyncio.wait_for(all_done.wait(), timeout=1)
    await stop_queue(task, stop_event)

    assert dispatched == [1, 2, 3, 4]
    assert queue.pending_count == 0


@pytest.mark.asyncio
async def test_third_job_waits_for_next_epoch(make_job, clock):
    limiter = RateLimiter(2, clock=clock)
    simulator = EpochSimulator(limiter, clock)
    dispatched = []
    all_done = asyncio.Event()

    async def execute(job):
        dispatched.append((job.user_id, clock.now))
        if len(dispatched) == 3:
            all_done.set()

    queue = JobQueue(limiter, execute, pacing_delay=0.0, sleep=simulator.sleep)
    for user_id in (1, 2, 3):
        queue.enqueue(make_job(user_id=user_id))

    stop_event = asyncio.Event()
    task = asyncio.create_task(queue.run(stop_event))
    await asyncio.wait_for(all_done.wait(), timeout=1)
    await stop_queue(task, stop_event)

    assert dispatched[:2] == [(1, 0.0), (2, 0.0)]
    assert dispatched[2][0] == 3
    assert dispatched[2][1] >= 60
    assert 60.0 in simulator.sleeps


@pytest.mark.asyncio
async def test_slow_jobs_do_not_block_dispatch(make_job):
    release = asyncio.Event()
    late_done = asyncio.Event()

    async def execute(job):
        if job.user_id == 99:
            late_done.set()
            return
        await release.wait()

    queue = JobQueue(RateLimiter(100), execute, pacing_delay=0.0, sleep=yield_only)
    for user_id in range(5):
        queue.enqueue(make_job(user_id=user_id))

    stop_event = asyncio.Event()
    task = asyncio.create_task(queue.run(stop_event))
    await asyncio.sleep(0.01)
    queue.enqueue(make_job(user_id=99))

    await asyncio.wait_for(late_done.wait(), timeout=1)
    assert queue.in_flight_count >= 5
    assert not release.is_set()

    release.set()
    await stop_queue(task, stop_event)
    for _ in range(10):
        if queue.in_flight_count == 0:
            break
        await asyncio.sleep(0)
    assert queue.in_flight_count == 0


@pytest.mark.asyncio
async def test_empty_queue_does_not_consume_admission(make_job, clock):
    limiter = RateLimiter(5, clock=clock)
    done = asyncio.Event()

    async def execute(job):
        done.set()

    queue = JobQueue(limiter, execute, pacing_delay=0.0, sleep=yield_only)
    stop_event = asyncio.Event()
    task = asyncio.create_task(queue.run(stop_event))
    await asyncio.sleep(0.01)

    assert limiter.requests_this_epoch == 0

    queue.enqueue(make_job())
    await asyncio.wait_for(done.wait(), timeout=1)
    await stop_queue(task, stop_event)

    assert limiter.requests_this_epoch == 1


@pytest.mark.asyncio
async def test_stop_drops_pending_jobs(make_job):
    first_done = asyncio.Event()
    executed = []

    async def execute(job):
        executed.append(job.user_id)
        first_done.set()

    # Limit of one: the second job waits out the epoch until stop
    queue = JobQueue(RateLimiter(1), execute, pacing_delay=0.0)
    queue.enqueue(make_job(user_id=1))
    queue.enqueue(make_job(user_id=2))

    stop_event = asyncio.Event()
    task = asyncio.create_task(queue.run(stop_event))
    await asyncio.wait_for(first_done.wait(), timeout=1)
    await stop_queue(task, stop_event)

    assert executed == [1]
    assert queue.pending_count == 1


@pytest.mark.asyncio
async def test_loop_survives_unexpected_error(make_job):
    limiter = MagicMock()
    limiter.limit_per_minute = 5
    limiter.try_admit.side_effect = [RuntimeError("boom"), Admit()]
    sleeps = []
    done = asyncio.Event()

    async def record_sleep(seconds):
        sleeps.append(seconds)
        await asyncio.sleep(0)

    async def execute(job):
        done.set()

    queue = JobQueue(limiter, execute, pacing_delay=0.0, error_backoff=1.0, sleep=record_sleep)
    queue.enqueue(make_job())

    stop_event = asyncio.Event()
    task = asyncio.create_task(queue.run(stop_event))
    await asyncio.wait_for(done.wait(), timeout=1)
    await stop_queue(task, stop_event)

    assert sleeps[0] == 1.0
    assert limiter.try_admit.call_count == 2


@pytest.mark.asyncio
async def test_crashing_job_is_removed_from_in_flight(make_job):
    async def execute(job):
        raise RuntimeError("executor bug")

    queue = JobQueue(RateLimiter(100), execute, pacing_delay=0.0, sleep=yield_only)
    queue.enqueue(make_job())

    stop_event = asyncio.Event()
    task = asyncio.create_task(queue.run(stop_event))
    for _ in range(20):
        await asyncio.sleep(0)
    await stop_queue(task, stop_event)

    assert queue.pending_count == 0
    assert queue.in_flight_count == 0


def test_pacing_defaults_to_limiter():
    queue = JobQueue(RateLimiter(20), MagicMock())

    assert queue.pacing_delay == 3.0
