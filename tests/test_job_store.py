"""Tests for Redis job persistence."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config import RateLimitConfig
from src.services.job_store import RATE_LIMIT_SETTINGS_KEY, USER_JOBS_HISTORY, JobStore
from src.services.jobs import JobStatus


@pytest.fixture
def pipe():
    mock = MagicMock()
    mock.execute = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def redis_client(pipe):
    mock = MagicMock()
    pipeline_cm = MagicMock()
    pipeline_cm.__aenter__ = AsyncMock(return_value=pipe)
    pipeline_cm.__aexit__ = AsyncMock(return_value=False)
    mock.pipeline.return_value = pipeline_cm
    mock.hgetall = AsyncMock(return_value={})
    mock.lrange = AsyncMock(return_value=[])
    mock.mget = AsyncMock(return_value=[None, None, None, None])
    return mock


@pytest.fixture
def store(redis_client):
    return JobStore(redis_client)


@pytest.fixture
def default_limits():
    return RateLimitConfig(requests_per_minute=20, max_concurrent_requests=5)


class TestSaveJob:
    @pytest.mark.asyncio
    async def test_queued_job_is_indexed_for_user(self, store, redis_client, pipe, make_job):
        job = make_job(user_id=42)

        await store.save_job(job)

        redis_client.pipeline.assert_called_once_with(transaction=True)
        pipe.hset.assert_called_once_with(f"job:{job.id}", mapping=job.to_mapping())
        pipe.incr.assert_called_once_with("stats:jobs:queued")
        pipe.lpush.assert_called_once_with("user_jobs:42", job.id)
        pipe.ltrim.assert_called_once_with("user_jobs:42", 0, USER_JOBS_HISTORY - 1)
        pipe.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_later_transitions_only_update_record(self, store, pipe, make_job):
        job = make_job().processing().completed("/tmp/out.png")

        await store.save_job(job)

        pipe.incr.assert_called_once_with("stats:jobs:completed")
        pipe.lpush.assert_not_called()


class TestReads:
    @pytest.mark.asyncio
    async def test_get_job_rebuilds_record(self, store, redis_client, make_job):
        job = make_job(images=("a", "b"), brief="office").processing().failed("ValueError: boom")
        redis_client.hgetall.return_value = job.to_mapping()

        loaded = await store.get_job(job.id)

        assert loaded == job
        redis_client.hgetall.assert_awaited_once_with(f"job:{job.id}")

    @pytest.mark.asyncio
    async def test_get_missing_job(self, store):
        assert await store.get_job("missing") is None

    @pytest.mark.asyncio
    async def test_get_user_jobs_skips_expired_records(self, store, redis_client, make_job):
        job = make_job(user_id=3)
        redis_client.lrange.return_value = [job.id, "expired"]
        redis_client.hgetall.side_effect = [job.to_mapping(), {}]

        jobs = await store.get_user_jobs(3, limit=5)

        assert jobs == [job]
        redis_client.lrange.assert_awaited_once_with("user_jobs:3", 0, 4)

    @pytest.mark.asyncio
    async def test_get_stats(self, store, redis_client):
        redis_client.mget.return_value = ["4", "3", None, "1"]

        stats = await store.get_stats()

        assert stats == {"queued": 4, "processing": 3, "completed": 0, "failed": 1}
        keys = redis_client.mget.await_args.args[0]
        assert keys == [f"stats:jobs:{status.value}" for status in JobStatus]


class TestRateLimitSettings:
    @pytest.mark.asyncio
    async def test_missing_settings_use_defaults(self, store, redis_client, default_limits):
        settings = await store.load_rate_limit_settings(default_limits)

        assert settings.requests_per_minute == 20
        assert settings.max_concurrent_requests == 5
        redis_client.hgetall.assert_awaited_once_with(RATE_LIMIT_SETTINGS_KEY)

    @pytest.mark.asyncio
    async def test_stored_settings_override_defaults(self, store, redis_client, default_limits):
        redis_client.hgetall.return_value = {"requests_per_minute": "2"}

        settings = await store.load_rate_limit_settings(default_limits)

        assert settings.requests_per_minute == 2
        assert settings.max_concurrent_requests == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stored",
        [
            {"requests_per_minute": "many"},
            {"requests_per_minute": "0"},
            {"max_concurrent_requests": "500"},
        ],
    )
    async def test_invalid_settings_fall_back(self, store, redis_client, default_limits, stored):
        redis_client.hgetall.return_value = stored

        settings = await store.load_rate_limit_settings(default_limits)

        assert settings is default_limits

    @pytest.mark.asyncio
    async def test_redis_error_falls_back(self, store, redis_client, default_limits):
        redis_client.hgetall.side_effect = ConnectionError("redis down")

        settings = await store.load_rate_limit_settings(default_limits)

        assert settings is default_limits
