"""Redis persistence for jobs, admission settings and job statistics."""

import logging
from typing import Any

from redis.asyncio import Redis

from src.config import RateLimitConfig
from src.services.jobs import Job, JobStatus

logger = logging.getLogger(__name__)

# Redis key patterns
JOB_KEY = "job:{job_id}"
USER_JOBS_KEY = "user_jobs:{user_id}"
STATS_JOBS_KEY = "stats:jobs:{status}"
RATE_LIMIT_SETTINGS_KEY = "settings:rate_limit"

# Keep only the latest job ids per user
USER_JOBS_HISTORY = 50


class JobStore:
    """Stores job records and reads admission settings from Redis."""

    def __init__(self, redis: Redis):
        """Initialize store.

        Args:
            redis: Client created with ``decode_responses=True``
        """
        self.redis = redis

    async def save_job(self, job: Job) -> None:
        """Upsert a job record and count its status transition.

        Each status is written once per job, so the per-status counters stay
        exact as long as callers save every transition exactly once.
        """
        key = JOB_KEY.format(job_id=job.id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=job.to_mapping())
            pipe.incr(STATS_JOBS_KEY.format(status=job.status.value))
            if job.status is JobStatus.QUEUED:
                user_key = USER_JOBS_KEY.format(user_id=job.user_id)
                pipe.lpush(user_key, job.id)
                pipe.ltrim(user_key, 0, USER_JOBS_HISTORY - 1)
            await pipe.execute()
        logger.debug(f"[JOB {job.id}] Saved with status {job.status.value}")

    async def get_job(self, job_id: str) -> Job | None:
        """Load a job record.

        Returns:
            The job, or None if no record exists
        """
        data = await self.redis.hgetall(JOB_KEY.format(job_id=job_id))
        if not data:
            return None
        return Job.from_mapping(data)

    async def get_user_jobs(self, user_id: int, limit: int = 10) -> list[Job]:
        """Load the user's most recent jobs, newest first."""
        job_ids = await self.redis.lrange(USER_JOBS_KEY.format(user_id=user_id), 0, limit - 1)
        jobs = []
        for job_id in job_ids:
            job = await self.get_job(job_id)
            if job is not None:
                jobs.append(job)
        return jobs

    async def get_stats(self) -> dict[str, int]:
        """Get job counters per status.

        Returns:
            Mapping of status value to number of jobs that reached it
        """
        keys = [STATS_JOBS_KEY.format(status=status.value) for status in JobStatus]
        values = await self.redis.mget(keys)
        return {
            status.value: int(value) if value else 0
            for status, value in zip(JobStatus, values)
        }

    async def load_rate_limit_settings(self, default: RateLimitConfig) -> RateLimitConfig:
        """Read admission limits stored in Redis.

        Missing fields take their value from ``default``. Any Redis or
        validation error falls back to ``default`` entirely.
        """
        try:
            stored: dict[str, Any] = await self.redis.hgetall(RATE_LIMIT_SETTINGS_KEY)
            settings = RateLimitConfig(
                requests_per_minute=int(
                    stored.get("requests_per_minute", default.requests_per_minute)
                ),
                max_concurrent_requests=int(
                    stored.get("max_concurrent_requests", default.max_concurrent_requests)
                ),
            )
        except ValueError as e:
            logger.error(f"Invalid rate limit settings in Redis, using defaults: {e}")
            settings = default
        except Exception as e:
            logger.error(f"Failed to load rate limit settings, using defaults: {e}", exc_info=True)
            settings = default

        logger.info(
            f"Rate limit initialized: {settings.requests_per_minute} req/min, "
            f"{settings.max_concurrent_requests} concurrent"
        )
        return settings
