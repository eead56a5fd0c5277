"""Redis connection for job persistence."""

import logging

from redis.asyncio import Redis

from src.config import RedisConfig, get_config

logger = logging.getLogger(__name__)


def create_redis_client(config: RedisConfig | None = None) -> Redis:
    """Create Redis client for the job store.

    Args:
        config: Redis configuration. If None, uses global config.

    Returns:
        Configured Redis client returning ``str`` values
    """
    config = config or get_config().redis

    redis_client = Redis(
        host=config.host,
        port=config.port,
        db=config.db,
        decode_responses=True,
    )

    logger.info(f"Redis client initialized: {config.host}:{config.port}/{config.db}")
    return redis_client
