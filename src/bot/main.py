"""Main bot file."""

import asyncio
import logging
import sys

import httpx
from aiogram import Bot, Dispatcher
from dotenv import load_dotenv
from redis.asyncio import Redis

from src.bot.conversation import ConversationStore
from src.bot.handlers import gen, photos, stats
from src.bot.middleware import ErrorHandlerMiddleware, LoggingMiddleware
from src.bot.notifier import TelegramNotifier
from src.bot.storage import create_redis_client
from src.config import get_config
from src.services.gemini_client import GeminiClient
from src.services.generation import GenerationService
from src.services.job_executor import JobExecutor
from src.services.job_queue import JobQueue
from src.services.job_store import JobStore
from src.services.llm_client import LLMClient
from src.services.rate_limiter import RateLimiter
from src.utils.file_handler import download_image

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s · %(levelname)s · %(name)s · %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


async def close_resources(
    bot: Bot | None,
    redis_client: Redis | None,
    http_client: httpx.AsyncClient | None,
) -> None:
    """Close whichever connections were opened."""
    if http_client is not None:
        await http_client.aclose()
    if redis_client is not None:
        await redis_client.aclose()
    if bot is not None:
        await bot.session.close()


async def main() -> None:
    """Main entry point."""
    bot: Bot | None = None
    redis_client: Redis | None = None
    http_client: httpx.AsyncClient | None = None

    try:
        # Load configuration; missing tokens or keys abort start-up here
        config = get_config()

        # Set logging level from config
        log_level = getattr(logging, config.logging.level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level)

        logger.info("Starting Outfit Bot...")

        bot = Bot(token=config.telegram.bot_token)
        redis_client = create_redis_client(config.redis)
        job_store = JobStore(redis_client)

        # Admission limits are read once; changing them needs a restart
        limits = await job_store.load_rate_limit_settings(config.rate_limit)

        http_client = httpx.AsyncClient(timeout=config.queue.download_timeout)

        async def fetch_image(url: str) -> bytes:
            return await download_image(http_client, url)

        conversations = ConversationStore()
        notifier = TelegramNotifier(bot)
        generation = GenerationService(
            llm_client=LLMClient(config.llm),
            gemini_client=GeminiClient(config.gemini),
            fetch_image=fetch_image,
            prompts=config.prompts,
            max_concurrent_requests=limits.max_concurrent_requests,
        )
        executor = JobExecutor(generation, job_store, notifier, conversations)
        rate_limiter = RateLimiter(limits.requests_per_minute, epoch_seconds=config.queue.epoch_seconds)
        job_queue = JobQueue(
            rate_limiter,
            executor.execute,
            error_backoff=config.queue.error_backoff_seconds,
        )

        # Workflow data is injected into handlers by parameter name
        dp = Dispatcher(
            conversations=conversations,
            job_queue=job_queue,
            job_store=job_store,
        )

        # Register middleware (order matters!)
        dp.message.middleware(LoggingMiddleware())
        dp.message.middleware(ErrorHandlerMiddleware())  # Error handling last

        # Register routers; gen ends with a catch-all, so it goes last
        dp.include_router(stats.router)
        dp.include_router(photos.router)
        dp.include_router(gen.router)

        logger.info("Bot initialized successfully")

    except Exception as e:
        logger.error(f"Fatal error during start-up: {e}", exc_info=True)
        await close_resources(bot, redis_client, http_client)
        sys.exit(1)

    stop_event = asyncio.Event()
    background = [
        asyncio.create_task(rate_limiter.run_ticker(stop_event), name="rate-limit-ticker"),
        asyncio.create_task(job_queue.run(stop_event), name="job-dispatch"),
    ]

    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        logger.info("Shutting down...")
        stop_event.set()
        await asyncio.gather(*background, return_exceptions=True)
        await close_resources(bot, redis_client, http_client)


if __name__ == "__main__":
    asyncio.run(main())
