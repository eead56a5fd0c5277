"""Handler for photo messages."""

import logging

from aiogram import Bot, F, Router
from aiogram.types import Message

from src.bot.conversation import ConversationStore, Photos
from src.bot.handlers.gen import process_event
from src.config import get_config
from src.services.job_queue import JobQueue
from src.services.job_store import JobStore
from src.utils.file_handler import resolve_photo_url

logger = logging.getLogger(__name__)

router = Router()


@router.message(F.photo)
async def handle_photos(
    message: Message,
    bot: Bot,
    conversations: ConversationStore,
    job_queue: JobQueue,
    job_store: JobStore,
) -> None:
    """Handle photo messages.

    Telegram delivers every photo of an album as its own message, so each
    call carries one image.
    """
    user_id = message.from_user.id if message.from_user else None
    logger.info(f"[USER {user_id}] Received photo")

    images: tuple[str, ...] = ()
    try:
        url = await resolve_photo_url(bot, message, get_config().telegram)
        if url:
            images = (url,)
    except Exception as e:
        # An empty Photos event makes the state machine ask for the photo again
        logger.error(f"[USER {user_id}] Error resolving photo: {e}", exc_info=True)

    await process_event(message, Photos(images), conversations, job_queue, job_store)
