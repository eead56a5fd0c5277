"""Outbound Telegram messages sent outside of a handler."""

import logging
from pathlib import Path

from aiogram import Bot
from aiogram.types import FSInputFile

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends messages to users; failures are logged and swallowed.

    Users talk to the bot in private chats, so the user id doubles as the
    chat id.
    """

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(self, user_id: int, text: str) -> None:
        try:
            await self.bot.send_message(chat_id=user_id, text=text)
        except Exception as e:
            logger.error(f"[USER {user_id}] Failed to send message: {e}", exc_info=True)

    async def send_image(self, user_id: int, image_ref: str, caption: str = "") -> None:
        """Send an image given either a local file path or a URL."""
        path = Path(image_ref)
        photo = FSInputFile(path) if path.is_file() else image_ref
        try:
            await self.bot.send_photo(chat_id=user_id, photo=photo, caption=caption or None)
        except Exception as e:
            logger.error(f"[USER {user_id}] Failed to send image: {e}", exc_info=True)
