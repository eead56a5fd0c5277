"""File handling utilities for Telegram bot."""

import logging
from pathlib import Path

import httpx
from aiogram import Bot
from aiogram.types import Message

from src.config import TelegramConfig

logger = logging.getLogger(__name__)


def detect_mime_type(data: bytes) -> str:
    """Guess an image MIME type from magic bytes, defaulting to JPEG."""
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data.startswith(b"GIF"):
        return "image/gif"
    if data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


async def resolve_photo_url(bot: Bot, message: Message, config: TelegramConfig) -> str | None:
    """Resolve the largest photo of a message to a Telegram download URL.

    Args:
        bot: Telegram bot instance
        message: Message with photo
        config: Telegram configuration (for the file URL)

    Returns:
        Download URL of the photo, or None if the message has no photo or
        Telegram did not return a file path
    """
    if not message.photo:
        return None

    # Largest size comes last
    photo = message.photo[-1]
    file_info = await bot.get_file(photo.file_id)
    if not file_info.file_path:
        logger.error(f"Telegram returned no file path for photo {photo.file_id}")
        return None

    return config.file_url(file_info.file_path)


async def download_image(client: httpx.AsyncClient, url: str) -> bytes:
    """Download an image.

    Args:
        client: Shared HTTP client
        url: Image URL

    Returns:
        Image contents as bytes

    Raises:
        ValueError: On network error or non-2xx response. The message leaves
            out the URL, which embeds the bot token.
    """
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ValueError(f"Image download failed: HTTP {e.response.status_code}") from None
    except httpx.HTTPError as e:
        raise ValueError(f"Image download failed: {type(e).__name__}") from None

    logger.debug(f"Image downloaded: {len(response.content)} bytes")
    return response.content


def cleanup_file(file_path: Path) -> None:
    """Delete temporary file.

    Args:
        file_path: Path to file to delete
    """
    try:
        if file_path.exists():
            file_path.unlink()
            logger.debug(f"Cleaned up file: {file_path}")
    except Exception as e:
        logger.warning(f"Error cleaning up file {file_path}: {e}")
