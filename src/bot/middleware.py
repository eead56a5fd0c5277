"""Middleware for logging and error handling."""

import logging
from typing import Any, Awaitable, Callable

from aiogram import BaseMiddleware, Bot
from aiogram.types import Message, TelegramObject

from src.bot.conversation import ConversationStore
from src.config import get_config

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseMiddleware):
    """Middleware for logging user actions."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Log user action."""
        if isinstance(event, Message) and event.from_user:
            user_id = event.from_user.id
            username = event.from_user.username
            text = event.text or (event.caption or "")

            current_step = "UNKNOWN"
            conversations: ConversationStore | None = data.get("conversations")
            if conversations is not None:
                state = await conversations.get(user_id)
                current_step = state.step.value

            logger.info(
                f"[USER {user_id}] (@{username}) [STATE: {current_step}] "
                f"Content: {event.content_type} - {text[:100]}"
            )

        return await handler(event, data)


class ErrorHandlerMiddleware(BaseMiddleware):
    """Middleware for error handling and admin notifications."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Handle errors and notify admin."""
        try:
            return await handler(event, data)
        except Exception as e:
            logger.error(f"Error in handler: {e}", exc_info=True)

            if isinstance(event, Message):
                try:
                    await event.answer(
                        "❌ Произошла внутренняя ошибка. "
                        "Попробуйте ещё раз или используйте /start для перезапуска."
                    )
                except Exception as answer_error:
                    logger.error(f"Failed to send error message to user: {answer_error}")

            await self._notify_admin(data.get("bot"), event, e)

            # Re-raise to let aiogram handle it
            raise

    @staticmethod
    async def _notify_admin(bot: Bot | None, event: TelegramObject, error: Exception) -> None:
        admin_user_id = get_config().telegram.admin_user_id
        if bot is None or not admin_user_id:
            return

        is_message = isinstance(event, Message)
        error_msg = (
            f"⚠️ Ошибка в боте:\n"
            f"Тип: {type(error).__name__}\n"
            f"Сообщение: {error}\n"
            f"Пользователь: {event.from_user.id if is_message and event.from_user else 'N/A'}\n"
            f"Текст: {(event.text or '')[:200] if is_message else 'N/A'}"
        )
        try:
            await bot.send_message(chat_id=admin_user_id, text=error_msg)
        except Exception as notify_error:
            logger.error(f"Failed to notify admin: {notify_error}")
