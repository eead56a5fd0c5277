"""Tests for bot middleware."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.bot.conversation import ConversationStore
from src.bot.middleware import ErrorHandlerMiddleware, LoggingMiddleware


@pytest.mark.asyncio
async def test_logging_middleware_passes_through(make_message):
    handler = AsyncMock(return_value="handled")
    message = make_message("hello")
    data = {"conversations": ConversationStore()}

    result = await LoggingMiddleware()(handler, message, data)

    assert result == "handled"
    handler.assert_awaited_once_with(message, data)


@pytest.mark.asyncio
async def test_error_middleware_answers_user_and_notifies_admin(make_message):
    handler = AsyncMock(side_effect=RuntimeError("handler bug"))
    message = make_message("hello")
    bot = MagicMock()
    bot.send_message = AsyncMock()
    config = MagicMock()
    config.telegram.admin_user_id = 1

    with patch("src.bot.middleware.get_config", return_value=config):
        with pytest.raises(RuntimeError):
            await ErrorHandlerMiddleware()(handler, message, {"bot": bot})

    message.answer.assert_awaited_once()
    bot.send_message.assert_awaited_once()
    assert bot.send_message.await_args.kwargs["chat_id"] == 1
    assert "RuntimeError" in bot.send_message.await_args.kwargs["text"]


@pytest.mark.asyncio
async def test_error_middleware_skips_admin_when_not_configured(make_message):
    handler = AsyncMock(side_effect=RuntimeError("handler bug"))
    bot = MagicMock()
    bot.send_message = AsyncMock()
    config = MagicMock()
    config.telegram.admin_user_id = 0

    with patch("src.bot.middleware.get_config", return_value=config):
        with pytest.raises(RuntimeError):
            await ErrorHandlerMiddleware()(handler, make_message("hello"), {"bot": bot})

    bot.send_message.assert_not_awaited()
