from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.types import Chat, Message, User

from src.bot.states import RequestKind
from src.services.jobs import Job


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_job():
    """Factory for queued jobs."""

    def _make(user_id: int = 1, kind: RequestKind = RequestKind.COMBINE_OUTFIT, images=("img-a",), brief="casual"):
        return Job(user_id=user_id, request_kind=kind, images=images, brief=brief)

    return _make


@pytest.fixture
def mock_user():
    return User(id=12345, is_bot=False, first_name="Test", username="testuser")


@pytest.fixture
def mock_chat():
    return Chat(id=12345, type="private")


@pytest.fixture
def make_message(mock_user, mock_chat):
    """Factory for Message mocks with an awaitable ``answer``."""

    def _make(text: str | None = None, photo=None):
        message = MagicMock(spec=Message)
        message.from_user = mock_user
        message.chat = mock_chat
        message.text = text
        message.caption = None
        message.photo = photo
        message.content_type = "photo" if photo else "text"
        message.answer = AsyncMock()
        return message

    return _make
