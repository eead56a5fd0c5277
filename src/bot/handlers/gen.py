"""Handlers that drive the outfit request conversation."""

import logging

from aiogram import F, Router
from aiogram.filters import Command as CommandFilter
from aiogram.types import Message

from src.bot.conversation import (
    Command,
    ConversationStore,
    Event,
    MenuChoice,
    Reply,
    ShowMenu,
    Text,
)
from src.bot.keyboards import MENU_BUTTONS, main_menu_keyboard
from src.services.job_queue import JobQueue
from src.services.job_store import JobStore

logger = logging.getLogger(__name__)

router = Router()

MSG_MENU = "Выберите режим работы:"


async def show_menu(message: Message) -> None:
    await message.answer(MSG_MENU, reply_markup=main_menu_keyboard())


async def process_event(
    message: Message,
    event: Event,
    conversations: ConversationStore,
    job_queue: JobQueue,
    job_store: JobStore,
) -> None:
    """Feed an event to the user's conversation and act on the outcome."""
    if not message.from_user:
        logger.warning(f"Ignoring {type(event).__name__} without a sender")
        return
    user_id = message.from_user.id

    effects, job = await conversations.handle(user_id, event)

    # Queue before replying so a failed send can't strand a formed job
    if job is not None:
        try:
            await job_store.save_job(job)
        except Exception as e:
            logger.error(f"[USER {user_id}] [JOB {job.id}] Failed to save queued job: {e}", exc_info=True)
        job_queue.enqueue(job)

    for effect in effects:
        if isinstance(effect, ShowMenu):
            await show_menu(message)
        elif isinstance(effect, Reply):
            await message.answer(effect.text)


@router.message(CommandFilter("start"))
async def cmd_start(
    message: Message,
    conversations: ConversationStore,
    job_queue: JobQueue,
    job_store: JobStore,
) -> None:
    """Handle /start command."""
    await process_event(message, Command("start"), conversations, job_queue, job_store)


@router.message(CommandFilter("generate"))
async def cmd_generate(
    message: Message,
    conversations: ConversationStore,
    job_queue: JobQueue,
    job_store: JobStore,
) -> None:
    """Handle /generate command."""
    await process_event(message, Command("generate"), conversations, job_queue, job_store)


@router.message(F.text.in_(MENU_BUTTONS))
async def handle_menu_choice(
    message: Message,
    conversations: ConversationStore,
    job_queue: JobQueue,
    job_store: JobStore,
) -> None:
    """Handle a press on one of the main menu buttons."""
    event = MenuChoice(MENU_BUTTONS[message.text])
    await process_event(message, event, conversations, job_queue, job_store)


@router.message(F.text.startswith("/"))
async def handle_other_command(
    message: Message,
    conversations: ConversationStore,
    job_queue: JobQueue,
    job_store: JobStore,
) -> None:
    """Pass unknown commands to the state machine, which answers with the menu."""
    name = message.text.split()[0].lstrip("/").split("@")[0].lower()
    await process_event(message, Command(name), conversations, job_queue, job_store)


@router.message(F.text)
async def handle_text(
    message: Message,
    conversations: ConversationStore,
    job_queue: JobQueue,
    job_store: JobStore,
) -> None:
    """Handle free text (the brief)."""
    await process_event(message, Text(message.text), conversations, job_queue, job_store)


@router.message()
async def handle_unsupported(message: Message) -> None:
    """Anything else (stickers, voice, documents) just gets the menu."""
    user_id = message.from_user.id if message.from_user else None
    logger.info(f"[USER {user_id}] Unsupported content type: {message.content_type}")
    await show_menu(message)
