"""Handler for admin commands (/stats, /jobs)."""

import html
import logging

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from src.config import get_config
from src.services.job_queue import JobQueue
from src.services.job_store import JobStore
from src.services.jobs import JobStatus

logger = logging.getLogger(__name__)

router = Router()

MSG_ADMIN_ONLY = "❌ Эта команда доступна только администратору бота."


def is_admin(message: Message) -> bool:
    admin_user_id = get_config().telegram.admin_user_id
    return bool(admin_user_id) and message.from_user is not None and message.from_user.id == admin_user_id


@router.message(Command("stats"))
async def cmd_stats(message: Message, job_store: JobStore, job_queue: JobQueue) -> None:
    """Handle /stats command - show job statistics (admin only)."""
    user_id = message.from_user.id if message.from_user else None

    if not is_admin(message):
        await message.answer(MSG_ADMIN_ONLY)
        logger.warning(f"User {user_id} tried to access /stats command")
        return

    try:
        stats = await job_store.get_stats()

        stats_text = "📊 <b>Статистика запросов</b>\n\n"
        stats_text += f"📥 Всего запросов: {stats[JobStatus.QUEUED.value]}\n"
        stats_text += f"✅ Выполнено: {stats[JobStatus.COMPLETED.value]}\n"
        stats_text += f"❌ С ошибкой: {stats[JobStatus.FAILED.value]}\n\n"
        stats_text += f"⏳ В очереди: {job_queue.pending_count}\n"
        stats_text += f"⚙️ В работе: {job_queue.in_flight_count}\n"
        stats_text += (
            f"🚦 Лимит: {job_queue.rate_limiter.limit_per_minute} в минуту, "
            f"использовано {job_queue.rate_limiter.requests_this_epoch}\n"
        )

        await message.answer(stats_text, parse_mode="HTML")
        logger.info(f"Admin {user_id} requested statistics")

    except Exception as e:
        logger.error(f"Error getting statistics: {e}", exc_info=True)
        await message.answer("❌ Ошибка при получении статистики.")


@router.message(Command("jobs"))
async def cmd_user_jobs(message: Message, job_store: JobStore) -> None:
    """Handle /jobs <user_id> command - show a user's recent jobs (admin only)."""
    if not is_admin(message):
        await message.answer(MSG_ADMIN_ONLY)
        return

    parts = (message.text or "").split()
    if len(parts) < 2:
        await message.answer(
            "📊 Использование: <code>/jobs &lt;user_id&gt;</code>\n\n"
            "Пример: <code>/jobs 123456789</code>",
            parse_mode="HTML",
        )
        return

    try:
        target_user_id = int(parts[1])
    except ValueError:
        await message.answer("❌ Неверный формат user_id. Используйте число.")
        return

    try:
        jobs = await job_store.get_user_jobs(target_user_id)
        if not jobs:
            await message.answer(f"❌ У пользователя {target_user_id} нет запросов.")
            return

        lines = [f"👤 <b>Запросы пользователя</b> <code>{target_user_id}</code>\n"]
        for job in jobs:
            created = job.created_at.strftime("%Y-%m-%d %H:%M")
            line = f"• <code>{job.id[:8]}</code> {created} {job.request_kind.value}: {job.status.value}"
            if job.error:
                line += f" ({html.escape(job.error[:80])})"
            lines.append(line)

        await message.answer("\n".join(lines), parse_mode="HTML")

    except Exception as e:
        logger.error(f"Error getting user jobs: {e}", exc_info=True)
        await message.answer("❌ Ошибка при получении запросов пользователя.")
