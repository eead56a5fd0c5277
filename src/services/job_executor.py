"""Runs one dispatched job from start to user notification."""

import logging
from pathlib import Path

from src.bot.conversation import ConversationStore
from src.bot.notifier import TelegramNotifier
from src.bot.states import RequestKind
from src.services.generation import GenerationService
from src.services.job_store import JobStore
from src.services.jobs import Job
from src.utils.file_handler import cleanup_file

logger = logging.getLogger(__name__)

MSG_COMBINE_DONE = "Ваш образ готов!"
MSG_MATCH_DONE = "Вот подобранный образ!"
MSG_COMBINE_FAILED = "Ошибка при создании образа. Попробуйте ещё раз: /start"
MSG_MATCH_FAILED = "Ошибка при подборе образа. Попробуйте ещё раз: /start"


class JobExecutor:
    """Error boundary around a single job.

    Nothing raised by the generator or the store escapes :meth:`execute`, and
    the user's conversation is reset to Idle on every exit path.
    """

    def __init__(
        self,
        generator: GenerationService,
        store: JobStore,
        notifier: TelegramNotifier,
        conversations: ConversationStore,
    ):
        self.generator = generator
        self.store = store
        self.notifier = notifier
        self.conversations = conversations

    async def execute(self, job: Job) -> Job:
        """Run the job and return its final state."""
        current = job
        result: str | None = None
        try:
            current = job.processing()
            logger.info(f"[JOB {job.id}] [USER {job.user_id}] Processing {job.request_kind.value}")
            await self.store.save_job(current)

            result = await self.generator.generate(current.images, current.brief, current.request_kind)

            completed = current.completed(result)
            await self.store.save_job(completed)
            current = completed
            logger.info(f"[JOB {job.id}] Completed")

            caption = MSG_COMBINE_DONE if job.request_kind is RequestKind.COMBINE_OUTFIT else MSG_MATCH_DONE
            await self.notifier.send_image(job.user_id, result, caption)
        except Exception as e:
            logger.error(f"[JOB {job.id}] Failed: {type(e).__name__}: {e}", exc_info=True)
            current = await self._fail(current, e)
        finally:
            if result is not None:
                cleanup_file(Path(result))
            await self.conversations.reset(job.user_id)

        return current

    async def _fail(self, job: Job, error: Exception) -> Job:
        if job.is_finished:
            return job

        failed = job.failed(f"{type(error).__name__}: {error}")
        try:
            await self.store.save_job(failed)
        except Exception as e:
            logger.error(f"[JOB {job.id}] Failed to record failure: {e}", exc_info=True)

        text = MSG_COMBINE_FAILED if job.request_kind is RequestKind.COMBINE_OUTFIT else MSG_MATCH_FAILED
        await self.notifier.send(job.user_id, text)
        return failed
