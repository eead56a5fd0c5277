"""Conversation state machine for collecting outfit requests.

The machine itself is pure: given a user's current :class:`ConversationState`
and an incoming event it returns the next state, the replies to send and,
when enough input has been collected, a new :class:`Job`. It never looks at
the clock or at other users' records.

:class:`ConversationStore` owns the per-user records and serialises every
read-modify-write on them behind one lock, so the executor's reset after a
job cannot race with a message from the same user.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace

from src.bot.states import ConversationState, RequestKind, Step
from src.services.jobs import Job

logger = logging.getLogger(__name__)

MENU_COMBINE = "combine"
MENU_MATCH = "match"

MSG_OUTFIT_PROMPT = (
    "Введите описание или пожелания для образа "
    "(например, 'деловой стиль' или 'повседневный образ'):"
)
MSG_MATCHING_PROMPT = (
    "Введите описание или пожелания для подбираемого образа "
    "(например, 'дополнить джинсами' или 'подобрать верх'):"
)
MSG_SEND_OUTFIT_IMAGES = "Теперь отправьте фотографии одежды, которую хотите объединить в образ."
MSG_SEND_MATCHING_IMAGE = "Теперь отправьте фотографию одежды, для которой нужно подобрать образ."
MSG_PHOTO_RECEIVED = "Фотография получена. Отправьте еще или нажмите /generate для создания образа."
MSG_NO_IMAGES = "Сначала отправьте фотографии одежды."
MSG_EMPTY_BRIEF = "Не указано описание образа. Опишите, каким должен быть образ."
MSG_EMPTY_PHOTOS = "Не удалось получить фотографию. Попробуйте отправить её ещё раз."
MSG_COMBINING = "Создаю образ..."
MSG_MATCHING = "Подбираю образ..."
MSG_JOB_PENDING = "Предыдущий запрос ещё обрабатывается. Дождитесь результата."


@dataclass(frozen=True)
class Command:
    name: str


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Photos:
    images: tuple[str, ...]


@dataclass(frozen=True)
class MenuChoice:
    label: str


Event = Command | Text | Photos | MenuChoice


@dataclass(frozen=True)
class ShowMenu:
    """Send the mode selection keyboard."""


@dataclass(frozen=True)
class Reply:
    text: str


SideEffect = ShowMenu | Reply


@dataclass(frozen=True)
class Transition:
    state: ConversationState
    effects: tuple[SideEffect, ...] = ()
    job: Job | None = None


class ConversationStateMachine:
    """Maps (state, event) to the next state and its side effects."""

    def handle(self, state: ConversationState, event: Event) -> Transition:
        if isinstance(event, Command) and event.name == "start":
            return Transition(replace(state, step=Step.IDLE), (ShowMenu(),))

        step = state.step

        if step is Step.IDLE and isinstance(event, MenuChoice):
            # The executor's reset would discard a new request collected now
            if state.pending_job_id is not None and event.label in (MENU_COMBINE, MENU_MATCH):
                return Transition(state, (Reply(MSG_JOB_PENDING),))
            if event.label == MENU_COMBINE:
                return self._pick_mode(
                    state, RequestKind.COMBINE_OUTFIT, Step.AWAITING_OUTFIT_PROMPT, MSG_OUTFIT_PROMPT
                )
            if event.label == MENU_MATCH:
                return self._pick_mode(
                    state, RequestKind.MATCH_OUTFIT, Step.AWAITING_MATCHING_PROMPT, MSG_MATCHING_PROMPT
                )

        if step is Step.AWAITING_OUTFIT_PROMPT and isinstance(event, Text):
            # Checked on arrival rather than at /generate, so the user fixes it before sending photos
            brief = event.text.strip()
            if not brief:
                return Transition(state, (Reply(MSG_EMPTY_BRIEF),))
            return Transition(
                replace(state, brief=brief, step=Step.AWAITING_OUTFIT_IMAGES),
                (Reply(MSG_SEND_OUTFIT_IMAGES),),
            )

        if step is Step.AWAITING_MATCHING_PROMPT and isinstance(event, Text):
            return Transition(
                replace(state, brief=event.text.strip(), step=Step.AWAITING_MATCHING_IMAGE),
                (Reply(MSG_SEND_MATCHING_IMAGE),),
            )

        if step is Step.AWAITING_OUTFIT_IMAGES:
            if isinstance(event, Photos):
                if not event.images:
                    return Transition(state, (Reply(MSG_EMPTY_PHOTOS),))
                return Transition(
                    replace(state, images=state.images + tuple(event.images)),
                    (Reply(MSG_PHOTO_RECEIVED),),
                )
            if isinstance(event, Command) and event.name == "generate":
                if not state.images:
                    return Transition(state, (Reply(MSG_NO_IMAGES),))
                return self._emit(state, RequestKind.COMBINE_OUTFIT, state.images, MSG_COMBINING)

        if step is Step.AWAITING_MATCHING_IMAGE and isinstance(event, Photos):
            if not event.images:
                return Transition(state, (Reply(MSG_EMPTY_PHOTOS),))
            if state.pending_job_id is not None:
                return Transition(state, (Reply(MSG_JOB_PENDING),))
            state = replace(state, images=state.images + (event.images[0],))
            return self._emit(state, RequestKind.MATCH_OUTFIT, state.images[:1], MSG_MATCHING)

        return Transition(state, (ShowMenu(),))

    @staticmethod
    def _pick_mode(
        state: ConversationState, kind: RequestKind, step: Step, prompt: str
    ) -> Transition:
        return Transition(
            replace(state, step=step, request_kind=kind, images=(), brief=""),
            (Reply(prompt),),
        )

    @staticmethod
    def _emit(
        state: ConversationState, kind: RequestKind, images: tuple[str, ...], ack: str
    ) -> Transition:
        # The step stays put until the executor resets it
        if state.pending_job_id is not None:
            return Transition(state, (Reply(MSG_JOB_PENDING),))
        job = Job(user_id=state.user_id, request_kind=kind, images=images, brief=state.brief)
        return Transition(replace(state, pending_job_id=job.id), (Reply(ack),), job)


@dataclass
class ConversationStore:
    """Owns every user's ConversationState behind a single lock."""

    machine: ConversationStateMachine = field(default_factory=ConversationStateMachine)
    _states: dict[int, ConversationState] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def handle(self, user_id: int, event: Event) -> tuple[tuple[SideEffect, ...], Job | None]:
        """Apply an event to the user's record and return what to do about it."""
        async with self._lock:
            state = self._states.get(user_id) or ConversationState(user_id=user_id)
            transition = self.machine.handle(state, event)
            self._states[user_id] = transition.state

        if transition.state.step is not state.step:
            logger.info(
                f"[USER {user_id}] [STATE: {state.step.value} -> {transition.state.step.value}]"
            )
        if transition.job is not None:
            logger.info(
                f"[USER {user_id}] [JOB {transition.job.id}] Formed {transition.job.request_kind.value} "
                f"job with {len(transition.job.images)} image(s)"
            )
        return transition.effects, transition.job

    async def reset(self, user_id: int) -> None:
        """Return the user to Idle with nothing collected."""
        async with self._lock:
            self._states[user_id] = ConversationState(user_id=user_id)
        logger.info(f"[USER {user_id}] [STATE: idle] Conversation reset")

    async def get(self, user_id: int) -> ConversationState:
        async with self._lock:
            return self._states.get(user_id) or ConversationState(user_id=user_id)
