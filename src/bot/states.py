"""Conversation states for the outfit bot."""

from dataclasses import dataclass
from enum import Enum


class Step(str, Enum):
    """Where a user is in the request flow."""

    IDLE = "idle"  # Main menu
    AWAITING_OUTFIT_PROMPT = "awaiting_outfit_prompt"  # Waiting for wishes for a combined outfit
    AWAITING_OUTFIT_IMAGES = "awaiting_outfit_images"  # Collecting item photos until /generate
    AWAITING_MATCHING_PROMPT = "awaiting_matching_prompt"  # Waiting for wishes for a matched outfit
    AWAITING_MATCHING_IMAGE = "awaiting_matching_image"  # Waiting for the single item photo


class RequestKind(str, Enum):
    """Generation mode picked from the menu."""

    COMBINE_OUTFIT = "combine_outfit"
    MATCH_OUTFIT = "match_outfit"


@dataclass(frozen=True)
class ConversationState:
    """Per-user conversation record.

    Instances are immutable; the state machine returns a new one for every
    transition. ``images`` keeps arrival order.
    """

    user_id: int
    step: Step = Step.IDLE
    request_kind: RequestKind | None = None
    images: tuple[str, ...] = ()
    brief: str = ""
    pending_job_id: str | None = None
