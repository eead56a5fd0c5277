"""Outfit generation pipeline: prompt writing, image download, rendering."""

import asyncio
import logging
from typing import Awaitable, Callable

from src.bot.states import RequestKind
from src.config import PromptsConfig
from src.services.gemini_client import GeminiClient
from src.services.llm_client import LLMClient
from src.utils.prompt_builder import build_image_prompt, build_user_message

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """Raised when an outfit image could not be produced."""


class GenerationService:
    """Produces one outfit image per call.

    At most ``max_concurrent_requests`` calls run the pipeline at once; the
    rest wait on the permit in arrival order.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        gemini_client: GeminiClient,
        fetch_image: Callable[[str], Awaitable[bytes]],
        prompts: PromptsConfig,
        max_concurrent_requests: int,
    ):
        """Initialize generation service.

        Args:
            llm_client: Writes the image prompt from photos and brief
            gemini_client: Renders the final image
            fetch_image: Downloads a source image reference
            prompts: Prompt templates per request kind
            max_concurrent_requests: Size of the concurrency permit
        """
        self.llm_client = llm_client
        self.gemini_client = gemini_client
        self.fetch_image = fetch_image
        self.prompts = prompts
        self.max_concurrent_requests = max_concurrent_requests
        self._permit = asyncio.Semaphore(max_concurrent_requests)

    def _templates(self, kind: RequestKind) -> tuple[str, str]:
        if kind is RequestKind.COMBINE_OUTFIT:
            return self.prompts.outfit_generation_system, self.prompts.outfit_generation_user
        return self.prompts.matching_items_system, self.prompts.matching_items_user

    async def generate(self, images: tuple[str, ...], brief: str, kind: RequestKind) -> str:
        """Generate an outfit image.

        Args:
            images: Source image references (URLs), in the order sent
            brief: Customer's wishes, may be empty
            kind: Combine several items, or match one item

        Returns:
            Reference to the generated image (local file path)

        Raises:
            GenerationError: On any failure of the pipeline
        """
        if not images:
            raise GenerationError("At least one image is required")
        if kind is RequestKind.MATCH_OUTFIT:
            images = images[:1]

        system_prompt, user_prompt = self._templates(kind)

        async with self._permit:
            try:
                # References embed the bot token; only downloaded bytes leave the process
                logger.info(f"Step 1/3: Downloading {len(images)} source image(s)")
                photos = [await self.fetch_image(ref) for ref in images]

                logger.info(f"Step 2/3: Writing image prompt ({kind.value})")
                model_prompt = await self.llm_client.write_image_prompt(
                    photos,
                    system_prompt,
                    build_user_message(user_prompt, brief, len(photos)),
                )

                logger.info("Step 3/3: Rendering image with Gemini")
                result = await self.gemini_client.generate_image(
                    photos=photos,
                    prompt=build_image_prompt(model_prompt),
                )
            except GenerationError:
                raise
            except Exception as e:
                raise GenerationError(f"{type(e).__name__}: {e}") from e

        return str(result)
