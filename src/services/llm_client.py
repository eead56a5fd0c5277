"""LLM client that turns clothing photos and a brief into an image prompt."""

import base64
import logging
from typing import Any

from openai import AsyncOpenAI

from src.config import LLMConfig, get_config
from src.utils.file_handler import detect_mime_type

logger = logging.getLogger(__name__)


def to_data_url(photo: bytes) -> str:
    encoded = base64.b64encode(photo).decode("ascii")
    return f"data:{detect_mime_type(photo)};base64,{encoded}"


class LLMClient:
    """Client for an OpenAI-compatible chat completions API."""

    def __init__(self, config: LLMConfig | None = None):
        """Initialize LLM client.

        Args:
            config: LLM configuration. If None, uses global config.
        """
        self.config = config or get_config().llm
        self.client = AsyncOpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key,
            timeout=self.config.timeout,
        )
        logger.info(f"LLM Client initialized: {self.config.base_url}, model: {self.config.model}")

    async def write_image_prompt(
        self,
        photos: list[bytes],
        system_prompt: str,
        user_text: str,
    ) -> str:
        """Describe the wanted picture for the image model.

        Photos are sent inline as base64 data URLs, so the model never sees
        where they were downloaded from.

        Args:
            photos: Source clothing photos, in the order the user sent them
            system_prompt: Kind-specific instructions for the model
            user_text: User prompt template plus the customer's brief

        Returns:
            Prompt text for the image model

        Raises:
            ValueError: If the model returned no text
            openai.OpenAIError: On API error
        """
        content: list[dict[str, Any]] = [
            {"type": "image_url", "image_url": {"url": to_data_url(photo)}} for photo in photos
        ]
        content.append({"type": "text", "text": user_text})

        logger.info(f"LLM: Writing image prompt from {len(photos)} image(s)")
        response = await self.client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

        prompt = response.choices[0].message.content if response.choices else None
        if not prompt or not prompt.strip():
            raise ValueError("LLM returned an empty image prompt")

        logger.info(f"LLM: Image prompt ready ({len(prompt)} chars)")
        logger.debug(f"LLM image prompt: {prompt[:300]}")
        return prompt.strip()
