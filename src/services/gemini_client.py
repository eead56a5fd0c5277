"""Google Gemini client for image generation."""

import asyncio
import logging
import mimetypes
import tempfile
import uuid
from pathlib import Path

from google import genai
from google.genai import types

from src.config import GeminiConfig, get_config
from src.utils.file_handler import detect_mime_type

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """ROLE: Fashion photographer producing catalogue shots.

Render one photorealistic full-body photo of a model following the description below.

Rules:
* Every garment shown in the attached photos must appear exactly as photographed:
  same colour, cut, fabric, print, logos and details. Do not redesign the items.
* Garments that are not in the photos may be added only where the description asks
  for them, and must suit the items that are.
* Soft diffused studio lighting, clean neutral background, the whole figure in frame
  from head to shoes.
* No text, watermarks or collages: a single photo."""


class GeminiClient:
    """Client for Google Gemini API."""

    def __init__(self, config: GeminiConfig | None = None):
        """Initialize Gemini client.

        Args:
            config: Gemini configuration. If None, uses global config.
        """
        self.config = config or get_config().gemini
        self.client = genai.Client(
            api_key=self.config.api_key,
            http_options=types.HttpOptions(timeout=self.config.timeout * 1000),
        )
        logger.info(f"Gemini Client initialized: model={self.config.model}")

    async def generate_image(self, photos: list[bytes], prompt: str) -> Path:
        """Generate an outfit image.

        Args:
            photos: Source clothing photos, in order
            prompt: Scene description written by the LLM

        Returns:
            Path to the generated image file

        Raises:
            ValueError: If the model returned no image
            google.genai.errors.APIError: On API error
        """
        parts: list[types.Part] = [
            types.Part.from_bytes(data=photo, mime_type=detect_mime_type(photo))
            for photo in photos
        ]
        parts.append(types.Part.from_text(text=f"{SYSTEM_PROMPT}\n\nDescription: {prompt}"))

        contents = [types.Content(role="user", parts=parts)]
        generate_content_config = types.GenerateContentConfig(
            response_modalities=["IMAGE", "TEXT"],
            image_config=types.ImageConfig(aspect_ratio=self.config.aspect_ratio),
        )

        # The SDK call is blocking, keep it off the event loop
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None, self._generate_sync, contents, generate_content_config
        )

        for candidate in response.candidates or []:
            if candidate.content is None or candidate.content.parts is None:
                continue
            for part in candidate.content.parts:
                if part.inline_data and part.inline_data.data:
                    return self._save(part.inline_data.data, part.inline_data.mime_type)
                if part.text:
                    logger.debug(f"Gemini text response: {part.text}")

        raise ValueError("No image generated by Gemini API")

    def _generate_sync(
        self,
        contents: list[types.Content],
        config: types.GenerateContentConfig,
    ) -> types.GenerateContentResponse:
        return self.client.models.generate_content(
            model=self.config.model,
            contents=contents,
            config=config,
        )

    @staticmethod
    def _save(data: bytes, mime_type: str | None) -> Path:
        extension = mimetypes.guess_extension(mime_type or "") or ".png"
        temp_file = Path(tempfile.gettempdir()) / f"outfit_{uuid.uuid4().hex}{extension}"
        temp_file.write_bytes(data)
        logger.info(f"Generated image saved: {temp_file}")
        return temp_file
