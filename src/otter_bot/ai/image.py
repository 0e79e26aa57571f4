"""Local image generation through the Gemini image model, with per-channel refinement."""

from __future__ import annotations

from dataclasses import dataclass

from google import genai
from google.genai import types

from otter_bot.log import get_logger
from otter_bot.messenger.base import ChatChannel
from otter_bot.messenger.models import FileUpload, OutgoingMessage

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class StoredImage:
    data: bytes
    mime_type: str = "image/png"


class LastImageCache:
    """Channel id -> most recently generated image."""

    def __init__(self) -> None:
        self._images: dict[str, StoredImage] = {}

    def get(self, channel_id: str) -> StoredImage | None:
        return self._images.get(channel_id)

    def set(self, channel_id: str, image: StoredImage) -> None:
        self._images[channel_id] = image

    def clear(self, channel_id: str) -> None:
        self._images.pop(channel_id, None)


class LocalImageGenerator:
    """Generates images on behalf of providers that have no image endpoint of their own."""

    def __init__(self, api_key: str, model: str, cache: LastImageCache):
        self._client = genai.Client(api_key=api_key)
        self._model = model
        self._cache = cache

    @property
    def cache(self) -> LastImageCache:
        return self._cache

    async def generate(self, channel: ChatChannel, prompt: str, refine_previous: bool = False) -> str:
        """Render, deliver and cache an image; returns a short confirmation for the model."""
        try:
            reference = self._cache.get(channel.channel_id) if refine_previous else None
            if refine_previous and reference is None:
                return "I could not find a previous image to refine for this channel."

            await channel.send_typing()
            image = await self._render(prompt, reference)
            self._cache.set(channel.channel_id, image)

            extension = image.mime_type.split("/")[-1] or "png"
            await channel.send_reply(
                OutgoingMessage(
                    text="Here is your image.",
                    files=[FileUpload(data=image.data, media_type=image.mime_type, filename=f"image.{extension}")],
                )
            )
            logger.info("image_generated", channel_id=channel.channel_id, refined=refine_previous)
            if refine_previous:
                return "Refined the previous image and sent it."
            return "Generated a new image and sent it."
        except Exception as e:
            logger.error("local_image_generation_failed", error=str(e), exc_info=True)
            return "Image generation failed (local generator)."

    async def _render(self, prompt: str, reference: StoredImage | None) -> StoredImage:
        parts = [types.Part.from_text(text=prompt)]
        if reference is not None:
            parts.append(types.Part.from_bytes(data=reference.data, mime_type=reference.mime_type))

        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=[types.Content(role="user", parts=parts)],
        )

        candidates = response.candidates or []
        content_parts = (candidates[0].content.parts or []) if candidates and candidates[0].content else []
        for part in content_parts:
            if part.inline_data is not None and part.inline_data.data:
                return StoredImage(
                    data=part.inline_data.data,
                    mime_type=part.inline_data.mime_type or "image/png",
                )
        raise RuntimeError("Image generation returned no data.")
