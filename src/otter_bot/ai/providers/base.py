"""AI provider contract shared by every backend adapter."""

from __future__ import annotations

import json
import uuid
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from otter_bot.ai.summary import SUMMARY_SYSTEM_PROMPT, prepare_summary_prompt
from otter_bot.ai.types import (
    ConversationEntry,
    ProviderChatResponse,
    ProviderToolDefinition,
    ToolChoice,
    ToolKind,
)
from otter_bot.log import get_logger

if TYPE_CHECKING:
    from otter_bot.ai.image import LocalImageGenerator
    from otter_bot.messenger.base import ChatChannel

logger = get_logger(__name__)


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex}"


def parse_arguments(raw: Any, tool_name: str = "") -> dict[str, Any]:
    """Decode backend-supplied JSON arguments; anything unusable becomes {}."""
    if isinstance(raw, dict):
        return dict(raw)
    try:
        parsed = json.loads(raw or "{}")
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("tool_arguments_unparsable", tool=tool_name, error=str(e))
        return {}
    if isinstance(parsed, dict):
        return parsed
    logger.warning("tool_arguments_not_object", tool=tool_name, type=type(parsed).__name__)
    return {}


class AiProvider(ABC):
    """Abstract base class for AI backends.

    Subclasses translate the normalized conversation into their backend's
    request format and normalize the reply back. Adapters are built once per
    process and never mutated afterwards.
    """

    id: str = ""
    display_name: str = ""
    personality: str = ""

    def __init__(
        self,
        model: str,
        host_tools: list[ProviderToolDefinition],
        local_image_generator: Optional[LocalImageGenerator] = None,
    ):
        self._model = model
        self._supported_tools = [*host_tools, *self.native_tools()]
        self._local_image_generator = local_image_generator

    @property
    def default_model(self) -> str:
        return self._model

    @property
    def supported_tools(self) -> list[ProviderToolDefinition]:
        return list(self._supported_tools)

    def native_tools(self) -> list[ProviderToolDefinition]:
        """Tools the backend resolves on its own before replying."""
        return [
            ProviderToolDefinition(name="web_search", kind=ToolKind.WEB_SEARCH),
            ProviderToolDefinition(name="code_interpreter", kind=ToolKind.CODE_INTERPRETER),
        ]

    def is_host_handled(self, tool_name: str) -> bool:
        return any(t.name == tool_name and t.host_handled for t in self._supported_tools)

    def is_backend_native(self, tool_name: str) -> bool:
        return any(t.name == tool_name and not t.host_handled for t in self._supported_tools)

    @abstractmethod
    async def chat(
        self,
        entries: list[ConversationEntry],
        tools: list[ProviderToolDefinition],
        tool_choice: ToolChoice = ToolChoice.AUTO,
        continuation: Any = None,
    ) -> ProviderChatResponse:
        """Send the conversation and return the normalized reply."""
        ...

    # --- optional capabilities -------------------------------------------------

    @property
    def supports_summarize(self) -> bool:
        return False

    @property
    def supports_image_generation(self) -> bool:
        return False

    @property
    def local_image_generator(self) -> Optional[LocalImageGenerator]:
        return self._local_image_generator

    async def summarize_messages(self, channel: ChatChannel, start_time: str, end_time: str) -> str:
        """Summarize the channel between two ISO 8601 instants.

        Invalid windows and empty windows come back as explanations; backend
        failures come back as a fixed error sentence. Nothing is raised.
        """
        try:
            prepared = await prepare_summary_prompt(channel, start_time, end_time)
            if prepared.error:
                return prepared.error

            await channel.send_typing()
            summary = await self._complete(SUMMARY_SYSTEM_PROMPT, prepared.prompt)
            return summary or "I was unable to generate a summary."
        except Exception as e:
            logger.error("summarize_failed", provider=self.id, error=str(e), exc_info=True)
            return "An error occurred while trying to summarize the messages."

    async def _complete(self, system: str, prompt: str) -> Optional[str]:
        """One tool-free completion; used by summarize_messages."""
        raise NotImplementedError(f"{self.id} does not support plain completions")

    async def generate_image(self, channel: ChatChannel, prompt: str) -> str:
        raise NotImplementedError(f"{self.id} does not support image generation")
