"""Anthropic Messages API adapter using the official SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

import anthropic

from otter_bot.ai.providers.base import AiProvider, new_call_id, parse_arguments
from otter_bot.ai.types import (
    ConversationEntry,
    ImagePart,
    MessageEntry,
    ProviderChatResponse,
    ProviderToolCall,
    ProviderToolDefinition,
    Role,
    ToolCallEntry,
    ToolChoice,
    ToolKind,
    build_output_entries,
)
from otter_bot.config import AnthropicConfig
from otter_bot.log import get_logger

if TYPE_CHECKING:
    from otter_bot.ai.image import LocalImageGenerator

logger = get_logger(__name__)

EMPTY_TEXT_PLACEHOLDER = "(empty message)"


class AnthropicProvider(AiProvider):
    """Claude backend.

    Developer/system entries become the system prompt; tool calls and tool
    results become tool_use / tool_result content blocks.
    """

    id = "anthropic"
    display_name = "Claude (Anthropic)"
    personality = (
        "thoughtful, warm, and plain-spoken; dry humor is welcome. "
        "Answer first, then add context only when it helps."
    )

    def __init__(
        self,
        config: AnthropicConfig,
        host_tools: list[ProviderToolDefinition],
        local_image_generator: Optional[LocalImageGenerator] = None,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        super().__init__(config.model, host_tools, local_image_generator)
        self._max_tokens = config.max_tokens
        self._client = client or anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    def native_tools(self) -> list[ProviderToolDefinition]:
        return [ProviderToolDefinition(name="web_search", kind=ToolKind.WEB_SEARCH)]

    @property
    def supports_summarize(self) -> bool:
        return True

    async def chat(
        self,
        entries: list[ConversationEntry],
        tools: list[ProviderToolDefinition],
        tool_choice: ToolChoice = ToolChoice.AUTO,
        continuation: Any = None,
    ) -> ProviderChatResponse:
        system, messages = self.build_messages(entries)
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        api_tools = [self.to_api_tool(tool) for tool in tools]
        if api_tools:
            kwargs["tools"] = api_tools
            kwargs["tool_choice"] = {"type": tool_choice.value}

        logger.debug("api_request", provider=self.id, model=self._model, message_count=len(messages))
        response = await self._client.messages.create(**kwargs)
        logger.debug(
            "api_response",
            provider=self.id,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        return self.parse_response(response)

    async def _complete(self, system: str, prompt: str) -> Optional[str]:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        return self.extract_text(response.content)

    # --- request translation -----------------------------------------------------

    @staticmethod
    def to_api_tool(tool: ProviderToolDefinition) -> dict[str, Any]:
        if tool.kind == ToolKind.WEB_SEARCH:
            return {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.parameters or {"type": "object", "properties": {}},
        }

    @staticmethod
    def build_messages(entries: list[ConversationEntry]) -> tuple[str, list[dict[str, Any]]]:
        """Convert entries to (system, messages), merging consecutive turns of the same role."""
        system_parts: list[str] = []
        messages: list[dict[str, Any]] = []

        def _append(role: str, blocks: list[dict[str, Any]]) -> None:
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": role, "content": list(blocks)})

        for entry in entries:
            if isinstance(entry, MessageEntry):
                if entry.role in (Role.DEVELOPER, Role.SYSTEM):
                    system_parts.append(entry.text())
                    continue
                blocks: list[dict[str, Any]] = []
                for part in entry.content:
                    if isinstance(part, ImagePart):
                        blocks.append({"type": "image", "source": {"type": "url", "url": part.url}})
                    elif part.text:
                        blocks.append({"type": "text", "text": part.text})
                if not blocks:
                    # text blocks must be non-empty
                    blocks.append({"type": "text", "text": EMPTY_TEXT_PLACEHOLDER})
                _append("assistant" if entry.role == Role.ASSISTANT else "user", blocks)

            elif isinstance(entry, ToolCallEntry):
                _append(
                    "assistant",
                    [{"type": "tool_use", "id": entry.id, "name": entry.name, "input": entry.arguments}],
                )

            else:
                _append(
                    "user",
                    [{"type": "tool_result", "tool_use_id": entry.id, "content": entry.content}],
                )

        for message in messages:
            # text before tool_use on assistant turns, tool_result first on user turns
            if message["role"] == "assistant":
                message["content"].sort(key=lambda b: b["type"] == "tool_use")
            else:
                message["content"].sort(key=lambda b: b["type"] != "tool_result")

        return "\n\n".join(p for p in system_parts if p), messages

    # --- response normalization --------------------------------------------------

    def parse_response(self, response: Any) -> ProviderChatResponse:
        blocks = list(getattr(response, "content", None) or [])
        text = self.extract_text(blocks)
        tool_calls = [
            ProviderToolCall(
                id=block.id or new_call_id(),
                name=block.name or "unknown_tool",
                arguments=parse_arguments(block.input, block.name or ""),
            )
            for block in blocks
            if block.type == "tool_use"
        ]
        return ProviderChatResponse(
            text=text,
            tool_calls=tool_calls,
            output_entries=build_output_entries(text, tool_calls),
            raw=response,
        )

    @staticmethod
    def extract_text(blocks: list[Any]) -> Optional[str]:
        # citation-bearing answers arrive split across several text blocks
        text = "".join(block.text for block in blocks if getattr(block, "type", None) == "text").strip()
        return text or None
