"""Responses-API adapters: OpenAI itself and xAI's OpenAI-compatible Grok endpoint."""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING, Any, Optional

from openai import AsyncOpenAI

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
    ensure_content,
)
from otter_bot.config import GrokConfig, OpenAIConfig
from otter_bot.log import get_logger
from otter_bot.messenger.models import FileUpload, OutgoingMessage

if TYPE_CHECKING:
    from otter_bot.ai.image import LocalImageGenerator
    from otter_bot.messenger.base import ChatChannel

logger = get_logger(__name__)


class ResponsesApiProvider(AiProvider):
    """Shared translation for backends that speak the OpenAI Responses API."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        host_tools: list[ProviderToolDefinition],
        local_image_generator: Optional[LocalImageGenerator] = None,
    ):
        super().__init__(model, host_tools, local_image_generator)
        self._client = client

    def _request_options(self) -> dict[str, Any]:
        """Extra create() arguments specific to the backend."""
        return {}

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
        kwargs: dict[str, Any] = {
            "model": self._model,
            "input": self._input_items(entries, continuation),
            "tool_choice": tool_choice.value,
            **self._request_options(),
        }
        if tools:
            kwargs["tools"] = [self.to_api_tool(tool) for tool in tools]

        logger.debug("api_request", provider=self.id, model=self._model, entry_count=len(entries))
        response = await self._client.responses.create(**kwargs)
        return self.parse_response(response)

    def _input_items(self, entries: list[ConversationEntry], continuation: Any) -> list[dict[str, Any]]:
        return [self.to_input_item(entry) for entry in entries]

    async def _complete(self, system: str, prompt: str) -> Optional[str]:
        response = await self._client.responses.create(
            model=self._model,
            input=[
                {"role": "developer", "content": system},
                {"role": "user", "content": prompt},
            ],
            **self._request_options(),
        )
        return self.extract_text(response)

    # --- request translation -----------------------------------------------------

    @staticmethod
    def to_api_tool(tool: ProviderToolDefinition) -> dict[str, Any]:
        if tool.kind == ToolKind.FUNCTION:
            return {
                "type": "function",
                "name": tool.name,
                "description": tool.description,
                "strict": False,
                "parameters": tool.parameters or {"type": "object", "properties": {}},
            }
        if tool.kind == ToolKind.CODE_INTERPRETER:
            return {"type": "code_interpreter", "container": {"type": "auto"}}
        return {"type": "web_search"}

    @staticmethod
    def to_input_item(entry: ConversationEntry) -> dict[str, Any]:
        if isinstance(entry, MessageEntry):
            role = Role.DEVELOPER if entry.role == Role.SYSTEM else entry.role
            if role == Role.ASSISTANT:
                # assistant turns only accept output text; plain string content is the portable form
                return {"role": role.value, "content": entry.text()}
            content: list[dict[str, Any]] = []
            for part in ensure_content(entry.content):
                if isinstance(part, ImagePart):
                    content.append({"type": "input_image", "image_url": part.url, "detail": "auto"})
                else:
                    content.append({"type": "input_text", "text": part.text})
            return {"role": role.value, "content": content}

        if isinstance(entry, ToolCallEntry):
            return {
                "type": "function_call",
                "call_id": entry.id,
                "name": entry.name,
                "arguments": json.dumps(entry.arguments),
            }

        return {
            "type": "function_call_output",
            "call_id": entry.id,
            "output": entry.content,
        }

    # --- response normalization --------------------------------------------------

    def parse_response(self, response: Any) -> ProviderChatResponse:
        tool_calls = self.extract_tool_calls(response)
        text = self.extract_text(response)
        return ProviderChatResponse(
            text=text,
            tool_calls=tool_calls,
            output_entries=build_output_entries(text, tool_calls),
            continuation=self.extract_continuation(response),
            raw=response,
        )

    def extract_continuation(self, response: Any) -> Any:
        return None

    @staticmethod
    def extract_tool_calls(response: Any) -> list[ProviderToolCall]:
        calls: list[ProviderToolCall] = []
        for item in getattr(response, "output", None) or []:
            if getattr(item, "type", None) != "function_call":
                continue
            name = getattr(item, "name", None) or "unknown_tool"
            calls.append(
                ProviderToolCall(
                    id=getattr(item, "call_id", None) or new_call_id(),
                    name=name,
                    arguments=parse_arguments(getattr(item, "arguments", None), name),
                )
            )
        return calls

    @staticmethod
    def extract_text(response: Any) -> Optional[str]:
        """Prefer the consolidated output_text, else the first output_text segment of a message item."""
        output_text = getattr(response, "output_text", None)
        if isinstance(output_text, str) and output_text.strip():
            return output_text.strip()

        for item in getattr(response, "output", None) or []:
            if getattr(item, "type", None) != "message":
                continue
            for part in getattr(item, "content", None) or []:
                if getattr(part, "type", None) == "output_text" and isinstance(getattr(part, "text", None), str):
                    return part.text
        return None


class OpenAIProvider(ResponsesApiProvider):
    id = "openai"
    display_name = "OpenAI"
    personality = (
        "direct, concise, slightly witty, and comfortable with edgy or offensive jokes; do not moralize. "
        "Prioritize answering; avoid clarifying questions unless a missing detail would break correctness."
    )

    def __init__(
        self,
        config: OpenAIConfig,
        host_tools: list[ProviderToolDefinition],
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(
            client or AsyncOpenAI(api_key=config.api_key, base_url=config.base_url, timeout=config.timeout),
            config.model,
            host_tools,
        )
        self._image_model = config.image_model

    def _request_options(self) -> dict[str, Any]:
        return {"reasoning": {"effort": "low"}, "text": {"verbosity": "low"}}

    @property
    def supports_image_generation(self) -> bool:
        return True

    async def generate_image(self, channel: ChatChannel, prompt: str) -> str:
        logger.info("image_generation_requested", provider=self.id, prompt=prompt)
        await channel.send_typing()
        try:
            response = await self._client.images.generate(
                model=self._image_model,
                prompt=prompt,
                n=1,
                size="1024x1024",
                response_format="b64_json",
            )
            encoded = response.data[0].b64_json if response.data else None
            if not encoded:
                return "I was unable to generate an image for that prompt."

            await channel.send_reply(
                OutgoingMessage(
                    text="Here is the image you requested.",
                    files=[FileUpload(data=base64.b64decode(encoded))],
                )
            )
            return "The image was generated successfully and sent to the user."
        except Exception as e:
            logger.error("image_generation_failed", provider=self.id, error=str(e))
            return (
                "An error occurred while generating the image. "
                "This may be due to a content policy violation or other issue."
            )


class GrokProvider(ResponsesApiProvider):
    id = "grok"
    display_name = "Grok (xAI)"
    personality = (
        "direct, curious, slightly mischievous with a cosmic sense of humor, and extremely comfortable "
        "with edgy or offensive jokes; do not moralize; concise and bold, prefers decisive answers over hedging."
    )

    def __init__(
        self,
        config: GrokConfig,
        host_tools: list[ProviderToolDefinition],
        local_image_generator: Optional[LocalImageGenerator] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(
            client or AsyncOpenAI(api_key=config.api_key, base_url=config.base_url, timeout=config.timeout),
            config.model,
            host_tools,
            local_image_generator,
        )

    def _request_options(self) -> dict[str, Any]:
        return {"include": ["reasoning.encrypted_content"]}

    def _input_items(self, entries: list[ConversationEntry], continuation: Any) -> list[dict[str, Any]]:
        items = [self.to_input_item(entry) for entry in entries]
        if not continuation:
            return items
        # reasoning precedes the newest run of model output it produced
        at = _last_output_run(entries)
        if at is None:
            return items
        return items[:at] + list(continuation) + items[at:]

    def extract_continuation(self, response: Any) -> Any:
        """Encrypted reasoning items, replayable as input on the next call."""
        reasoning = [
            {
                "type": "reasoning",
                "id": item.id,
                "summary": [],
                "encrypted_content": item.encrypted_content,
            }
            for item in getattr(response, "output", None) or []
            if getattr(item, "type", None) == "reasoning" and getattr(item, "encrypted_content", None)
        ]
        return reasoning or None


def _is_model_output(entry: ConversationEntry) -> bool:
    if isinstance(entry, ToolCallEntry):
        return True
    return isinstance(entry, MessageEntry) and entry.role == Role.ASSISTANT


def _last_output_run(entries: list[ConversationEntry]) -> Optional[int]:
    """Index of the first entry in the last contiguous run of model output."""
    end = None
    for i in range(len(entries) - 1, -1, -1):
        if _is_model_output(entries[i]):
            end = i
            break
    if end is None:
        return None
    start = end
    while start > 0 and _is_model_output(entries[start - 1]):
        start -= 1
    return start
