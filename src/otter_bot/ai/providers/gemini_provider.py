"""Gemini adapter using the google-genai SDK's native function calling."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from google import genai
from google.genai import types

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
from otter_bot.config import GeminiConfig
from otter_bot.log import get_logger

if TYPE_CHECKING:
    from otter_bot.ai.image import LocalImageGenerator

logger = get_logger(__name__)


def strip_additional_properties(schema: Any) -> Any:
    """Gemini's function schemas reject additionalProperties anywhere in the tree."""
    if isinstance(schema, dict):
        return {
            key: strip_additional_properties(value)
            for key, value in schema.items()
            if key != "additionalProperties"
        }
    if isinstance(schema, list):
        return [strip_additional_properties(item) for item in schema]
    return schema


class GeminiProvider(AiProvider):
    """Gemini backend.

    Continuation data is a mapping of tool-call id to the thought signature
    Gemini attached to that call; signatures are replayed on the matching
    function-call parts of later requests.
    """

    id = "gemini"
    display_name = "Gemini"
    personality = (
        "precise, fast, and cooperative; concise but friendly. "
        "Provide decisive answers with minimal hedging."
    )

    def __init__(
        self,
        config: GeminiConfig,
        host_tools: list[ProviderToolDefinition],
        local_image_generator: Optional[LocalImageGenerator] = None,
        client: Optional[genai.Client] = None,
    ):
        super().__init__(config.model, host_tools, local_image_generator)
        self._client = client or genai.Client(api_key=config.api_key)

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
        signatures: dict[str, bytes] = dict(continuation or {})
        system_instruction, contents = self.build_contents(entries, signatures)

        mode = (
            types.FunctionCallingConfigMode.NONE
            if tool_choice == ToolChoice.NONE
            else types.FunctionCallingConfigMode.AUTO
        )
        request_config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=self.build_tools(tools) or None,
            tool_config=types.ToolConfig(function_calling_config=types.FunctionCallingConfig(mode=mode)),
        )

        logger.debug("api_request", provider=self.id, model=self._model, entry_count=len(entries))
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=contents,
            config=request_config,
        )
        return self.parse_response(response, signatures)

    async def _complete(self, system: str, prompt: str) -> Optional[str]:
        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=[types.Content(role="user", parts=[types.Part.from_text(text=prompt)])],
            config=types.GenerateContentConfig(system_instruction=system),
        )
        return self.extract_text(self._candidate_parts(response))

    # --- request translation -----------------------------------------------------

    @staticmethod
    def build_tools(tools: list[ProviderToolDefinition]) -> list[types.Tool]:
        declarations = [
            types.FunctionDeclaration(
                name=tool.name,
                description=tool.description,
                parameters_json_schema=strip_additional_properties(tool.parameters or {"type": "object"}),
            )
            for tool in tools
            if tool.kind == ToolKind.FUNCTION
        ]
        api_tools: list[types.Tool] = []
        if declarations:
            api_tools.append(types.Tool(function_declarations=declarations))
        kinds = {tool.kind for tool in tools}
        if ToolKind.WEB_SEARCH in kinds:
            api_tools.append(types.Tool(google_search=types.GoogleSearch()))
        if ToolKind.CODE_INTERPRETER in kinds:
            api_tools.append(types.Tool(code_execution=types.ToolCodeExecution()))
        return api_tools

    @staticmethod
    def build_contents(
        entries: list[ConversationEntry], signatures: dict[str, bytes]
    ) -> tuple[Optional[str], list[types.Content]]:
        """Split out the system instruction and fold entries into alternating Contents.

        Consecutive entries that map to the same role share one Content, which
        keeps parallel function calls and their responses grouped as Gemini expects.
        """
        system_instruction: Optional[str] = None
        contents: list[types.Content] = []

        def _append(role: str, parts: list[types.Part]) -> None:
            if contents and contents[-1].role == role:
                contents[-1].parts = [*(contents[-1].parts or []), *parts]
            else:
                contents.append(types.Content(role=role, parts=parts))

        for entry in entries:
            if isinstance(entry, MessageEntry):
                if entry.role in (Role.DEVELOPER, Role.SYSTEM) and system_instruction is None:
                    system_instruction = entry.text()
                    continue
                parts = []
                for part in ensure_content(entry.content):
                    if isinstance(part, ImagePart):
                        parts.append(types.Part.from_text(text=f"[image: {part.url}]"))
                    else:
                        parts.append(types.Part.from_text(text=part.text))
                _append("model" if entry.role == Role.ASSISTANT else "user", parts)

            elif isinstance(entry, ToolCallEntry):
                _append(
                    "model",
                    [
                        types.Part(
                            function_call=types.FunctionCall(name=entry.name, args=entry.arguments),
                            thought_signature=signatures.get(entry.id),
                        )
                    ],
                )

            else:
                _append(
                    "user",
                    [types.Part.from_function_response(name=entry.name, response={"output": entry.content})],
                )

        return system_instruction, contents

    # --- response normalization --------------------------------------------------

    @staticmethod
    def _candidate_parts(response: Any) -> list[Any]:
        candidates = getattr(response, "candidates", None) or []
        if not candidates or candidates[0].content is None:
            return []
        return list(candidates[0].content.parts or [])

    def parse_response(self, response: Any, signatures: dict[str, bytes]) -> ProviderChatResponse:
        parts = self._candidate_parts(response)
        text = self.extract_text(parts)

        tool_calls: list[ProviderToolCall] = []
        for part in parts:
            call = getattr(part, "function_call", None)
            if call is None:
                continue
            name = call.name or "unknown_tool"
            call_id = call.id or new_call_id()
            if getattr(part, "thought_signature", None):
                signatures[call_id] = part.thought_signature
            tool_calls.append(
                ProviderToolCall(id=call_id, name=name, arguments=parse_arguments(call.args or {}, name))
            )

        return ProviderChatResponse(
            text=text,
            tool_calls=tool_calls,
            output_entries=build_output_entries(text, tool_calls),
            continuation=signatures or None,
            raw=response,
        )

    @staticmethod
    def extract_text(parts: list[Any]) -> Optional[str]:
        texts = [
            part.text
            for part in parts
            if isinstance(getattr(part, "text", None), str) and not getattr(part, "thought", False)
        ]
        joined = "\n".join(texts).strip()
        return joined or None
