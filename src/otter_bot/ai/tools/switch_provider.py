"""Provider switching tool."""

from __future__ import annotations

from typing import Any

from otter_bot.ai.providers.registry import ProviderNotRegisteredError
from otter_bot.ai.tools.base import Tool
from otter_bot.ai.types import ToolContext


class SwitchProviderTool(Tool):
    """Re-pin the channel to another provider; the conversation carries over."""

    @property
    def name(self) -> str:
        return "switch_provider"

    @property
    def description(self) -> str:
        return "Switch to a different AI provider without losing context."

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "provider_id": {
                    "type": "string",
                    "description": "The target provider identifier (e.g., openai, gemini, grok, anthropic).",
                },
            },
            "required": ["provider_id"],
            "additionalProperties": False,
        }

    async def execute(self, ctx: ToolContext, arguments: dict[str, Any]) -> str:
        provider_id = str(arguments.get("provider_id") or "").strip()
        if not provider_id:
            return "Please provide a provider_id to switch to."

        try:
            provider = ctx.switch_provider(provider_id)
        except ProviderNotRegisteredError as e:
            return str(e)

        return (
            f'Switched to provider "{provider.display_name}" for this channel '
            "while keeping the existing context."
        )
