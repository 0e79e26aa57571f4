"""Channel summary tool."""

from __future__ import annotations

from typing import Any

from otter_bot.ai.tools.base import Tool
from otter_bot.ai.types import ToolContext


class SummarizeMessagesTool(Tool):
    """Summarize channel messages in a time window using the active provider."""

    @property
    def name(self) -> str:
        return "summarize_messages"

    @property
    def description(self) -> str:
        return (
            "Summarize the messages in the channel within a given timeframe. "
            "The user's current time is an ISO 8601 string. "
            "The maximum timeframe to summarize is one week."
        )

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "start_time": {
                    "type": "string",
                    "format": "date-time",
                    "description": (
                        "The start of the time range for the summary, in ISO 8601 format. "
                        'E.g., "2025-10-03T03:00:00Z".'
                    ),
                },
                "end_time": {
                    "type": "string",
                    "format": "date-time",
                    "description": (
                        "The end of the time range for the summary, in ISO 8601 format. "
                        'If the user asks for "today", this should be the current time.'
                    ),
                },
            },
            "required": ["start_time", "end_time"],
            "additionalProperties": False,
        }

    async def execute(self, ctx: ToolContext, arguments: dict[str, Any]) -> str:
        if not ctx.provider.supports_summarize:
            return "This provider does not support summarizing messages."
        start_time = str(arguments.get("start_time") or "")
        end_time = str(arguments.get("end_time") or "")
        return await ctx.provider.summarize_messages(ctx.channel, start_time, end_time)
