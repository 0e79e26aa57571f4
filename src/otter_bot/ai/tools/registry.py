"""Catalog of host-executed tools."""

from __future__ import annotations

from otter_bot.ai.tools.base import Tool
from otter_bot.ai.types import ProviderToolDefinition
from otter_bot.log import get_logger

logger = get_logger(__name__)


class ToolCatalog:
    """Registry of all tools the bot can execute itself."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        logger.debug("tool_registered", tool_name=tool.name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def all_tools(self) -> list[Tool]:
        return list(self._tools.values())

    def provider_definitions(self) -> list[ProviderToolDefinition]:
        """Host-handled function definitions for providers to advertise."""
        return [tool.to_provider_definition() for tool in self._tools.values()]

    def discover_and_register(self) -> None:
        """Register the built-in tools."""
        from otter_bot.ai.tools.generate_image import GenerateImageTool
        from otter_bot.ai.tools.summarize import SummarizeMessagesTool
        from otter_bot.ai.tools.switch_provider import SwitchProviderTool

        self.register(SummarizeMessagesTool())
        self.register(GenerateImageTool())
        self.register(SwitchProviderTool())
