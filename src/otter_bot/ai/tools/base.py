"""Abstract interface for host-executed tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from otter_bot.ai.types import ProviderToolDefinition, ToolKind

if TYPE_CHECKING:
    from otter_bot.ai.types import ToolContext


class Tool(ABC):
    """Base class for tools the bot runs itself when a model asks for them.

    Tools only return text; recording the result in the conversation is the
    orchestrator's job.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name; the join key against the provider's advertised tools."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema dict describing accepted parameters."""
        ...

    @abstractmethod
    async def execute(self, ctx: ToolContext, arguments: dict[str, Any]) -> str:
        """Run the tool on the model's decoded arguments and return a text result."""
        ...

    def to_provider_definition(self) -> ProviderToolDefinition:
        return ProviderToolDefinition(
            name=self.name,
            kind=ToolKind.FUNCTION,
            description=self.description,
            parameters=self.input_schema,
            host_handled=True,
        )
