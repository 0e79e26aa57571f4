"""Normalized conversation model shared by the orchestrator, tools and provider adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

if TYPE_CHECKING:
    from otter_bot.ai.providers.base import AiProvider
    from otter_bot.messenger.base import ChatChannel
    from otter_bot.messenger.models import IncomingMessage


class Role(StrEnum):
    SYSTEM = "system"
    DEVELOPER = "developer"
    ASSISTANT = "assistant"
    USER = "user"


class ToolKind(StrEnum):
    FUNCTION = "function"
    WEB_SEARCH = "web_search"
    CODE_INTERPRETER = "code_interpreter"


class ToolChoice(StrEnum):
    AUTO = "auto"
    NONE = "none"


@dataclass(frozen=True, slots=True)
class TextPart:
    text: str


@dataclass(frozen=True, slots=True)
class ImagePart:
    url: str


ContentPart = Union[TextPart, ImagePart]


@dataclass(slots=True)
class MessageEntry:
    role: Role
    content: list[ContentPart] = field(default_factory=list)
    name: Optional[str] = None

    def text(self) -> str:
        """Concatenate the text parts, ignoring images."""
        return "\n".join(p.text for p in self.content if isinstance(p, TextPart))


@dataclass(slots=True)
class ToolCallEntry:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ToolResultEntry:
    id: str
    name: str
    content: str


ConversationEntry = Union[MessageEntry, ToolCallEntry, ToolResultEntry]


def text_message(role: Role, text: str) -> MessageEntry:
    return MessageEntry(role=role, content=[TextPart(text)])


def ensure_content(parts: list[ContentPart]) -> list[ContentPart]:
    """Never hand a backend an empty content array."""
    return parts if parts else [TextPart("")]


@dataclass(frozen=True, slots=True)
class ProviderToolDefinition:
    """A tool as advertised to one backend.

    Function tools with ``host_handled`` set are executed by the bot; anything
    else is resolved by the backend before it replies.
    """

    name: str
    kind: ToolKind
    description: str = ""
    parameters: Optional[dict[str, Any]] = None
    host_handled: bool = False


@dataclass(frozen=True, slots=True)
class ProviderToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderChatResponse:
    """Unified response from any backend."""

    text: Optional[str] = None
    tool_calls: list[ProviderToolCall] = field(default_factory=list)
    output_entries: list[ConversationEntry] = field(default_factory=list)
    continuation: Any = None  # opaque, only meaningful to the adapter that produced it
    raw: Any = None


def build_output_entries(text: Optional[str], tool_calls: list[ProviderToolCall]) -> list[ConversationEntry]:
    """Audit trail for one backend reply: every call in order, then the text."""
    entries: list[ConversationEntry] = [
        ToolCallEntry(id=call.id, name=call.name, arguments=dict(call.arguments))
        for call in tool_calls
    ]
    if text:
        entries.append(text_message(Role.ASSISTANT, text))
    return entries


@dataclass
class ToolContext:
    """Everything a host tool may touch while it runs."""

    message: IncomingMessage
    channel: ChatChannel
    provider_id: str
    provider: AiProvider
    switch_provider: Callable[[str], AiProvider]
