"""Build the developer prompt and convert chat messages into conversation entries."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional, Union
from zoneinfo import ZoneInfo

from otter_bot.ai.types import (
    ContentPart,
    ConversationEntry,
    ImagePart,
    MessageEntry,
    Role,
    TextPart,
    text_message,
)
from otter_bot.messenger.models import IncomingMessage

if TYPE_CHECKING:
    from otter_bot.ai.providers.base import AiProvider
    from otter_bot.messenger.models import HistoryMessage

TOOL_GUIDANCE: dict[str, str] = {
    "summarize_messages": "Use 'summarize_messages' only when explicitly asked for a summary.",
    "generate_image": "Use 'generate_image' only when the user asks for an image.",
    "switch_provider": "Use 'switch_provider' only when the user asks to change the AI provider or model.",
    "web_search": (
        "Use 'web_search' only when local context is insufficient, the topic requires up-to-date "
        "information, or the user explicitly wants fresh/external info; never for convenience."
    ),
    "code_interpreter": (
        "Use 'code_interpreter' only when real computation or data wrangling is needed; "
        "not for trivial math."
    ),
}


def build_developer_prompt(
    bot_name: str,
    provider: AiProvider,
    tz: str = "UTC",
    now: Optional[datetime] = None,
) -> str:
    current = (now or datetime.now(ZoneInfo(tz))).astimezone(ZoneInfo(tz))
    lines = [f"You are {bot_name}, a helpful Discord chatbot. Personality: {provider.personality}"]

    guidance = [TOOL_GUIDANCE[t.name] for t in provider.supported_tools if t.name in TOOL_GUIDANCE]
    if guidance:
        lines.append("Tools:")
        lines.extend(f"- {line}" for line in guidance)

    lines.append(
        "Provide one clear response (no multiple versions). "
        f"The current time is {current.isoformat(timespec='seconds')} ({tz})."
    )
    return "\n".join(lines)


def developer_entry(prompt: str) -> MessageEntry:
    return text_message(Role.DEVELOPER, prompt)


def refresh_developer_entry(entries: list[ConversationEntry], prompt: str) -> None:
    """Replace the leading developer entry in place, inserting one if it is missing."""
    first = entries[0] if entries else None
    if isinstance(first, MessageEntry) and first.role in (Role.DEVELOPER, Role.SYSTEM):
        entries[0] = developer_entry(prompt)
    else:
        entries.insert(0, developer_entry(prompt))


def build_user_content(message: Union[IncomingMessage, HistoryMessage]) -> list[ContentPart]:
    """Render a chat message as "DisplayName: content" plus its image attachments."""
    author = message.author_name
    raw = message.text if isinstance(message, IncomingMessage) else message.content
    trimmed = (raw or "").strip()
    parts: list[ContentPart] = [TextPart(f"{author}: {trimmed}" if trimmed else f"{author}:")]
    for attachment in message.attachments:
        if attachment.is_image and attachment.url:
            parts.append(ImagePart(attachment.url))
    return parts


def build_user_entry(message: Union[IncomingMessage, HistoryMessage]) -> MessageEntry:
    return MessageEntry(role=Role.USER, content=build_user_content(message))


def build_history_entries(history: list[HistoryMessage], bot_user_id: str) -> list[ConversationEntry]:
    """Convert newest-first channel history into chronological entries.

    Other bots are dropped; the bot's own messages become assistant turns.
    """
    entries: list[ConversationEntry] = []
    for msg in reversed(history):
        if msg.author_id == bot_user_id:
            entries.append(text_message(Role.ASSISTANT, msg.content))
        elif not msg.author_is_bot:
            entries.append(build_user_entry(msg))
    return entries
