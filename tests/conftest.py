"""Shared fakes for the agent tests: an in-memory chat channel and a scripted provider."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from otter_bot.ai.providers.base import AiProvider
from otter_bot.ai.types import ProviderChatResponse, ProviderToolDefinition, ToolChoice
from otter_bot.messenger.base import ChatChannel
from otter_bot.messenger.models import HistoryMessage, IncomingMessage, OutgoingMessage

BOT_USER_ID = "999"
BASE_TIME = datetime(2025, 10, 3, 12, 0, tzinfo=timezone.utc)


class FakeChannel(ChatChannel):
    """Channel backed by a chronological list of messages."""

    def __init__(self, channel_id: str = "chan-1", messages: Optional[list[HistoryMessage]] = None):
        self._channel_id = channel_id
        self.messages = list(messages or [])
        self.replies: list[OutgoingMessage] = []
        self.history_calls: list[tuple[int, Optional[str]]] = []
        self.typing_count = 0
        self.typing_error: Optional[Exception] = None

    @property
    def channel_id(self) -> str:
        return self._channel_id

    async def fetch_history(self, limit: int, before: Optional[str] = None) -> list[HistoryMessage]:
        self.history_calls.append((limit, before))
        ids = [m.id for m in self.messages]
        end = ids.index(before) if before in ids else len(self.messages)
        older = self.messages[:end]
        return list(reversed(older))[:limit]

    async def send_reply(self, message: OutgoingMessage) -> None:
        self.replies.append(message)

    async def send_typing(self) -> None:
        if self.typing_error is not None:
            raise self.typing_error
        self.typing_count += 1

    @property
    def reply_texts(self) -> list[str]:
        return [r.text for r in self.replies]


class ScriptedProvider(AiProvider):
    """Provider that replays queued responses and records every request."""

    def __init__(
        self,
        provider_id: str,
        host_tools: list[ProviderToolDefinition],
        responses: Optional[list[Any]] = None,
        personality: str = "",
        summary: Optional[str] = "A short summary.",
    ):
        self.id = provider_id
        self.display_name = provider_id.title()
        self.personality = personality or f"{provider_id} personality"
        super().__init__(f"{provider_id}-model", host_tools)
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []
        self.summary = summary
        self.completions: list[tuple[str, str]] = []

    async def chat(
        self,
        entries,
        tools,
        tool_choice: ToolChoice = ToolChoice.AUTO,
        continuation: Any = None,
    ) -> ProviderChatResponse:
        self.calls.append(
            {
                "entries": list(entries),
                "tools": list(tools),
                "tool_choice": tool_choice,
                "continuation": continuation,
            }
        )
        await asyncio.sleep(0)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def supports_summarize(self) -> bool:
        return True

    async def _complete(self, system: str, prompt: str) -> Optional[str]:
        self.completions.append((system, prompt))
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary


def make_history(
    count: int,
    start: datetime = BASE_TIME,
    step: timedelta = timedelta(minutes=1),
    author_is_bot: bool = False,
) -> list[HistoryMessage]:
    """Chronological messages m0..m{count-1}, one *step* apart."""
    return [
        HistoryMessage(
            id=f"m{i}",
            author_id=f"user-{i % 3}",
            author_name=f"User{i % 3}",
            author_is_bot=author_is_bot,
            content=f"message {i}",
            created_at=start + step * i,
        )
        for i in range(count)
    ]


def make_mention(
    text: str = "@Otter hello",
    channel_id: str = "chan-1",
    message_id: str = "mention-1",
) -> IncomingMessage:
    return IncomingMessage(
        id=message_id,
        channel_id=channel_id,
        author_id="user-1",
        author_name="Alice",
        text=text,
        timestamp=BASE_TIME,
        bot_user_id=BOT_USER_ID,
        bot_name="Otter",
    )


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def mention():
    return make_mention()
