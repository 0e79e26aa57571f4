"""Abstract messenger interfaces consumed by the agent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from otter_bot.messenger.models import HistoryMessage, IncomingMessage, OutgoingMessage


class ChatChannel(ABC):
    """One channel, scoped to the mention being answered.

    Replies are threaded to the triggering message; history is read relative
    to it.
    """

    @property
    @abstractmethod
    def channel_id(self) -> str:
        ...

    @abstractmethod
    async def fetch_history(self, limit: int, before: Optional[str] = None) -> list[HistoryMessage]:
        """Return up to *limit* messages older than *before*, newest first.

        *before* is an exclusive message-id cursor; None means "before the
        triggering message".
        """
        ...

    @abstractmethod
    async def send_reply(self, message: OutgoingMessage) -> None:
        """Reply to the triggering message."""
        ...

    @abstractmethod
    async def send_typing(self) -> None:
        """Show the typing/working indicator once."""
        ...


MentionCallback = Callable[[IncomingMessage, ChatChannel], Awaitable[None]]


class MessengerAdapter(ABC):
    """Base class for messenger platform adapters.

    To add a new messenger, subclass this and implement all abstract methods.
    """

    def __init__(self, token: str):
        self.token = token
        self._mention_callback: MentionCallback | None = None

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and begin receiving messages."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Gracefully disconnect."""
        ...

    def on_mention(self, callback: MentionCallback) -> None:
        """Register the callback invoked whenever the bot is mentioned."""
        self._mention_callback = callback

    @property
    @abstractmethod
    def platform_name(self) -> str:
        ...
