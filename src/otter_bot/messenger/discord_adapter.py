"""Discord messenger adapter using discord.py v2+."""

from __future__ import annotations

import asyncio
import io
from datetime import datetime, timezone
from typing import Any, Optional

import discord
from discord.ext import commands

from otter_bot.log import get_logger
from otter_bot.messenger.base import ChatChannel, MessengerAdapter
from otter_bot.messenger.models import (
    Attachment,
    HistoryMessage,
    IncomingMessage,
    OutgoingMessage,
)

logger = get_logger(__name__)


def _attachments(message: discord.Message) -> list[Attachment]:
    return [
        Attachment(url=att.url, content_type=att.content_type or "", filename=att.filename)
        for att in message.attachments
    ]


class DiscordChannel(ChatChannel):
    """ChatChannel bound to the Discord message that mentioned the bot."""

    def __init__(self, message: discord.Message):
        self._message = message
        self._channel = message.channel

    @property
    def channel_id(self) -> str:
        return str(self._channel.id)

    async def fetch_history(self, limit: int, before: Optional[str] = None) -> list[HistoryMessage]:
        cursor: discord.abc.Snowflake = (
            discord.Object(id=int(before)) if before is not None else self._message
        )
        history: list[HistoryMessage] = []
        async for msg in self._channel.history(limit=limit, before=cursor):
            history.append(
                HistoryMessage(
                    id=str(msg.id),
                    author_id=str(msg.author.id),
                    author_name=msg.author.display_name,
                    author_is_bot=msg.author.bot,
                    content=msg.content or "",
                    created_at=msg.created_at,
                    attachments=_attachments(msg),
                )
            )
        return history

    async def send_reply(self, message: OutgoingMessage) -> None:
        files = [discord.File(io.BytesIO(f.data), filename=f.filename) for f in message.files]
        await self._message.reply(content=message.text or None, files=files)

    async def send_typing(self) -> None:
        if hasattr(self._channel, "typing"):
            await self._channel.typing()  # type: ignore[union-attr]


class DiscordAdapter(MessengerAdapter):
    """Discord bot adapter using discord.py."""

    def __init__(self, token: str):
        super().__init__(token)
        intents = discord.Intents.default()
        intents.message_content = True
        self._bot = commands.Bot(command_prefix="!", intents=intents)
        self._task: asyncio.Task[Any] | None = None
        self._ready = asyncio.Event()
        self._turns: set[asyncio.Task[None]] = set()

        @self._bot.event
        async def on_ready() -> None:
            logger.info("discord_bot_ready", user=str(self._bot.user))
            self._ready.set()

        @self._bot.event
        async def on_message(message: discord.Message) -> None:
            if message.author.bot:
                return
            if self._bot.user is None or self._bot.user not in message.mentions:
                return
            self._dispatch(message)

    @property
    def platform_name(self) -> str:
        return "discord"

    async def start(self) -> None:
        if not self.token:
            raise ValueError("Discord bot token not configured")

        self._task = asyncio.create_task(self._bot.start(self.token))
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=30)
        except asyncio.TimeoutError:
            logger.warning("discord_ready_timeout")

        logger.info("discord_adapter_started")

    async def stop(self) -> None:
        await self._bot.close()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except (asyncio.CancelledError, Exception):
                pass
        logger.info("discord_adapter_stopped")

    def _dispatch(self, message: discord.Message) -> None:
        """Run the mention callback as its own task so the gateway loop keeps reading."""
        if not self._mention_callback:
            return
        task = asyncio.create_task(self._on_mention(message))
        self._turns.add(task)
        task.add_done_callback(self._turns.discard)

    async def _on_mention(self, message: discord.Message) -> None:
        bot_user = self._bot.user
        assert bot_user is not None
        incoming = IncomingMessage(
            id=str(message.id),
            channel_id=str(message.channel.id),
            author_id=str(message.author.id),
            author_name=message.author.display_name,
            author_is_bot=message.author.bot,
            text=message.content or "",
            timestamp=message.created_at or datetime.now(timezone.utc),
            bot_user_id=str(bot_user.id),
            bot_name=bot_user.display_name,
            attachments=_attachments(message),
        )

        try:
            await self._mention_callback(incoming, DiscordChannel(message))  # type: ignore[misc]
        except Exception as e:
            logger.error(
                "discord_handler_error", error=str(e), channel_id=str(message.channel.id)
            )
