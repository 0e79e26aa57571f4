"""Agent orchestrator: mention -> conversation state -> provider -> host tools -> reply."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import structlog

from otter_bot.ai.conversation_store import Continuation, ConversationState, ConversationStore
from otter_bot.ai.prompt import (
    build_developer_prompt,
    build_history_entries,
    build_user_entry,
    developer_entry,
    refresh_developer_entry,
)
from otter_bot.ai.providers.base import AiProvider
from otter_bot.ai.providers.registry import ProviderRegistry
from otter_bot.ai.tools.registry import ToolCatalog
from otter_bot.ai.types import (
    ConversationEntry,
    ProviderChatResponse,
    ProviderToolCall,
    ToolCallEntry,
    ToolChoice,
    ToolContext,
    ToolResultEntry,
)
from otter_bot.log import get_logger
from otter_bot.messenger.base import ChatChannel
from otter_bot.messenger.models import IncomingMessage, OutgoingMessage

logger = get_logger(__name__)

NO_PROVIDER_REPLY = "No AI provider is configured for this bot."
APOLOGY_REPLY = "Sorry, I encountered an error while processing your request."
FILLER_REPLY = "I've processed the information, but I don't have anything further to add."
MAX_MESSAGE_LENGTH = 2000
TYPING_INTERVAL_SECONDS = 8.0


class WorkingIndicator:
    """Re-sends the typing indicator until the turn ends or the first send fails."""

    def __init__(self, channel: ChatChannel, interval: float = TYPING_INTERVAL_SECONDS):
        self._channel = channel
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> WorkingIndicator:
        self._task = asyncio.create_task(self._run())
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                await self._channel.send_typing()
            except Exception as e:
                logger.debug("typing_indicator_stopped", error=str(e))
                return
            await asyncio.sleep(self._interval)


class AgentOrchestrator:
    """Handles one mention end-to-end.

    A turn works on a private copy of the channel's entries and writes the
    result back to the store in a single replace once the reply is out. A
    failed turn leaves the stored state as it was.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        catalog: ToolCatalog,
        store: ConversationStore,
        timezone: str = "UTC",
        history_limit: int = 10,
        serialize_turns: bool = True,
        typing_interval: float = TYPING_INTERVAL_SECONDS,
    ):
        self._registry = registry
        self._catalog = catalog
        self._store = store
        self._timezone = timezone
        self._history_limit = history_limit
        self._serialize_turns = serialize_turns
        self._typing_interval = typing_interval
        self._channel_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def handle_mention(self, message: IncomingMessage, channel: ChatChannel) -> None:
        """Answer a mention. All user-visible effects go through *channel*."""
        if not self._serialize_turns:
            await self._handle(message, channel)
            return

        channel_id = message.channel_id
        lock = self._channel_locks.setdefault(channel_id, asyncio.Lock())
        self._lock_users[channel_id] = self._lock_users.get(channel_id, 0) + 1
        try:
            async with lock:
                await self._handle(message, channel)
        finally:
            # the lock goes away with its last holder or waiter
            self._lock_users[channel_id] -= 1
            if not self._lock_users[channel_id]:
                del self._lock_users[channel_id]
                del self._channel_locks[channel_id]

    async def _handle(self, message: IncomingMessage, channel: ChatChannel) -> None:
        channel_id = message.channel_id
        provider = self._registry.get_for_channel(channel_id)
        if provider is None:
            logger.warning("no_provider_configured", channel_id=channel_id)
            await channel.send_reply(OutgoingMessage(text=NO_PROVIDER_REPLY))
            return

        with structlog.contextvars.bound_contextvars(channel_id=channel_id, message_id=message.id):
            try:
                async with WorkingIndicator(channel, self._typing_interval):
                    reply, state = await self._run_turn(message, channel, provider)
                    await self._send_reply(channel, reply)
                self._store.set(channel_id, state)
                logger.info(
                    "agent_turn_completed",
                    provider=state.provider_id,
                    entry_count=len(state.entries),
                )
            except Exception as e:
                logger.error("agent_turn_failed", error=str(e), exc_info=True)
                await channel.send_reply(OutgoingMessage(text=APOLOGY_REPLY))

    async def _run_turn(
        self, message: IncomingMessage, channel: ChatChannel, provider: AiProvider
    ) -> tuple[str, ConversationState]:
        channel_id = message.channel_id
        self._store.prune_expired()
        state = self._store.get(channel_id)

        continuation: Optional[Continuation] = None
        if state is None:
            entries = await self._build_initial_entries(message, channel, provider)
            logger.info("conversation_started", provider=provider.id, entry_count=len(entries))
        else:
            entries = list(state.entries)
            continuation = state.continuation
            if state.provider_id != provider.id:
                refresh_developer_entry(entries, self._developer_prompt(message.bot_name, provider))
                logger.info("conversation_provider_changed", old=state.provider_id, new=provider.id)

        entries.append(build_user_entry(message))

        active = provider
        response = await active.chat(
            entries,
            active.supported_tools,
            ToolChoice.AUTO,
            continuation=self._continuation_for(active, continuation),
        )
        continuation = self._carry(active, continuation, response)

        pending = [call for call in response.tool_calls if not active.is_backend_native(call.name)]
        entries.extend(self._recorded_entries(response, {call.id for call in pending}))
        if pending:
            for call in pending:
                entries.append(await self._execute_tool(call, message, channel, active))

            refreshed = self._registry.get_for_channel(channel_id)
            if refreshed is not None and refreshed.id != active.id:
                active = refreshed
                refresh_developer_entry(entries, self._developer_prompt(message.bot_name, active))
                logger.info("provider_switched_mid_turn", provider=active.id)

            # one round only: the follow-up may not call tools again
            response = await active.chat(
                entries,
                active.supported_tools,
                ToolChoice.NONE,
                continuation=self._continuation_for(active, continuation),
            )
            if response.tool_calls:
                logger.warning("follow_up_tool_calls_ignored", tools=[c.name for c in response.tool_calls])
            entries.extend(self._recorded_entries(response, set()))
            continuation = self._carry(active, continuation, response)

        state = ConversationState(provider_id=active.id, entries=entries, continuation=continuation)
        return response.text or FILLER_REPLY, state

    async def _execute_tool(
        self,
        call: ProviderToolCall,
        message: IncomingMessage,
        channel: ChatChannel,
        provider: AiProvider,
    ) -> ToolResultEntry:
        """Run one host tool; every outcome, including failure, becomes a tool result."""
        tool = self._catalog.get(call.name) if provider.is_host_handled(call.name) else None
        if tool is None:
            logger.warning("tool_not_supported", tool=call.name)
            return ToolResultEntry(
                id=call.id,
                name=call.name,
                content=f'The tool "{call.name}" is not supported by this bot.',
            )

        channel_id = message.channel_id
        ctx = ToolContext(
            message=message,
            channel=channel,
            provider_id=provider.id,
            provider=provider,
            switch_provider=lambda provider_id: self._registry.set_for_channel(channel_id, provider_id),
        )
        try:
            logger.info("tool_execute", tool=call.name)
            output = await tool.execute(ctx, dict(call.arguments))
        except Exception as e:
            logger.error("tool_execution_error", tool=call.name, error=str(e), exc_info=True)
            output = f'The tool "{call.name}" failed to run.'
        return ToolResultEntry(id=call.id, name=call.name, content=output)

    async def _build_initial_entries(
        self, message: IncomingMessage, channel: ChatChannel, provider: AiProvider
    ) -> list[ConversationEntry]:
        entries: list[ConversationEntry] = [
            developer_entry(self._developer_prompt(message.bot_name, provider))
        ]
        history = await channel.fetch_history(limit=self._history_limit, before=message.id)
        entries.extend(build_history_entries(history, message.bot_user_id))
        return entries

    def _developer_prompt(self, bot_name: str, provider: AiProvider) -> str:
        return build_developer_prompt(bot_name, provider, tz=self._timezone)

    @staticmethod
    def _continuation_for(provider: AiProvider, continuation: Optional[Continuation]) -> Any:
        """Only the adapter that produced continuation data ever sees it."""
        if continuation is not None and continuation.provider_id == provider.id:
            return continuation.data
        return None

    @staticmethod
    def _recorded_entries(response: ProviderChatResponse, answered: set[str]) -> list[ConversationEntry]:
        """Output entries to keep; a tool call is only recorded when a result will follow it."""
        return [
            entry
            for entry in response.output_entries
            if not isinstance(entry, ToolCallEntry) or entry.id in answered
        ]

    @staticmethod
    def _carry(
        provider: AiProvider, previous: Optional[Continuation], response: ProviderChatResponse
    ) -> Optional[Continuation]:
        if response.continuation is not None:
            return Continuation(provider.id, response.continuation)
        return previous

    async def _send_reply(self, channel: ChatChannel, text: str) -> None:
        for chunk in split_message(text, max_length=MAX_MESSAGE_LENGTH):
            await channel.send_reply(OutgoingMessage(text=chunk))


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split a message into chunks that fit within platform limits."""
    if len(text) <= max_length:
        return [text]

    chunks = []
    while text:
        if len(text) <= max_length:
            chunks.append(text)
            break
        # Try to split at a newline
        split_pos = text.rfind("\n", 0, max_length)
        if split_pos <= 0:
            split_pos = max_length
        chunks.append(text[:split_pos])
        text = text[split_pos:].lstrip("\n")
    return chunks
