"""In-memory per-channel conversation state with idle expiry."""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from otter_bot.ai.types import ConversationEntry
from otter_bot.log import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5 * 60


@dataclass(frozen=True, slots=True)
class Continuation:
    """Opaque backend data tagged with the adapter that produced it."""

    provider_id: str
    data: Any


@dataclass
class ConversationState:
    provider_id: str
    entries: list[ConversationEntry] = field(default_factory=list)
    timestamp: float = 0.0
    continuation: Optional[Continuation] = None


class ConversationStore:
    """Channel id -> ConversationState, evicted lazily once idle for the timeout.

    Every write replaces the whole state object; readers never observe a
    half-updated state. Two overlapping writers on one channel are last-write-wins.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._timeout = timeout_seconds
        self._clock = clock
        self._states: dict[str, ConversationState] = {}

    def _expired(self, state: ConversationState, now: float) -> bool:
        return now - state.timestamp >= self._timeout

    def get(self, channel_id: str) -> ConversationState | None:
        state = self._states.get(channel_id)
        if state is None:
            return None
        if self._expired(state, self._clock()):
            del self._states[channel_id]
            logger.debug("conversation_expired", channel_id=channel_id)
            return None
        return state

    def set(self, channel_id: str, state: ConversationState) -> None:
        """Replace the channel's state, stamping it with the current time."""
        self._states[channel_id] = dataclasses.replace(state, timestamp=self._clock())

    def update(self, channel_id: str, entries: list[ConversationEntry]) -> None:
        existing = self.get(channel_id)
        if existing is None:
            return
        self._states[channel_id] = dataclasses.replace(
            existing, entries=list(entries), timestamp=self._clock()
        )

    def touch(self, channel_id: str) -> None:
        existing = self.get(channel_id)
        if existing is None:
            return
        self._states[channel_id] = dataclasses.replace(existing, timestamp=self._clock())

    def switch_provider(self, channel_id: str, provider_id: str) -> None:
        existing = self.get(channel_id)
        if existing is None:
            return
        self._states[channel_id] = dataclasses.replace(
            existing, provider_id=provider_id, timestamp=self._clock()
        )

    def prune_expired(self) -> int:
        """Drop every expired state; returns how many were removed."""
        now = self._clock()
        expired = [cid for cid, state in self._states.items() if self._expired(state, now)]
        for channel_id in expired:
            del self._states[channel_id]
        return len(expired)

    def __len__(self) -> int:
        return len(self._states)
