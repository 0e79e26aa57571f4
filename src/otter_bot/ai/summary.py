"""Collect and format channel messages for a time-window summary."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from otter_bot.messenger.base import ChatChannel
from otter_bot.messenger.models import HistoryMessage

MAX_WINDOW = timedelta(days=7)
BATCH_SIZE = 100
MAX_BATCHES = 50

SUMMARY_SYSTEM_PROMPT = "You are an expert at summarizing conversations."

INVALID_DATE_MESSAGE = 'Invalid date format. Please use ISO 8601 format (e.g., "2025-10-03T18:00:00Z").'
WINDOW_TOO_LARGE_MESSAGE = "The maximum timeframe for a summary is one week."
INVERTED_RANGE_MESSAGE = "The start time must be before the end time."
NO_MESSAGES_MESSAGE = "I found no messages in that time range to summarize."


@dataclass(frozen=True, slots=True)
class SummaryPrep:
    """Either a prompt ready for the backend or a user-facing explanation."""

    prompt: str = ""
    error: Optional[str] = None


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_window(start_time: str, end_time: str) -> tuple[datetime, datetime] | str:
    """Check the window; the checks run in a fixed order and the first failure wins."""
    start = parse_timestamp(start_time)
    end = parse_timestamp(end_time)
    if start is None or end is None:
        return INVALID_DATE_MESSAGE
    if end - start > MAX_WINDOW:
        return WINDOW_TOO_LARGE_MESSAGE
    if start > end:
        return INVERTED_RANGE_MESSAGE
    return start, end


async def collect_messages(
    channel: ChatChannel, start: datetime, end: datetime
) -> list[HistoryMessage]:
    """Page backward through history and keep non-bot messages inside [start, end], oldest first."""
    collected: list[HistoryMessage] = []
    before: Optional[str] = None

    for _ in range(MAX_BATCHES):
        batch = await channel.fetch_history(limit=BATCH_SIZE, before=before)
        if not batch:
            break

        for msg in batch:
            if start <= msg.created_at <= end and not msg.author_is_bot:
                collected.append(msg)

        oldest = batch[-1]
        before = oldest.id
        if oldest.created_at < start:
            break

    collected.reverse()
    return collected


async def prepare_summary_prompt(channel: ChatChannel, start_time: str, end_time: str) -> SummaryPrep:
    window = validate_window(start_time, end_time)
    if isinstance(window, str):
        return SummaryPrep(error=window)

    messages = await collect_messages(channel, *window)
    if not messages:
        return SummaryPrep(error=NO_MESSAGES_MESSAGE)

    formatted = "\n".join(f"{msg.author_name}: {msg.content}" for msg in messages)
    prompt = (
        "Please provide a concise summary of the key topics and events from the "
        f"following Discord chat conversation:\n\n---\n{formatted}\n---"
    )
    return SummaryPrep(prompt=prompt)
