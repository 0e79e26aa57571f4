"""Platform-neutral message models exchanged between the messenger and the agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Attachment:
    """Inbound attachment, referenced by its hosted URL."""

    url: str
    content_type: str = ""
    filename: str = "attachment"

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")


@dataclass(frozen=True, slots=True)
class FileUpload:
    """Outbound binary file (generated images)."""

    data: bytes
    media_type: str = "image/png"
    filename: str = "image.png"


@dataclass(frozen=True, slots=True)
class HistoryMessage:
    """A message fetched from channel history."""

    id: str
    author_id: str
    author_name: str
    author_is_bot: bool
    content: str
    created_at: datetime
    attachments: list[Attachment] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    """A mention of the bot, normalized from the platform event."""

    id: str
    channel_id: str
    author_id: str
    author_name: str
    text: str
    timestamp: datetime
    bot_user_id: str
    bot_name: str
    author_is_bot: bool = False
    attachments: list[Attachment] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    text: str = ""
    files: list[FileUpload] = field(default_factory=list)
