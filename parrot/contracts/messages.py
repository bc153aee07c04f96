"""Message and contact data contracts.

The core only ever sees these shapes; history sources (SQLite store, chat
export parser, external WhatsApp database adapter) convert into them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from parrot.style_profile import StyleProfile


class Sender(str, Enum):
    """Author of a message relative to the profiled person."""

    SELF = "self"
    OTHER = "other"


@dataclass(frozen=True)
class Message:
    """A single chat message.

    Attributes:
        id: Stable message identifier (0 for not-yet-stored messages).
        correspondent_id: Contact or group the message belongs to.
        sender: SELF for the profiled person, OTHER for the correspondent.
        content: Message text.
        timestamp: When the message was sent (local time).
    """

    id: int
    correspondent_id: int
    sender: Sender
    content: str
    timestamp: datetime

    def __post_init__(self) -> None:
        """Validate field constraints."""
        if self.id < 0:
            msg = f"id must be >= 0, got {self.id}"
            raise ValueError(msg)

    @property
    def is_self(self) -> bool:
        return self.sender is Sender.SELF


@dataclass
class Contact:
    """A correspondent: a single contact or a group chat.

    Attributes:
        id: Correspondent identifier.
        name: Display name (group name for groups).
        auto_reply_enabled: Whether replies may be generated for this contact.
        is_group: Whether this correspondent is a group chat.
        created_at: When the contact was first imported.
        style_profile: Cached StyleProfile, None until built.
    """

    id: int
    name: str
    auto_reply_enabled: bool = False
    is_group: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    style_profile: StyleProfile | None = None


def find_conversation_pairs(messages: list[Message]) -> list[tuple[Message, Message]]:
    """Return (other message, immediate self reply) pairs in order."""
    pairs: list[tuple[Message, Message]] = []
    for current, following in zip(messages, messages[1:]):
        if not current.is_self and following.is_self:
            pairs.append((current, following))
    return pairs
