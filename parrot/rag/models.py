"""Data types for the retrieval index.

EmbeddedMessage and EmbeddedConversation are persisted; SearchResult and
ConversationThread only exist at query time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NamedTuple


@dataclass
class EmbeddedMessage:
    """An incoming message that received a direct reply, with its embedding.

    Attributes:
        message_id: Upsert key.
        correspondent_id: Contact or group the message belongs to.
        content: Text that was embedded.
        embedding: Vector of the content.
        is_self: Whether the profiled person wrote the message.
        timestamp: When the message was sent.
        response_content: The self-authored reply that followed, if any.
    """

    message_id: int
    correspondent_id: int
    content: str
    embedding: list[float]
    is_self: bool
    timestamp: datetime
    response_content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "correspondent_id": self.correspondent_id,
            "content": self.content,
            "embedding": self.embedding,
            "is_self": self.is_self,
            "timestamp": self.timestamp.isoformat(),
            "response_content": self.response_content,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmbeddedMessage:
        return cls(
            message_id=int(data["message_id"]),
            correspondent_id=int(data["correspondent_id"]),
            content=data["content"],
            embedding=[float(x) for x in data["embedding"]],
            is_self=bool(data.get("is_self", False)),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            response_content=data.get("response_content"),
        )


@dataclass
class ConversationMessage:
    """One turn inside an embedded conversation thread."""

    content: str
    is_self: bool
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "is_self": self.is_self,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationMessage:
        return cls(
            content=data["content"],
            is_self=bool(data["is_self"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class EmbeddedConversation:
    """A 4-8 message exchange embedded as one unit.

    The id is ``conv_<correspondent id>_<first message id>``.
    """

    id: str
    correspondent_id: int
    messages: list[ConversationMessage]
    embedding: list[float]
    timestamp: datetime
    topic: str | None = None

    @staticmethod
    def make_id(correspondent_id: int, first_message_id: int) -> str:
        return f"conv_{correspondent_id}_{first_message_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "correspondent_id": self.correspondent_id,
            "messages": [m.to_dict() for m in self.messages],
            "embedding": self.embedding,
            "timestamp": self.timestamp.isoformat(),
            "topic": self.topic,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmbeddedConversation:
        return cls(
            id=data["id"],
            correspondent_id=int(data["correspondent_id"]),
            messages=[ConversationMessage.from_dict(m) for m in data["messages"]],
            embedding=[float(x) for x in data["embedding"]],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            topic=data.get("topic"),
        )


@dataclass
class SearchResult:
    """Result from similarity search with its cosine score."""

    message: EmbeddedMessage
    similarity: float


class SimilarPair(NamedTuple):
    """A past (incoming, reply) exchange similar to the query."""

    other_text: str
    self_text: str
    similarity: float


@dataclass
class ConversationThread:
    """Query-time view of a similar past conversation."""

    messages: list[ConversationMessage] = field(default_factory=list)
    similarity: float = 0.0

    def formatted(self, contact_name: str, user_name: str) -> str:
        """Render as a two-party transcript, one "Speaker: text" line per turn."""
        return "\n".join(
            f"{user_name if m.is_self else contact_name}: {m.content}" for m in self.messages
        )
