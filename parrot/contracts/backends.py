"""Backend and history-source interfaces.

Everything the core consumes from the outside world is expressed here as a
Protocol so tests can supply in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from parrot.contracts.messages import Message


class EmbeddingClient(Protocol):
    """Batch text -> vector service.

    Implementations preserve input order, return exactly one vector per
    input text with a fixed dimensionality, and fail atomically by raising
    EmbeddingError instead of returning a partial list.
    """

    @property
    def is_configured(self) -> bool:
        """Whether credentials/endpoint are present."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts in one request."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...


class GenerationClient(Protocol):
    """Single request/response text generation service."""

    @property
    def name(self) -> str:
        """Human-readable backend name for logs."""
        ...

    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        """Generate a completion. Raises GenerationError on failure."""
        ...


class HistorySource(Protocol):
    """Read-only access to a correspondent's message history."""

    def get_messages(self, correspondent_id: int, limit: int = 100) -> list[Message]:
        """Return the most recent ``limit`` messages in chronological order."""
        ...

    def get_message_count(self, correspondent_id: int) -> int:
        """Return the total number of stored messages for a correspondent."""
        ...
