"""In-memory vector store with JSON persistence.

Holds two collections: embedded messages (incoming message plus the reply
it got) and embedded conversation threads. Both are kept in memory, searched
by brute-force cosine similarity and written to the data directory after
bulk writes.

Example:
    from parrot.rag.vector_store import VectorStore

    store = VectorStore(Path("~/.parrot").expanduser())
    store.add(embedded_message)
    store.save_to_disk()
    for result in store.search(query_vector, correspondent_id=3, limit=5):
        print(f"{result.similarity:.2f}: {result.message.content}")
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import numpy as np
import orjson

from parrot.errors import ErrorCode, IndexPersistenceError
from parrot.rag.models import (
    EmbeddedConversation,
    EmbeddedMessage,
    SearchResult,
    SimilarPair,
)

logger = logging.getLogger(__name__)

EMBEDDINGS_FILE = "embeddings.json"
CONVERSATIONS_FILE = "conversations.json"

# Pair search threshold
PAIR_MIN_SIMILARITY = 0.3
# Thread embeddings are broader, so the bar is lower
THREAD_MIN_SIMILARITY = 0.25


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 for mismatched or empty dimensions and for zero-norm vectors.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.ndim != 1 or va.shape != vb.shape or va.size == 0:
        return 0.0
    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0 or not np.isfinite(denominator):
        return 0.0
    return float(np.dot(va, vb) / denominator)


class VectorStore:
    """Embedded messages and conversations, searchable by similarity.

    Thread-safety:
        Mutations hold ``_lock``; searches copy the collection under the lock
        and score the copy without it. File writes are serialized by
        ``_save_lock`` so a save never blocks readers.
    """

    def __init__(self, data_dir: Path) -> None:
        """Initialize the store and load both collections from ``data_dir``.

        Args:
            data_dir: Directory holding embeddings.json and conversations.json.
        """
        self.data_dir = data_dir
        self.embeddings_path = data_dir / EMBEDDINGS_FILE
        self.conversations_path = data_dir / CONVERSATIONS_FILE
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._messages: dict[int, EmbeddedMessage] = {}
        self._conversations: dict[str, EmbeddedConversation] = {}

        for message in self._load(self.embeddings_path, EmbeddedMessage.from_dict):
            self._messages[message.message_id] = message
        for conversation in self._load(self.conversations_path, EmbeddedConversation.from_dict):
            self._conversations[conversation.id] = conversation

    # =========================================================================
    # Mutation
    # =========================================================================

    def add(self, message: EmbeddedMessage) -> None:
        """Insert or replace the entry with the same message_id."""
        with self._lock:
            self._messages.pop(message.message_id, None)
            self._messages[message.message_id] = message

    def add_conversation(self, conversation: EmbeddedConversation) -> None:
        """Insert or replace the conversation with the same id."""
        with self._lock:
            self._conversations.pop(conversation.id, None)
            self._conversations[conversation.id] = conversation

    def remove_correspondent(self, correspondent_id: int) -> int:
        """Drop every entry for a correspondent. Returns the number removed."""
        with self._lock:
            message_ids = [
                key for key, m in self._messages.items() if m.correspondent_id == correspondent_id
            ]
            conversation_ids = [
                key
                for key, c in self._conversations.items()
                if c.correspondent_id == correspondent_id
            ]
            for key in message_ids:
                del self._messages[key]
            for key in conversation_ids:
                del self._conversations[key]
        logger.info(
            "Removed %d embeddings and %d conversations for correspondent %s",
            len(message_ids),
            len(conversation_ids),
            correspondent_id,
        )
        return len(message_ids) + len(conversation_ids)

    # =========================================================================
    # Search
    # =========================================================================

    def search(
        self,
        query_embedding: Sequence[float],
        correspondent_id: int | None = None,
        limit: int = 10,
        min_similarity: float = 0.5,
    ) -> list[SearchResult]:
        """Most similar embedded messages, highest similarity first."""
        with self._lock:
            candidates = list(self._messages.values())

        query = np.asarray(query_embedding, dtype=np.float64)
        results = []
        for message in candidates:
            if correspondent_id is not None and message.correspondent_id != correspondent_id:
                continue
            similarity = cosine_similarity(query, message.embedding)
            if similarity >= min_similarity:
                results.append(SearchResult(message=message, similarity=similarity))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def find_similar_conversations(
        self,
        query_embedding: Sequence[float],
        correspondent_id: int,
        limit: int = 5,
    ) -> list[SimilarPair]:
        """Past (incoming, reply) pairs with similarity strictly above 0.3."""
        with self._lock:
            candidates = [
                m
                for m in self._messages.values()
                if m.correspondent_id == correspondent_id
                and not m.is_self
                and m.response_content is not None
            ]

        query = np.asarray(query_embedding, dtype=np.float64)
        results = []
        for message in candidates:
            similarity = cosine_similarity(query, message.embedding)
            if similarity > PAIR_MIN_SIMILARITY:
                results.append(SimilarPair(message.content, message.response_content, similarity))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def find_similar_conversation_threads(
        self,
        query_embedding: Sequence[float],
        correspondent_id: int,
        limit: int = 3,
    ) -> list[tuple[EmbeddedConversation, float]]:
        """Past conversation threads with similarity strictly above 0.25."""
        with self._lock:
            candidates = [
                c for c in self._conversations.values() if c.correspondent_id == correspondent_id
            ]

        query = np.asarray(query_embedding, dtype=np.float64)
        results = []
        for conversation in candidates:
            similarity = cosine_similarity(query, conversation.embedding)
            if similarity > THREAD_MIN_SIMILARITY:
                results.append((conversation, similarity))

        results.sort(key=lambda r: r[1], reverse=True)
        return results[:limit]

    # =========================================================================
    # Stats
    # =========================================================================

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._messages)

    @property
    def conversation_count(self) -> int:
        with self._lock:
            return len(self._conversations)

    def count_for_correspondent(self, correspondent_id: int) -> int:
        with self._lock:
            return sum(1 for m in self._messages.values() if m.correspondent_id == correspondent_id)

    def has_embeddings(self, correspondent_id: int) -> bool:
        with self._lock:
            return any(m.correspondent_id == correspondent_id for m in self._messages.values())

    def has_conversations(self, correspondent_id: int) -> bool:
        with self._lock:
            return any(
                c.correspondent_id == correspondent_id for c in self._conversations.values()
            )

    def get(self, message_id: int) -> EmbeddedMessage | None:
        with self._lock:
            return self._messages.get(message_id)

    def get_conversation(self, conversation_id: str) -> EmbeddedConversation | None:
        with self._lock:
            return self._conversations.get(conversation_id)

    # =========================================================================
    # Persistence
    # =========================================================================

    def save_to_disk(self) -> bool:
        """Persist embedded messages. Failures are logged, never raised."""
        with self._lock:
            records = [m.to_dict() for m in self._messages.values()]
        return self._save(self.embeddings_path, records, "embeddings")

    def save_conversations_to_disk(self) -> bool:
        """Persist embedded conversations. Failures are logged, never raised."""
        with self._lock:
            records = [c.to_dict() for c in self._conversations.values()]
        return self._save(self.conversations_path, records, "conversations")

    def _save(self, path: Path, records: list[dict[str, Any]], label: str) -> bool:
        with self._save_lock:
            try:
                write_collection(path, records)
            except IndexPersistenceError as e:
                logger.error("Failed to save %s [%s]: %s", label, e.code.value, e)
                return False
        logger.info("Saved %d %s to %s", len(records), label, path)
        return True

    @staticmethod
    def _load(path: Path, decode: Callable[[dict[str, Any]], Any]) -> list[Any]:
        """A missing or corrupt file yields an empty list."""
        try:
            items = read_collection(path, decode)
        except IndexPersistenceError as e:
            logger.warning("Starting empty [%s]: %s", e.code.value, e)
            return []
        if items:
            logger.info("Loaded %d entries from %s", len(items), path)
        return items


# =============================================================================
# Collection files
# =============================================================================


def write_collection(path: Path, records: list[dict[str, Any]]) -> None:
    """Atomically write one collection as a JSON list.

    Raises:
        IndexPersistenceError: If the file cannot be written.
    """
    payload = orjson.dumps(records)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as e:
        raise IndexPersistenceError(
            f"Cannot write {path}: {e}",
            path=str(path),
            code=ErrorCode.STO_INDEX_WRITE_FAILED,
            cause=e,
        ) from e


def read_collection(path: Path, decode: Callable[[dict[str, Any]], Any]) -> list[Any]:
    """Read one collection file; a missing file is an empty collection.

    Raises:
        IndexPersistenceError: If the file is unreadable or malformed.
    """
    if not path.exists():
        return []
    try:
        raw = orjson.loads(path.read_bytes())
        if not isinstance(raw, list):
            raise ValueError(f"expected a list, got {type(raw).__name__}")
        return [decode(record) for record in raw]
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise IndexPersistenceError(
            f"Cannot read {path}: {e}",
            path=str(path),
            code=ErrorCode.STO_INDEX_READ_FAILED,
            cause=e,
        ) from e
