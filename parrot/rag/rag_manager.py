"""RAG Manager - Builds and queries the retrieval index for one person.

Turns raw history into conversation threads and (incoming, reply) pairs,
embeds them in rate-limited batches, and answers "find similar past
exchanges" queries for the reply generator and the group analyzer.

Example:
    manager = RAGManager(embedder, store, message_store)
    stats = await manager.generate_embeddings(contact.id)
    threads = await manager.find_similar_threads("bora no bar hoje?", contact.id)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from parrot.config import RAGConfig
from parrot.contracts.backends import EmbeddingClient, HistorySource
from parrot.contracts.messages import Message, find_conversation_pairs
from parrot.errors import EmbeddingError
from parrot.rag.models import (
    ConversationMessage,
    ConversationThread,
    EmbeddedConversation,
    EmbeddedMessage,
    SimilarPair,
)
from parrot.rag.vector_store import VectorStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class EmbeddingRunStats:
    """Outcome of one generate_embeddings run."""

    correspondent_id: int
    messages_loaded: int = 0
    threads_found: int = 0
    pairs_found: int = 0
    threads_embedded: int = 0
    pairs_embedded: int = 0
    failed_batches: int = 0
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


def build_conversation_threads(
    messages: list[Message],
    gap: timedelta = timedelta(minutes=30),
    min_size: int = 4,
    max_size: int = 8,
) -> list[list[Message]]:
    """Split chronological messages into time-bounded threads.

    A gap longer than ``gap`` closes the current thread; a thread is emitted
    as soon as it reaches ``max_size``; threads shorter than ``min_size``
    are dropped.
    """
    threads: list[list[Message]] = []
    current: list[Message] = []

    for message in messages:
        if not current:
            current.append(message)
            continue

        if message.timestamp - current[-1].timestamp > gap:
            if len(current) >= min_size:
                threads.append(current)
            current = [message]
            continue

        current.append(message)
        if len(current) >= max_size:
            threads.append(current)
            current = []

    if len(current) >= min_size:
        threads.append(current)

    return threads


def thread_text(thread: list[Message]) -> str:
    """Text embedded for a thread: "them: ... | me: ..."."""
    return " | ".join(f"{'me' if m.is_self else 'them'}: {m.content}" for m in thread)


class RAGManager:
    """Drives embedding generation and similarity lookups.

    Args:
        embedding_client: Backend producing vectors.
        vector_store: Index the results are written to.
        history: Read-only message history.
        config: Batch sizes, thread bounds and pacing.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        history: HistorySource,
        config: RAGConfig | None = None,
    ) -> None:
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.history = history
        self.config = config or RAGConfig()
        self._in_progress = False

    @property
    def is_configured(self) -> bool:
        return self.embedding_client.is_configured

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    # =========================================================================
    # Embedding generation
    # =========================================================================

    async def generate_embeddings(
        self,
        correspondent_id: int,
        progress: ProgressCallback | None = None,
    ) -> EmbeddingRunStats:
        """Embed a correspondent's threads and pairs and persist the index.

        Skips without error when the backend is unconfigured, when another
        run is in progress, or when there is no history. A failed batch is
        logged and the remaining batches still run.
        """
        stats = EmbeddingRunStats(correspondent_id=correspondent_id)

        if not self.is_configured:
            logger.info("Embedding backend not configured, skipping embedding generation")
            stats.skipped_reason = "not_configured"
            return stats

        if self._in_progress:
            logger.warning("Embedding generation already in progress")
            stats.skipped_reason = "in_progress"
            return stats

        self._in_progress = True
        try:
            await self._generate(correspondent_id, stats, progress)
        finally:
            self._in_progress = False

        return stats

    async def _generate(
        self,
        correspondent_id: int,
        stats: EmbeddingRunStats,
        progress: ProgressCallback | None,
    ) -> None:
        cfg = self.config
        logger.info("Starting embedding generation for correspondent %s", correspondent_id)

        messages = self.history.get_messages(correspondent_id, limit=cfg.max_messages)
        stats.messages_loaded = len(messages)
        if not messages:
            logger.info("No messages to embed for correspondent %s", correspondent_id)
            stats.skipped_reason = "no_messages"
            return

        threads = build_conversation_threads(
            messages,
            gap=timedelta(minutes=cfg.thread_gap_minutes),
            min_size=cfg.thread_min_messages,
            max_size=cfg.thread_max_messages,
        )
        pairs = find_conversation_pairs(messages)
        stats.threads_found = len(threads)
        stats.pairs_found = len(pairs)
        total = len(threads) + len(pairs)
        processed = 0
        logger.info("Found %d threads and %d pairs to embed", len(threads), len(pairs))

        # === THREADS ===
        for start in range(0, len(threads), cfg.thread_batch_size):
            batch = threads[start : start + cfg.thread_batch_size]
            try:
                vectors = await self.embedding_client.embed_batch([thread_text(t) for t in batch])
            except EmbeddingError as e:
                stats.failed_batches += 1
                logger.warning("Thread batch at %d failed: %s", start, e)
                continue

            for thread, vector in zip(batch, vectors):
                self.vector_store.add_conversation(
                    EmbeddedConversation(
                        id=EmbeddedConversation.make_id(correspondent_id, thread[0].id),
                        correspondent_id=correspondent_id,
                        messages=[
                            ConversationMessage(m.content, m.is_self, m.timestamp) for m in thread
                        ],
                        embedding=vector,
                        timestamp=thread[0].timestamp,
                    )
                )

            processed += len(batch)
            stats.threads_embedded += len(batch)
            if progress:
                progress(processed, total)
            logger.info("Embedded %d/%d items (threads)", processed, total)
            await asyncio.sleep(cfg.batch_delay_seconds)

        # === PAIRS ===
        for start in range(0, len(pairs), cfg.pair_batch_size):
            batch_pairs = pairs[start : start + cfg.pair_batch_size]
            try:
                vectors = await self.embedding_client.embed_batch(
                    [incoming.content for incoming, _ in batch_pairs]
                )
            except EmbeddingError as e:
                stats.failed_batches += 1
                logger.warning("Pair batch at %d failed: %s", start, e)
                continue

            for (incoming, reply), vector in zip(batch_pairs, vectors):
                self.vector_store.add(
                    EmbeddedMessage(
                        message_id=incoming.id,
                        correspondent_id=correspondent_id,
                        content=incoming.content,
                        embedding=vector,
                        is_self=False,
                        timestamp=incoming.timestamp,
                        response_content=reply.content,
                    )
                )

            processed += len(batch_pairs)
            stats.pairs_embedded += len(batch_pairs)
            if progress:
                progress(processed, total)
            logger.info("Embedded %d/%d items (pairs)", processed, total)
            await asyncio.sleep(cfg.batch_delay_seconds)

        self.vector_store.save_to_disk()
        self.vector_store.save_conversations_to_disk()

        logger.info(
            "Completed embedding generation: %d embeddings, %d conversations",
            self.vector_store.count,
            self.vector_store.conversation_count,
        )

    # =========================================================================
    # Semantic search
    # =========================================================================

    async def find_similar_context(
        self, text: str, correspondent_id: int, limit: int = 5
    ) -> list[SimilarPair]:
        """Past (incoming, reply) pairs similar to ``text``.

        Returns [] when the backend is unconfigured or nothing is indexed.
        Raises EmbeddingError if the query cannot be embedded.
        """
        if not self.is_configured:
            return []
        if not self.vector_store.has_embeddings(correspondent_id):
            logger.debug("No embeddings for correspondent %s", correspondent_id)
            return []

        query = await self.embedding_client.embed(text)
        results = self.vector_store.find_similar_conversations(query, correspondent_id, limit)
        logger.debug(
            "Found %d similar pairs (top similarity: %.2f)",
            len(results),
            results[0].similarity if results else 0.0,
        )
        return results

    async def find_similar_threads(
        self, text: str, correspondent_id: int, limit: int = 3
    ) -> list[ConversationThread]:
        """Past conversation threads similar to ``text``."""
        if not self.is_configured:
            return []
        if not self.vector_store.has_conversations(correspondent_id):
            logger.debug("No conversation threads for correspondent %s", correspondent_id)
            return []

        query = await self.embedding_client.embed(text)
        results = self.vector_store.find_similar_conversation_threads(
            query, correspondent_id, limit
        )
        logger.debug("Found %d similar threads", len(results))
        return [
            ConversationThread(messages=conversation.messages, similarity=similarity)
            for conversation, similarity in results
        ]

    def has_embeddings(self, correspondent_id: int) -> bool:
        return self.vector_store.has_embeddings(correspondent_id)

    def has_conversations(self, correspondent_id: int) -> bool:
        return self.vector_store.has_conversations(correspondent_id)
