"""Application context: every collaborator wired from one ParrotConfig.

There are no module-level singletons; the CLI (or an embedding host) builds
one AppContext and passes its parts around.

Example:
    ctx = AppContext.from_config(load_config())
    contact = ctx.store.get_contact_by_name("Ana")
    reply = await ctx.reply_generator.generate_response(contact, "bora?")
    ctx.close()
"""

from __future__ import annotations

import logging
import random
import threading
from pathlib import Path

from parrot.backends import create_embedding_client, create_generation_client
from parrot.config import ParrotConfig
from parrot.contracts.backends import EmbeddingClient, GenerationClient
from parrot.daily_context import DailyContextTracker
from parrot.group_context import GroupContextAnalyzer
from parrot.history.store import DB_FILE_NAME, MessageStore
from parrot.rag.rag_manager import RAGManager
from parrot.rag.vector_store import VectorStore
from parrot.reply_generator import ReplyGenerator
from parrot.response_decider import ResponseDecider
from parrot.style_analyzer import StyleAnalyzer

logger = logging.getLogger(__name__)


class AppContext:
    """Holds the configured components of one Parrot instance.

    The generation client is created on first use so that commands which
    never generate do not fail on a cloud backend without an API key.

    Args:
        config: Settings every component is built from.
        store: Message history; defaults to ``<data_dir>/messages.sqlite``.
        embedding_client: Overrides the configured embedding backend.
        generation_client: Overrides the configured generation backend.
        rng: Randomness shared by sampling and canned replies.
    """

    def __init__(
        self,
        config: ParrotConfig,
        store: MessageStore | None = None,
        embedding_client: EmbeddingClient | None = None,
        generation_client: GenerationClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        data_path: Path = config.data_path
        self.rng = rng or random.Random()

        self.store = store or MessageStore(data_path / DB_FILE_NAME)
        self.vector_store = VectorStore(data_path)
        self.embedding_client = embedding_client or create_embedding_client(config)
        self._generation_client = generation_client
        self._reply_generator: ReplyGenerator | None = None
        self._lock = threading.Lock()

        self.style_analyzer = StyleAnalyzer(
            rng=self.rng,
            sample_count=config.style.sample_count,
            default_formality=config.style.default_formality,
        )
        self.rag = RAGManager(self.embedding_client, self.vector_store, self.store, config.rag)
        self.group_analyzer = GroupContextAnalyzer(rag=self.rag, config=config.group)
        self.decider = ResponseDecider(user_name=config.user_name, group_analyzer=self.group_analyzer)
        self.daily_context = DailyContextTracker(history=self.store)

    @classmethod
    def from_config(cls, config: ParrotConfig) -> AppContext:
        logger.debug("Building application context (data dir: %s)", config.data_path)
        return cls(config)

    @property
    def generation_client(self) -> GenerationClient:
        """The configured generation client.

        Raises:
            BackendNotConfiguredError: If a cloud backend has no API key.
        """
        if self._generation_client is None:
            with self._lock:
                if self._generation_client is None:
                    self._generation_client = create_generation_client(self.config)
        return self._generation_client

    @property
    def reply_generator(self) -> ReplyGenerator:
        if self._reply_generator is None:
            client = self.generation_client
            with self._lock:
                if self._reply_generator is None:
                    self._reply_generator = ReplyGenerator(
                        config=self.config,
                        generation_client=client,
                        history=self.store,
                        style_analyzer=self.style_analyzer,
                        decider=self.decider,
                        rag=self.rag,
                        daily_context=self.daily_context,
                        rng=self.rng,
                    )
        return self._reply_generator

    def invalidate_correspondent(self, correspondent_id: int) -> None:
        """Drop every derived cache for a correspondent after new history arrives."""
        self.style_analyzer.invalidate(correspondent_id)
        self.daily_context.invalidate(correspondent_id)
        self.store.invalidate_style_profile(correspondent_id)

    def close(self) -> None:
        self.store.close()
