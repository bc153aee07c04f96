"""Reply Generator - Gated, style-matched reply generation.

Runs the participation and respond/skip gates, deflects personal-data
fishing, retrieves similar past conversations, assembles the prompt,
calls the configured backend and validates what comes back.

Usage:
    generator = ReplyGenerator(config, generation_client, message_store)
    reply = await generator.generate_response(contact, "bora almoçar hoje?")
"""

from __future__ import annotations

import logging
import random
from datetime import datetime

from parrot.config import ParrotConfig
from parrot.contracts.backends import GenerationClient, HistorySource
from parrot.contracts.messages import Contact, find_conversation_pairs
from parrot.daily_context import DailyContextTracker
from parrot.errors import ParrotError
from parrot.prompts import build_system_prompt, build_user_prompt
from parrot.rag.models import ConversationThread, SimilarPair
from parrot.rag.rag_manager import RAGManager
from parrot.response_decider import ResponseDecider
from parrot.security import (
    check_group_name_trick,
    check_personal_info_request,
    clean_response,
    is_mentioned,
    sanitize_input,
)
from parrot.style_analyzer import StyleAnalyzer

logger = logging.getLogger(__name__)

# Messages consulted by the respond/skip heuristics
DECISION_HISTORY_LIMIT = 10


class ReplyGenerator:
    """Produces a reply in the person's style, or None when it should not.

    Args:
        config: Feature flags, user name and generation limits.
        generation_client: Backend used for the model call.
        history: Message history for examples and profiling.
        style_analyzer: Builds (and caches) style profiles.
        decider: Respond/skip and group participation heuristics.
        rag: Retrieval manager, consulted when ``config.use_rag`` is set.
        daily_context: Tracker for today's conversation.
        rng: Randomness for canned deflection replies.
    """

    def __init__(
        self,
        config: ParrotConfig,
        generation_client: GenerationClient,
        history: HistorySource,
        style_analyzer: StyleAnalyzer | None = None,
        decider: ResponseDecider | None = None,
        rag: RAGManager | None = None,
        daily_context: DailyContextTracker | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self.generation_client = generation_client
        self.history = history
        self.style_analyzer = style_analyzer or StyleAnalyzer(
            sample_count=config.style.sample_count,
            default_formality=config.style.default_formality,
        )
        self.decider = decider or ResponseDecider(user_name=config.user_name)
        self.rag = rag
        self.daily_context = daily_context or DailyContextTracker(history=history)
        self._rng = rng or random.Random()

    @property
    def rag_enabled(self) -> bool:
        return self.config.use_rag and self.rag is not None and self.rag.is_configured

    async def generate_response(
        self, contact: Contact, message: str, now: datetime | None = None
    ) -> str | None:
        """Generate a reply to ``message`` from ``contact``.

        Returns None when a gate says not to reply, when there is too little
        history, or when the output fails validation.

        Raises:
            GenerationError: If the backend call fails.
        """
        now = now or datetime.now()

        if not contact.auto_reply_enabled:
            logger.info("Auto-reply disabled for %s", contact.name)
            return None

        if contact.is_group and not await self._should_answer_group(contact, message):
            return None

        if self.config.smart_response:
            recent = self.history.get_messages(contact.id, limit=DECISION_HISTORY_LIMIT)
            decision = self.decider.should_respond(message, contact, recent, now=now)
            logger.info(
                "Smart response decision for %s: %s - %s",
                contact.name,
                "RESPOND" if decision.should_respond else "SKIP",
                decision.reason,
            )
            if not decision.should_respond:
                return None

        gen_cfg = self.config.generation
        sanitized = sanitize_input(message, max_chars=gen_cfg.max_input_chars)

        deflection = check_personal_info_request(message, self._rng)
        if deflection is not None:
            return deflection

        if contact.is_group:
            trick_reply = check_group_name_trick(contact.name, self._rng)
            if trick_reply is not None:
                if self.config.ignore_group_name_tricks:
                    logger.info("Ignoring group with suspicious name: %r", contact.name)
                    return None
                return trick_reply

        examples = self.history.get_messages(contact.id, limit=gen_cfg.history_limit)
        if len(examples) < gen_cfg.min_history_messages:
            logger.info("Not enough message history for %s (%d)", contact.name, len(examples))
            return None

        pairs = find_conversation_pairs(examples)
        if len(pairs) < gen_cfg.min_pairs:
            logger.info("Not enough conversation pairs for %s (%d)", contact.name, len(pairs))
            return None
        recent_pairs = pairs[-gen_cfg.recent_pairs :]

        threads, similar_pairs = await self._retrieve_context(sanitized, contact.id)

        self.daily_context.track_message(contact.id, sanitized, is_self=False, timestamp=now)
        today_context = self.daily_context.get_context_summary(contact.id, now=now)

        profile = contact.style_profile or self.style_analyzer.profile_for(contact.id, examples)
        user_name = self.config.user_name

        system_prompt = build_system_prompt(user_name, profile)
        prompt = build_user_prompt(
            contact_name=contact.name,
            user_name=user_name,
            message=sanitized,
            pairs=recent_pairs,
            threads=threads,
            similar_pairs=similar_pairs,
            today_context=today_context,
        )

        logger.info("Generating reply for %s with %s", contact.name, self.generation_client.name)
        raw = await self.generation_client.generate(prompt, system_prompt=system_prompt)
        logger.debug("Raw reply: %.50s", raw)

        cleaned = clean_response(raw, user_name=user_name, max_chars=gen_cfg.max_output_chars)
        return cleaned or None

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _should_answer_group(self, contact: Contact, message: str) -> bool:
        if is_mentioned(self.config.user_name, message):
            logger.info("Mentioned in group %s", contact.name)
            return True

        if not (self.config.group_topic_participation and self.rag_enabled):
            logger.info("Group message without mention (topic participation off): %s", contact.name)
            return False

        recent = self.history.get_messages(contact.id, limit=self.config.generation.history_limit)
        decision = await self.decider.should_participate_in_group(
            group_name=contact.name,
            message=message,
            sender="unknown",
            correspondent_id=contact.id,
            recent_messages=recent,
        )
        logger.info(
            "Group participation for %s: %s - %s",
            contact.name,
            "JOIN" if decision.should_participate else "SKIP",
            decision.reason,
        )
        return decision.should_participate

    async def _retrieve_context(
        self, text: str, correspondent_id: int
    ) -> tuple[list[ConversationThread], list[SimilarPair]]:
        """Similar threads, or similar pairs when no thread matches."""
        if not self.config.use_rag:
            return [], []
        if not self.rag_enabled:
            logger.debug("RAG enabled but embedding backend not configured")
            return [], []

        try:
            threads = await self.rag.find_similar_threads(text, correspondent_id, limit=3)
            if threads:
                logger.info("RAG: using %d conversation threads", len(threads))
                return threads, []
            pairs = await self.rag.find_similar_context(text, correspondent_id, limit=5)
            if pairs:
                logger.info("RAG: using %d similar pairs", len(pairs))
            return [], pairs
        except ParrotError as e:
            logger.warning("RAG: semantic search failed: %s", e)
            return [], []
