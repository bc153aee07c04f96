"""Group Context - Topic relevance for group chat participation.

Keeps a short rolling window of each group's conversation and decides
whether the current topic is close enough to the person's own past
conversations to chime in without being mentioned.
"""

from __future__ import annotations

import logging
import re
import threading
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from parrot.config import GroupConfig
from parrot.contracts.messages import Message
from parrot.errors import ParrotError
from parrot.lexicons import ANSWERABLE_QUESTION_PATTERNS, INTEREST_KEYWORDS, KEYWORD_STOP_WORDS
from parrot.rag.rag_manager import RAGManager

logger = logging.getLogger(__name__)

_KEYWORD_SPLIT = re.compile(r"[^\w]+|_")


@dataclass
class GroupMessage:
    sender: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class TopicRelevance:
    """Result of a topic relevance check."""

    participate: bool
    reason: str
    score: float


class GroupContextStore:
    """Bounded per-group windows of recent messages.

    Each window holds at most ``max_messages``; at most ``max_groups``
    windows are kept, least recently updated evicted first.
    """

    def __init__(self, max_messages: int = 15, max_groups: int = 100) -> None:
        self.max_messages = max_messages
        self.max_groups = max_groups
        self._windows: OrderedDict[str, list[GroupMessage]] = OrderedDict()
        self._lock = threading.Lock()

    def add(self, group_name: str, message: GroupMessage) -> None:
        with self._lock:
            window = self._windows.pop(group_name, [])
            window.append(message)
            self._windows[group_name] = window[-self.max_messages :]
            while len(self._windows) > self.max_groups:
                self._windows.popitem(last=False)

    def get(self, group_name: str) -> list[GroupMessage]:
        with self._lock:
            return list(self._windows.get(group_name, []))

    def invalidate(self, group_name: str) -> None:
        with self._lock:
            self._windows.pop(group_name, None)

    def refresh(self, now: datetime | None = None, max_age: timedelta = timedelta(hours=6)) -> None:
        """Drop messages older than ``max_age`` and windows left empty."""
        cutoff = (now or datetime.now()) - max_age
        with self._lock:
            for name in list(self._windows):
                kept = [m for m in self._windows[name] if m.timestamp >= cutoff]
                if kept:
                    self._windows[name] = kept
                else:
                    del self._windows[name]

    def clear(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)


def extract_keywords(text: str) -> list[str]:
    """Content words longer than three characters."""
    return [
        word
        for word in _KEYWORD_SPLIT.split(text.lower())
        if len(word) > 3 and word not in KEYWORD_STOP_WORDS
    ]


class GroupContextAnalyzer:
    """Decides when a group conversation is relevant to the person.

    Args:
        rag: Retrieval manager used to score topic relevance. None disables
            semantic scoring and every relevance check yields the default.
        config: Window sizes and thresholds.
        store: Window store, created from ``config`` when omitted.
    """

    def __init__(
        self,
        rag: RAGManager | None = None,
        config: GroupConfig | None = None,
        store: GroupContextStore | None = None,
    ) -> None:
        self.rag = rag
        self.config = config or GroupConfig()
        self.store = store or GroupContextStore(max_messages=self.config.max_context_size)

    # =========================================================================
    # Message tracking
    # =========================================================================

    def add_message(
        self,
        group_name: str,
        sender: str,
        content: str,
        timestamp: datetime | None = None,
    ) -> None:
        """Append to the group window, dropping messages that have gone stale."""
        timestamp = timestamp or datetime.now()
        max_age = timedelta(hours=self.config.context_max_age_hours)
        self.store.refresh(now=timestamp, max_age=max_age)
        self.store.add(group_name, GroupMessage(sender, content, timestamp))

    def get_context(self, group_name: str) -> list[GroupMessage]:
        return self.store.get(group_name)

    def clear_context(self, group_name: str) -> None:
        self.store.invalidate(group_name)

    # =========================================================================
    # Topic analysis
    # =========================================================================

    async def should_participate(
        self, group_name: str, correspondent_id: int, current_message: str
    ) -> TopicRelevance:
        """Score the group's current topic against the person's history."""
        context = self.get_context(group_name)
        minimum = self.config.min_context_size
        if len(context) < minimum:
            return TopicRelevance(
                False,
                f"Not enough context ({len(context)}/{minimum} messages)",
                self.config.default_relevance,
            )

        topic = self.extract_topic_text(context, current_message)
        try:
            score = await self.check_topic_relevance(topic, correspondent_id)
        except ParrotError as e:
            logger.warning("Topic relevance check failed for %s: %s", group_name, e)
            return TopicRelevance(False, "Relevance check failed", self.config.default_relevance)

        if score >= self.config.relevance_threshold:
            return TopicRelevance(True, f"Topic relevance: {score * 100:.0f}%", score)
        return TopicRelevance(False, f"Topic not relevant enough ({score * 100:.0f}%)", score)

    @staticmethod
    def extract_topic_text(context: list[GroupMessage], current_message: str) -> str:
        """Recent substantive messages plus the current one, " | " separated."""
        parts = [m.content for m in context[-8:] if len(m.content) > 10]
        parts.append(current_message)
        return " | ".join(parts)

    async def check_topic_relevance(self, topic: str, correspondent_id: int) -> float:
        """Average similarity of the closest past exchanges, boosted when several are strong."""
        if self.rag is None or not self.rag.is_configured:
            return self.config.default_relevance

        similar = await self.rag.find_similar_context(topic, correspondent_id, limit=5)
        if not similar:
            return self.config.default_relevance

        average = sum(pair.similarity for pair in similar) / len(similar)
        strong = sum(1 for pair in similar if pair.similarity > 0.5)
        boost = 0.1 if strong >= 2 else 0.0
        return min(1.0, average + boost)

    # =========================================================================
    # Participation patterns
    # =========================================================================

    @staticmethod
    def is_answerable_question(message: str) -> bool:
        """Open questions to the group ("alguém sabe...", "quem conhece...")."""
        lower = message.lower()
        if any(pattern in lower for pattern in ANSWERABLE_QUESTION_PATTERNS):
            return True
        return message.strip().endswith("?")

    @staticmethod
    def matches_response_pattern(message: str, history: list[Message]) -> bool:
        """True if at least two past self messages share a keyword with ``message``."""
        keywords = set(extract_keywords(message))
        if not keywords:
            return False
        matches = sum(
            1 for m in history if m.is_self and keywords & set(extract_keywords(m.content))
        )
        return matches >= 2

    @staticmethod
    def extract_user_interests(messages: list[Message]) -> list[str]:
        """Interest keywords the person mentions most, top 10."""
        counts: Counter[str] = Counter()
        for message in messages:
            if not message.is_self:
                continue
            content = message.content.lower()
            for keyword in INTEREST_KEYWORDS:
                if keyword in content:
                    counts[keyword] += 1
        return [keyword for keyword, _ in counts.most_common(10)]
