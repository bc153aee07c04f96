"""Daily Context - What was said today, per correspondent.

Keeps a bounded store of today's messages for each correspondent and
extracts things the person promised to do, plans, topics and the mood, so
the reply generator can keep a conversation consistent within a day.

Usage:
    tracker = DailyContextTracker(history=message_store)
    tracker.track_message(contact.id, "vou mandar o relatório mais tarde", is_self=True)
    summary = tracker.get_context_summary(contact.id)
"""

from __future__ import annotations

import logging
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime

from parrot.contracts.backends import HistorySource
from parrot.errors import ParrotError
from parrot.lexicons import EVENT_KEYWORDS, MOOD_PATTERNS, PENDING_PATTERNS, TOPIC_INDICATORS
from parrot.security import sanitize_input

logger = logging.getLogger(__name__)

_SENTENCE_SPLIT = re.compile(r"[.!?\n]")


@dataclass
class DailyMessage:
    content: str
    is_self: bool
    timestamp: datetime


@dataclass
class DailyContext:
    """Today's conversation state with one correspondent."""

    day: date
    messages: list[DailyMessage] = field(default_factory=list)
    pending_items: list[str] = field(default_factory=list)
    plans: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    detected_mood: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.messages or self.pending_items or self.plans or self.topics)


def _snippet(text: str, phrase: str, before: int, after: int) -> str | None:
    index = text.find(phrase)
    if index < 0:
        return None
    start = max(0, index - before)
    end = min(len(text), index + len(phrase) + after)
    return text[start:end].strip()


def extract_context(context: DailyContext, content: str, is_self: bool) -> None:
    """Update pending items, plans, topics and mood from one message."""
    lower = content.lower()

    # Things the person said they would do
    if is_self:
        for pattern in PENDING_PATTERNS:
            if pattern in lower:
                snippet = _snippet(lower, pattern, 20, 30)
                if snippet and len(snippet) > 10 and snippet not in context.pending_items:
                    context.pending_items.append(snippet)
                break

    for keyword in EVENT_KEYWORDS:
        snippet = _snippet(lower, keyword, 15, 25)
        if snippet and len(snippet) > 5 and snippet not in context.plans:
            context.plans.append(snippet)

    for topic in TOPIC_INDICATORS:
        if topic not in lower:
            continue
        for sentence in _SENTENCE_SPLIT.split(content):
            trimmed = sentence.strip()
            if topic in trimmed.lower() and 10 < len(trimmed) < 100:
                if trimmed not in context.topics:
                    context.topics.append(trimmed)
                break

    for mood, patterns in MOOD_PATTERNS:
        if any(pattern in lower for pattern in patterns):
            context.detected_mood = mood
            break


class DailyContextTracker:
    """Bounded per-correspondent store of today's context.

    Entries belong to a calendar day; an entry from a previous day is
    rebuilt on access. ``invalidate`` drops one entry, ``refresh`` rebuilds
    one from history and ``clear`` drops everything.

    Args:
        history: Source used to rebuild an entry from stored messages.
        max_correspondents: Entries kept before the least recent is evicted.
        max_messages: Messages kept per entry.
        history_limit: Messages loaded from history when rebuilding.
    """

    def __init__(
        self,
        history: HistorySource | None = None,
        max_correspondents: int = 200,
        max_messages: int = 200,
        history_limit: int = 200,
    ) -> None:
        self.history = history
        self.max_correspondents = max_correspondents
        self.max_messages = max_messages
        self.history_limit = history_limit
        self._store: OrderedDict[int, DailyContext] = OrderedDict()
        self._lock = threading.Lock()

    # =========================================================================
    # Store
    # =========================================================================

    def get_today_context(self, correspondent_id: int, now: datetime | None = None) -> DailyContext:
        today = (now or datetime.now()).date()
        with self._lock:
            context = self._store.get(correspondent_id)
            if context is not None and context.day == today:
                self._store.move_to_end(correspondent_id)
                return context

        context = self._build(correspondent_id, today)
        with self._lock:
            self._put(correspondent_id, context)
        return context

    def track_message(
        self,
        correspondent_id: int,
        content: str,
        is_self: bool,
        timestamp: datetime | None = None,
    ) -> None:
        """Add a live message to today's context."""
        timestamp = timestamp or datetime.now()
        context = self.get_today_context(correspondent_id, now=timestamp)
        with self._lock:
            context.messages.append(DailyMessage(content, is_self, timestamp))
            del context.messages[: -self.max_messages]
            extract_context(context, content, is_self)

    def invalidate(self, correspondent_id: int) -> None:
        with self._lock:
            self._store.pop(correspondent_id, None)

    def refresh(self, correspondent_id: int, now: datetime | None = None) -> DailyContext:
        """Rebuild one correspondent's context from history."""
        self.invalidate(correspondent_id)
        return self.get_today_context(correspondent_id, now=now)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def _put(self, correspondent_id: int, context: DailyContext) -> None:
        self._store[correspondent_id] = context
        self._store.move_to_end(correspondent_id)
        while len(self._store) > self.max_correspondents:
            self._store.popitem(last=False)

    def _build(self, correspondent_id: int, today: date) -> DailyContext:
        context = DailyContext(day=today)
        if self.history is None:
            return context

        try:
            messages = self.history.get_messages(correspondent_id, limit=self.history_limit)
        except ParrotError as e:
            logger.warning("Failed to load today's messages for %s: %s", correspondent_id, e)
            return context

        for message in messages:
            if message.timestamp.date() != today:
                continue
            context.messages.append(DailyMessage(message.content, message.is_self, message.timestamp))
            extract_context(context, message.content, message.is_self)
        del context.messages[: -self.max_messages]
        return context

    # =========================================================================
    # Prompt summary
    # =========================================================================

    def get_context_summary(self, correspondent_id: int, now: datetime | None = None) -> str | None:
        """Today's context formatted for the prompt, None when there is nothing."""
        context = self.get_today_context(correspondent_id, now=now)
        if context.is_empty:
            return None

        lines = ["=== TODAY'S CONTEXT ==="]

        if context.pending_items:
            lines.append("\nThings you mentioned doing today:")
            lines.extend(f"- {sanitize_input(item)}" for item in context.pending_items[:5])

        if context.plans:
            lines.append("\nPlans/events mentioned:")
            lines.extend(f"- {sanitize_input(plan)}" for plan in context.plans[:5])

        if context.topics:
            lines.append("\nTopics discussed earlier:")
            lines.extend(f"- {sanitize_input(topic)}" for topic in context.topics[:5])

        recent = context.messages[-6:]
        if recent:
            lines.append("\nRecent conversation:")
            for message in recent:
                speaker = "You" if message.is_self else "Them"
                content = sanitize_input(message.content)
                short = content[:80] + ("..." if len(content) > 80 else "")
                lines.append(f"{speaker}: {short}")

        if context.detected_mood:
            lines.append(f"\nConversation mood: {context.detected_mood}")

        lines.append("=== END TODAY'S CONTEXT ===")
        return "\n".join(lines) + "\n"
