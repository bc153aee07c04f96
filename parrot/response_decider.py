"""Response Decider - Heuristic respond/skip classifier for incoming messages.

An ordered decision list over Portuguese chat conventions: quiet hours,
bare acknowledgments, questions, direct address, greetings, requests,
active-conversation cues and closing statements. The first rule that
fires decides.

Usage:
    decider = ResponseDecider(user_name="Iago Cavalcante")
    decision = decider.should_respond("vc viu isso?", contact, recent)
    if decision.should_respond:
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from parrot.contracts.messages import Contact, Message
from parrot.group_context import GroupContextAnalyzer
from parrot.lexicons import (
    EXPECTS_REPLY_PATTERNS,
    EXPECTS_REPLY_SUFFIXES,
    GREETINGS,
    QUESTION_PATTERNS,
    QUESTION_WORDS,
    REQUEST_PATTERNS,
    STATEMENT_PATTERNS,
    contains_any,
    starts_with_any,
)
from parrot.text_normalizer import is_acknowledgment_only

logger = logging.getLogger(__name__)

QUIET_HOURS_END = 7
ACTIVE_CONVERSATION_WINDOW = timedelta(minutes=30)
# Shorter names match too much ordinary text to count as an address
MIN_ADDRESS_NAME_LENGTH = 3


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class ResponseDecision:
    """Verdict for one incoming message."""

    should_respond: bool
    confidence: Confidence | None
    reason: str

    @classmethod
    def respond(cls, confidence: Confidence, reason: str) -> ResponseDecision:
        return cls(True, confidence, reason)

    @classmethod
    def skip(cls, reason: str) -> ResponseDecision:
        return cls(False, None, reason)


@dataclass(frozen=True)
class GroupParticipationDecision:
    """Verdict for joining a group conversation unprompted."""

    should_participate: bool
    confidence: Confidence | None
    reason: str
    relevance: float = 0.0

    @classmethod
    def participate(
        cls, reason: str, confidence: Confidence, relevance: float = 0.0
    ) -> GroupParticipationDecision:
        return cls(True, confidence, reason, relevance)

    @classmethod
    def skip(cls, reason: str, relevance: float = 0.0) -> GroupParticipationDecision:
        return cls(False, None, reason, relevance)


class ResponseDecider:
    """Decides whether a message warrants an automated reply.

    Args:
        user_name: Display name of the profiled person, used for
            direct-address detection.
        group_analyzer: Group topic analyzer. Required only for
            ``should_participate_in_group``.
    """

    def __init__(
        self,
        user_name: str = "Me",
        group_analyzer: GroupContextAnalyzer | None = None,
    ) -> None:
        self.user_name = user_name
        self.group_analyzer = group_analyzer or GroupContextAnalyzer()

    # =========================================================================
    # One-to-one decision
    # =========================================================================

    def should_respond(
        self,
        message: str,
        contact: Contact | None = None,
        recent_messages: list[Message] | None = None,
        now: datetime | None = None,
    ) -> ResponseDecision:
        """Run the decision list for ``message``.

        Args:
            message: Incoming message text.
            contact: Sender, used only for logging.
            recent_messages: Recent history, chronological.
            now: Current local time (defaults to datetime.now()).
        """
        now = now or datetime.now()
        decision = self._decide(message, recent_messages or [], now)
        logger.debug(
            "Decision for %s: %s (%s)",
            contact.name if contact else "unknown",
            "RESPOND" if decision.should_respond else "SKIP",
            decision.reason,
        )
        return decision

    def _decide(self, message: str, recent_messages: list[Message], now: datetime) -> ResponseDecision:
        if not self.is_appropriate_time(now):
            return ResponseDecision.skip("Outside normal response hours")

        if is_acknowledgment_only(message):
            return ResponseDecision.skip("Message is just an acknowledgment")

        if self.is_question(message):
            return ResponseDecision.respond(Confidence.HIGH, "Direct question detected")

        if self.is_directly_addressed(message):
            return ResponseDecision.respond(Confidence.HIGH, "Directly addressed")

        if self.is_greeting(message):
            return ResponseDecision.respond(Confidence.HIGH, "Greeting detected")

        if self.is_request(message):
            return ResponseDecision.respond(Confidence.MEDIUM, "Request/call to action")

        if self.is_continuing_conversation(recent_messages, now) and self.expects_reply(message):
            return ResponseDecision.respond(
                Confidence.MEDIUM, "Active conversation, message expects reply"
            )

        if self.is_just_statement(message):
            return ResponseDecision.skip("Just a statement, no response needed")

        return ResponseDecision.respond(Confidence.LOW, "Default: might need response")

    # === Rules ===

    @staticmethod
    def is_appropriate_time(now: datetime) -> bool:
        """False between midnight and 7am."""
        return not 0 <= now.hour < QUIET_HOURS_END

    @staticmethod
    def is_question(message: str) -> bool:
        if message.strip().endswith("?"):
            return True
        lower = message.lower()
        for word in QUESTION_WORDS:
            if lower.startswith(f"{word} ") or f" {word} " in lower:
                return True
        return contains_any(lower, QUESTION_PATTERNS)

    def address_patterns(self) -> list[str]:
        """Substrings that mean the message is addressed to the person."""
        name = self.user_name.strip().lower()
        first_name = name.split()[0] if name else ""
        patterns: list[str] = []
        if len(name) >= MIN_ADDRESS_NAME_LENGTH:
            patterns.append(f"@{name}")
        if len(first_name) >= MIN_ADDRESS_NAME_LENGTH:
            patterns += [
                f"@{first_name}",
                f"{first_name},",
                f"{first_name} ",
                f"ei {first_name}",
                f"oi {first_name}",
            ]
        return patterns

    def is_directly_addressed(self, message: str) -> bool:
        lower = message.lower()
        return any(pattern in lower for pattern in self.address_patterns())

    @staticmethod
    def is_greeting(message: str) -> bool:
        return starts_with_any(message.lower().strip(), GREETINGS)

    @staticmethod
    def is_request(message: str) -> bool:
        return contains_any(message.lower(), REQUEST_PATTERNS)

    @staticmethod
    def is_continuing_conversation(recent_messages: list[Message], now: datetime) -> bool:
        """True if the latest recent message is under 30 minutes old."""
        if not recent_messages:
            return False
        return now - recent_messages[-1].timestamp < ACTIVE_CONVERSATION_WINDOW

    @staticmethod
    def expects_reply(message: str) -> bool:
        lower = message.lower().strip()
        if lower.endswith(EXPECTS_REPLY_SUFFIXES):
            return True
        return contains_any(lower, EXPECTS_REPLY_PATTERNS)

    @staticmethod
    def is_just_statement(message: str) -> bool:
        return contains_any(message.lower(), STATEMENT_PATTERNS)

    # =========================================================================
    # Group participation
    # =========================================================================

    def track_group_message(
        self, group_name: str, sender: str, content: str, timestamp: datetime | None = None
    ) -> None:
        """Record a group message in the rolling window without deciding anything."""
        self.group_analyzer.add_message(group_name, sender, content, timestamp)

    def clear_context(self, group_name: str) -> None:
        self.group_analyzer.clear_context(group_name)

    def extract_user_interests(self, messages: list[Message]) -> list[str]:
        return self.group_analyzer.extract_user_interests(messages)

    async def should_participate_in_group(
        self,
        group_name: str,
        message: str,
        sender: str,
        correspondent_id: int,
        recent_messages: list[Message] | None = None,
    ) -> GroupParticipationDecision:
        """Decide whether to join a group conversation without being mentioned."""
        analyzer = self.group_analyzer
        analyzer.add_message(group_name, sender, message)

        relevance = await analyzer.should_participate(group_name, correspondent_id, message)

        if analyzer.is_answerable_question(message) and relevance.participate:
            return GroupParticipationDecision.participate(
                f"Answerable question on relevant topic: {relevance.reason}",
                Confidence.HIGH if relevance.score > 0.6 else Confidence.MEDIUM,
                relevance.score,
            )

        if relevance.participate and relevance.score > analyzer.config.statement_threshold:
            return GroupParticipationDecision.participate(
                f"Topic highly relevant: {relevance.reason}",
                Confidence.HIGH if relevance.score > 0.7 else Confidence.MEDIUM,
                relevance.score,
            )

        if analyzer.matches_response_pattern(message, recent_messages or []):
            return GroupParticipationDecision.participate(
                "Matches historical response pattern", Confidence.LOW, relevance.score
            )

        return GroupParticipationDecision.skip(
            relevance.reason or "Topic not relevant to user", relevance.score
        )
