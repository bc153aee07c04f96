"""Style Analyzer - Builds a StyleProfile from a message history.

Pure computation over self-authored messages: length statistics, tone,
punctuation habits, vocabulary rankings, response patterns and emotional
phrasing. The only source of non-determinism is sample selection, which
draws from an injectable ``random.Random``.

Usage:
    from parrot.style_analyzer import StyleAnalyzer

    analyzer = StyleAnalyzer(rng=random.Random(7))
    profile = analyzer.analyze(messages)
"""

from __future__ import annotations

import logging
import random
import re
import string
from collections import Counter
from collections.abc import Iterable

from parrot.contracts.messages import Message, find_conversation_pairs
from parrot.lexicons import (
    ABBREVIATIONS,
    AFFIRMATIONS,
    CASUAL_INDICATORS,
    CLOSINGS,
    EMOTIONAL_PHRASES,
    ENGLISH_MIXINS,
    FILLER_WORDS,
    FORMAL_INDICATORS,
    GREETING_STARTERS,
    INTERJECTIONS,
    LAUGH_PATTERNS,
    LEXICON_VERSION,
    NEGATIONS,
    NEVER_USE_CANDIDATES,
    NEWS_INDICATORS,
    QUESTION_WORDS,
    REQUEST_PATTERNS,
    STOP_WORDS,
    contains_any,
    starts_with_any,
)
from parrot.style_profile import CONTEXT_BUCKETS, CapitalizationStyle, StyleProfile
from parrot.text_normalizer import (
    extract_emojis,
    first_words,
    has_emoji,
    has_letter_repetition,
    has_multiple_punctuation,
)

logger = logging.getLogger(__name__)

_LAUGH_REGEXES = [(re.compile(pattern), style) for pattern, style in LAUGH_PATTERNS]
_PUNCTUATION = string.punctuation + "¿¡…“”‘’«»"

# Greetings that mark the previous message as a greeting when sampling replies
_GREETING_PREFIXES = (
    "oi", "olá", "ola", "eai", "e ai", "fala", "opa", "bom dia", "boa tarde", "boa noite",
)


def _rank(counts: Counter[str], min_count: int, limit: int | None = None) -> list[str]:
    """Keys with at least ``min_count`` hits, most frequent first.

    Ties keep first-seen order.
    """
    ranked = [key for key, count in counts.most_common() if count >= min_count]
    return ranked[:limit] if limit is not None else ranked


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _words(text: str) -> list[str]:
    return [word for word in text.lower().split() if word]


class StyleAnalyzer:
    """Extracts a StyleProfile from a correspondent's message history.

    Profiles are cached per correspondent by ``profile_for``; call
    ``invalidate`` after importing new messages for that correspondent.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        sample_count: int = 15,
        default_formality: float = 0.5,
    ) -> None:
        self._rng = rng or random.Random()
        self._sample_count = sample_count
        self._default_formality = default_formality
        self._cache: dict[int, StyleProfile] = {}
        self._cache_version = LEXICON_VERSION

    # =========================================================================
    # Cache
    # =========================================================================

    def profile_for(self, correspondent_id: int, messages: list[Message]) -> StyleProfile:
        """Return the cached profile for a correspondent, building it if needed."""
        if self._cache_version != LEXICON_VERSION:
            self._cache.clear()
            self._cache_version = LEXICON_VERSION
        profile = self._cache.get(correspondent_id)
        if profile is None:
            profile = self.analyze(messages)
            self._cache[correspondent_id] = profile
            logger.debug("Built style profile for correspondent %s", correspondent_id)
        return profile

    def invalidate(self, correspondent_id: int) -> None:
        self._cache.pop(correspondent_id, None)

    def clear(self) -> None:
        self._cache.clear()

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze(self, messages: list[Message]) -> StyleProfile:
        """Build a profile from ``messages`` (chronological, both senders).

        Returns the default profile when no message is self-authored.
        """
        own = [m.content for m in messages if m.is_self and m.content]
        if not own:
            return StyleProfile()

        profile = StyleProfile()

        # === BASIC METRICS ===
        profile.avg_response_length = sum(len(text) for text in own) // len(own)
        profile.avg_words_per_message = sum(len(text.split()) for text in own) / len(own)
        profile.emoji_frequency = sum(1 for text in own if has_emoji(text)) / len(own)
        profile.laugh_style = self._detect_laugh_style(own)
        profile.formality_level = self._analyze_formality(own)
        profile.uses_abbreviations = self._ratio(own, self._uses_abbreviation) > 0.15
        profile.uses_punctuation = self._ratio(own, self._ends_with_punctuation) > 0.4

        # === WRITING PATTERNS ===
        profile.capitalization_style = self._analyze_capitalization(own)
        profile.uses_letter_repetition = self._ratio(own, has_letter_repetition) > 0.1
        profile.uses_multiple_punctuation = self._ratio(own, has_multiple_punctuation) > 0.1

        # === VOCABULARY ===
        profile.filler_words = self._extract_used_words(own, FILLER_WORDS)
        profile.interjections = self._extract_used_words(own, INTERJECTIONS)
        profile.affirmations = self._extract_used_words(own, AFFIRMATIONS)
        profile.negations = self._extract_used_words(own, NEGATIONS)
        profile.english_mixins = self._extract_used_words(own, ENGLISH_MIXINS, min_count=2)
        profile.top_words = self._extract_top_words(own)
        profile.common_phrases = self._extract_common_phrases(own)
        profile.favorite_emojis = _rank(Counter(e for text in own for e in extract_emojis(text)), 2, 5)

        # === SENTENCE PATTERNS ===
        profile.sentence_starters = self._extract_sentence_starters(own)
        profile.sentence_endings = self._extract_sentence_endings(own)
        profile.greetings = self._extract_greetings(own)
        profile.closings = self._extract_closings(own)
        profile.signature_phrases = self._extract_signature_phrases(own)
        profile.question_patterns = self._extract_question_patterns(own)

        # === RESPONSE PATTERNS ===
        pairs = find_conversation_pairs(messages)
        self._extract_response_patterns(profile, pairs)
        profile.contextual_starters = self._extract_contextual_starters(pairs)

        # === ANTI-PATTERNS AND EMOTION ===
        profile.never_uses = self._detect_never_uses(own)
        profile.emotional_phrases = self._extract_emotional_phrases(own)

        profile.sample_responses = self._select_sample_responses(own, self._sample_count)

        logger.debug(
            "Analyzed %d own messages: avg_len=%d formality=%.2f laugh=%s",
            len(own),
            profile.avg_response_length,
            profile.formality_level,
            profile.laugh_style,
        )
        return profile

    @staticmethod
    def _ratio(texts: list[str], predicate) -> float:
        return sum(1 for text in texts if predicate(text)) / len(texts)

    # === Basic metrics ===

    @staticmethod
    def _detect_laugh_style(texts: list[str]) -> str | None:
        counts: dict[str, int] = {}
        for text in texts:
            lower = text.lower()
            for regex, style in _LAUGH_REGEXES:
                matches = len(regex.findall(lower))
                if matches:
                    counts[style] = counts.get(style, 0) + matches

        best: str | None = None
        best_count = 0
        # Priority order decides ties
        for _, style in _LAUGH_REGEXES:
            count = counts.get(style, 0)
            if count > best_count:
                best, best_count = style, count
        return best

    def _analyze_formality(self, texts: list[str]) -> float:
        formal = 0
        total = 0
        for text in texts:
            lower = text.lower()
            hits = sum(1 for indicator in FORMAL_INDICATORS if indicator in lower)
            formal += hits
            total += hits + sum(1 for indicator in CASUAL_INDICATORS if indicator in lower)
        if total == 0:
            return self._default_formality
        return formal / total

    @staticmethod
    def _uses_abbreviation(text: str) -> bool:
        lower = text.lower()
        return any(abbrev in lower for abbrev in ABBREVIATIONS)

    @staticmethod
    def _ends_with_punctuation(text: str) -> bool:
        return text.strip().endswith((".", "!", "?"))

    @staticmethod
    def _analyze_capitalization(texts: list[str]) -> CapitalizationStyle:
        lowercase = uppercase = normal = 0
        for text in texts:
            first = text[0]
            if first.islower():
                lowercase += 1
            elif first.isupper():
                if text.upper() == text and len(text) > 3:
                    uppercase += 1
                else:
                    normal += 1

        total = lowercase + uppercase + normal
        if total == 0:
            return "normal"
        if lowercase / total > 0.6:
            return "lowercase"
        if uppercase / total > 0.2:
            return "uppercase"
        return "normal"

    # === Vocabulary ===

    @staticmethod
    def _extract_used_words(
        texts: list[str], candidates: tuple[str, ...], min_count: int = 1
    ) -> list[str]:
        counts: Counter[str] = Counter()
        for text in texts:
            lower = text.lower()
            words = set(lower.split())
            for candidate in candidates:
                if (
                    candidate in words
                    or lower == candidate
                    or f" {candidate} " in lower
                    or lower.startswith(f"{candidate} ")
                    or lower.endswith(f" {candidate}")
                ):
                    counts[candidate] += 1
        return _rank(counts, min_count)

    @staticmethod
    def _extract_top_words(texts: list[str]) -> list[str]:
        counts: Counter[str] = Counter()
        for text in texts:
            for word in _words(text):
                if len(word) <= 2 or word in STOP_WORDS:
                    continue
                cleaned = word.strip(_PUNCTUATION)
                if len(cleaned) > 2:
                    counts[cleaned] += 1
        return _rank(counts, 3, 20)

    @staticmethod
    def _extract_common_phrases(texts: list[str]) -> list[str]:
        counts: Counter[str] = Counter()
        for text in texts:
            words = _words(text)
            if len(words) < 2:
                continue
            for n in range(2, min(4, len(words)) + 1):
                for i in range(len(words) - n + 1):
                    phrase = " ".join(words[i : i + n])
                    if 4 < len(phrase) < 40:
                        counts[phrase] += 1
        return _rank(counts, 3, 15)

    # === Sentence patterns ===

    @staticmethod
    def _extract_sentence_starters(texts: list[str]) -> list[str]:
        counts: Counter[str] = Counter()
        for text in texts:
            words = _words(text)
            if words and len(words[0]) > 1:
                counts[words[0]] += 1
            if len(words) >= 2:
                counts[f"{words[0]} {words[1]}"] += 1
        return _rank(counts, 3, 10)

    @staticmethod
    def _extract_sentence_endings(texts: list[str]) -> list[str]:
        counts: Counter[str] = Counter()
        for text in texts:
            words = _words(text)
            if words and len(words[-1]) > 1:
                cleaned = words[-1].strip(_PUNCTUATION)
                if cleaned:
                    counts[cleaned] += 1
        return _rank(counts, 3, 10)

    @staticmethod
    def _extract_greetings(texts: list[str]) -> list[str]:
        found: list[str] = []
        for text in texts:
            lower = text.lower()
            found.extend(g for g in GREETING_STARTERS if starts_with_any(lower, (g,)))
        return _unique(found)

    @staticmethod
    def _extract_closings(texts: list[str]) -> list[str]:
        found: list[str] = []
        for text in texts:
            lower = text.lower()
            words = lower.split()
            last = words[-1] if words else ""
            for closing in CLOSINGS:
                if last == closing or lower.endswith(f" {closing}") or lower.endswith(f"{closing}!"):
                    found.append(closing)
        return _unique(found)

    @staticmethod
    def _extract_signature_phrases(texts: list[str]) -> list[str]:
        """Two and three word openers and closers that recur across messages."""
        counts: Counter[str] = Counter()
        for text in texts:
            words = [w.strip(_PUNCTUATION) for w in _words(text)]
            words = [w for w in words if w]
            if len(words) < 3:
                continue
            candidates = {" ".join(words[:2]), " ".join(words[:3]), " ".join(words[-2:])}
            for phrase in candidates:
                if not all(word in STOP_WORDS for word in phrase.split()):
                    counts[phrase] += 1
        return _rank(counts, 2, 5)

    @staticmethod
    def _extract_question_patterns(texts: list[str]) -> list[str]:
        counts: Counter[str] = Counter()
        for text in texts:
            if "?" in text:
                opener = first_words(text.strip(_PUNCTUATION + " "), 2)
                if opener:
                    counts[opener] += 1
        return _rank(counts, 2, 5)

    # === Response patterns ===

    def _sample(self, replies: list[str], limit: int) -> list[str]:
        unique = _unique(replies)
        self._rng.shuffle(unique)
        return unique[:limit]

    def _extract_response_patterns(
        self, profile: StyleProfile, pairs: list[tuple[Message, Message]]
    ) -> None:
        questions: list[str] = []
        greetings: list[str] = []
        statements: list[str] = []
        for incoming, reply in pairs:
            lower = incoming.content.lower()
            if lower.startswith(_GREETING_PREFIXES):
                greetings.append(reply.content)
            if "?" in incoming.content:
                questions.append(reply.content)
            elif not lower.startswith(_GREETING_PREFIXES):
                statements.append(reply.content)

        profile.question_responses = self._sample(questions, 10)
        profile.greeting_responses = self._sample(greetings, 5)
        profile.statement_responses = self._sample(statements, 10)

    @staticmethod
    def classify_context(text: str) -> str | None:
        """Bucket an incoming message as greeting, question, news or request."""
        lower = text.lower().strip()
        if starts_with_any(lower, GREETING_STARTERS):
            return "greeting"
        if "?" in lower or starts_with_any(lower, QUESTION_WORDS, separators=" ,?"):
            return "question"
        if contains_any(lower, NEWS_INDICATORS):
            return "news"
        if contains_any(lower, REQUEST_PATTERNS):
            return "request"
        return None

    def _extract_contextual_starters(
        self, pairs: list[tuple[Message, Message]]
    ) -> dict[str, list[str]]:
        counts: dict[str, Counter[str]] = {bucket: Counter() for bucket in CONTEXT_BUCKETS}
        for incoming, reply in pairs:
            bucket = self.classify_context(incoming.content)
            if bucket is None:
                continue
            starter = first_words(reply.content, 3)
            if starter:
                counts[bucket][starter] += 1
        return {bucket: _rank(counter, 2, 5) for bucket, counter in counts.items()}

    # === Anti-patterns and emotion ===

    @staticmethod
    def _detect_never_uses(texts: list[str]) -> list[str]:
        lowered = [text.lower() for text in texts]
        return [word for word in NEVER_USE_CANDIDATES if not any(word in text for text in lowered)]

    @staticmethod
    def _extract_emotional_phrases(texts: list[str]) -> dict[str, list[str]]:
        lowered = [text.lower() for text in texts]
        result: dict[str, list[str]] = {}
        for bucket, phrases in EMOTIONAL_PHRASES.items():
            counts: Counter[str] = Counter()
            for text in lowered:
                for phrase in phrases:
                    if re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text):
                        counts[phrase] += 1
            result[bucket] = _rank(counts, 1, 5)
        return result

    # === Sample selection ===

    def _select_sample_responses(self, texts: list[str], count: int) -> list[str]:
        """Pick short, medium and long samples in roughly equal parts."""
        if len(texts) < 3:
            return _unique(texts)[:count]

        ordered = sorted(texts, key=len)
        third = max(1, len(ordered) // 3)
        buckets = [ordered[:third], ordered[third : third * 2], ordered[-third:]]

        samples: list[str] = []
        for bucket in buckets:
            picked = list(bucket)
            self._rng.shuffle(picked)
            samples.extend(picked[: count // 3 + 1])
        return _unique(samples)[:count]
