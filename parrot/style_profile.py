"""Style Profile - Aggregated writing fingerprint of the profiled person.

A StyleProfile is derived data: StyleAnalyzer rebuilds it wholesale from a
correspondent's message history, the message store caches it as JSON, and
the reply generator renders it into the system prompt.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Literal

import orjson

CapitalizationStyle = Literal["lowercase", "uppercase", "normal"]

EMOTION_BUCKETS = ("happy", "sad", "excited", "frustrated")
CONTEXT_BUCKETS = ("greeting", "question", "news", "request")


def _empty_buckets(names: tuple[str, ...]) -> dict[str, list[str]]:
    return {name: [] for name in names}


@dataclass
class StyleProfile:
    """Writing style characteristics extracted from self-authored messages.

    The defaults are the profile returned when there is nothing to learn
    from (no self-authored messages).
    """

    # Basic metrics
    avg_response_length: int = 50
    avg_words_per_message: float = 5.0
    emoji_frequency: float = 0.3
    laugh_style: str | None = "kkkk"
    formality_level: float = 0.3
    uses_abbreviations: bool = True
    uses_punctuation: bool = False

    # Writing patterns
    capitalization_style: CapitalizationStyle = "normal"
    uses_letter_repetition: bool = False
    uses_multiple_punctuation: bool = False

    # Vocabulary
    filler_words: list[str] = field(default_factory=list)
    interjections: list[str] = field(default_factory=list)
    affirmations: list[str] = field(default_factory=list)
    negations: list[str] = field(default_factory=list)
    top_words: list[str] = field(default_factory=list)
    common_phrases: list[str] = field(default_factory=list)

    # Sentence patterns
    sentence_starters: list[str] = field(default_factory=list)
    sentence_endings: list[str] = field(default_factory=list)
    greetings: list[str] = field(default_factory=list)
    closings: list[str] = field(default_factory=list)
    favorite_emojis: list[str] = field(default_factory=list)
    signature_phrases: list[str] = field(default_factory=list)
    question_patterns: list[str] = field(default_factory=list)
    english_mixins: list[str] = field(default_factory=list)

    # Categorized samples
    question_responses: list[str] = field(default_factory=list)
    greeting_responses: list[str] = field(default_factory=list)
    statement_responses: list[str] = field(default_factory=list)
    sample_responses: list[str] = field(default_factory=list)

    # Anti-vocabulary and context maps
    never_uses: list[str] = field(default_factory=list)
    emotional_phrases: dict[str, list[str]] = field(
        default_factory=lambda: _empty_buckets(EMOTION_BUCKETS)
    )
    contextual_starters: dict[str, list[str]] = field(
        default_factory=lambda: _empty_buckets(CONTEXT_BUCKETS)
    )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StyleProfile:
        """Build a profile from a dict, ignoring unknown keys.

        Missing keys fall back to the defaults, so profiles cached by an
        older version still load.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        profile = cls(**kwargs)
        for name in EMOTION_BUCKETS:
            profile.emotional_phrases.setdefault(name, [])
        for name in CONTEXT_BUCKETS:
            profile.contextual_starters.setdefault(name, [])
        return profile

    def to_json(self) -> str:
        return orjson.dumps(self.to_dict()).decode("utf-8")

    @classmethod
    def from_json(cls, raw: str | bytes) -> StyleProfile | None:
        """Decode a cached profile; None if the payload is not a JSON object."""
        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError:
            return None
        if not isinstance(data, dict):
            return None
        return cls.from_dict(data)

    @property
    def max_reply_words(self) -> int:
        """Upper bound of the typical reply length, in words."""
        return max(3, int(self.avg_words_per_message * 1.5))

    def to_prompt_description(self) -> str:
        """Render the profile as style guidelines for the system prompt."""
        lines = ["Response style guidelines:"]

        if self.avg_response_length < 30:
            lines.append("- Keep responses VERY short (1-2 words or a single phrase)")
        elif self.avg_response_length < 60:
            lines.append("- Keep responses short (1 sentence max)")
        elif self.avg_response_length < 120:
            lines.append("- Medium length responses (1-2 sentences)")
        else:
            lines.append("- Can use longer responses when needed")

        if self.emoji_frequency > 0.5:
            lines.append("- Use emojis frequently")
        elif self.emoji_frequency > 0.2:
            lines.append("- Use emojis occasionally")
        else:
            lines.append("- Rarely use emojis")
        if self.favorite_emojis:
            lines.append(f"- Favorite emojis: {' '.join(self.favorite_emojis[:5])}")

        if self.laugh_style:
            lines.append(f'- For laughing, use "{self.laugh_style}"')

        if self.formality_level < 0.3:
            lines.append("- Very casual/informal tone")
        elif self.formality_level < 0.6:
            lines.append("- Casual but friendly tone")
        else:
            lines.append("- More formal/polite tone")

        if self.uses_abbreviations:
            lines.append("- Use common abbreviations (vc, tb, pq, q, oq, etc.)")
        if not self.uses_punctuation:
            lines.append("- Don't use much punctuation (no periods at end)")

        if self.capitalization_style == "lowercase":
            lines.append("- Write everything in lowercase")
        elif self.capitalization_style == "uppercase":
            lines.append("- Often WRITE IN CAPS for emphasis")
        if self.uses_letter_repetition:
            lines.append('- Stretch words for emphasis ("siiim", "nãooo")')
        if self.uses_multiple_punctuation:
            lines.append('- Stack punctuation when reacting ("sério??", "não!!")')

        if self.common_phrases:
            phrases = '", "'.join(self.common_phrases[:5])
            lines.append(f'- Often uses phrases like: "{phrases}"')
        if self.filler_words:
            lines.append(f"- Filler words: {', '.join(self.filler_words[:5])}")
        if self.interjections:
            lines.append(f"- Interjections: {', '.join(self.interjections[:5])}")
        if self.affirmations:
            lines.append(f"- Says yes like: {', '.join(self.affirmations[:5])}")
        if self.negations:
            lines.append(f"- Says no like: {', '.join(self.negations[:5])}")
        if self.sentence_starters:
            lines.append(f"- Typically starts messages with: {', '.join(self.sentence_starters[:5])}")
        if self.greetings:
            lines.append(f"- Greets with: {', '.join(self.greetings[:5])}")
        if self.closings:
            lines.append(f"- Signs off with: {', '.join(self.closings[:5])}")
        if self.english_mixins:
            lines.append(f"- Mixes in English words: {', '.join(self.english_mixins[:5])}")

        for bucket in EMOTION_BUCKETS:
            phrases = self.emotional_phrases.get(bucket) or []
            if phrases:
                lines.append(f"- When {bucket}: {', '.join(phrases[:3])}")

        return "\n".join(lines) + "\n"
