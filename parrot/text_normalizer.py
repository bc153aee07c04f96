"""Text Normalizer - Canonical text helpers for chat messages.

Emoji detection, tokenization and whitespace cleanup used by the style
analyzer, the decision engine and the prompt guards.

Usage:
    from parrot.text_normalizer import normalize_text, tokenize, has_emoji

    cleaned = normalize_text("  oi\u200b   tudo bem  ")  # "oi tudo bem"
    words = tokenize("E aí, tudo certo?")  # ["e", "aí", "tudo", "certo"]
"""

from __future__ import annotations

import re

from parrot.lexicons import ACKNOWLEDGMENTS, LAUGH_ONLY_REGEX

# Presentation emoji blocks (pictographs, emoticons, transport, flags, dingbats)
_EMOJI_RANGES = (
    "\U0001F300-\U0001FAFF"
    "\U00002600-\U000027BF"
    "\U0001F1E0-\U0001F1FF"
    "\U00002B50\U00002B55"
    "\U0000231A\U0000231B"
    "\U000023E9-\U000023F3"
)

EMOJI_CHAR_PATTERN = re.compile(f"[{_EMOJI_RANGES}]")

# Emoji plus joiners, variation selectors and skin tone modifiers
EMOJI_PATTERN = re.compile(f"^[{_EMOJI_RANGES}\\s\u200d\ufe0f\U0001F3FB-\U0001F3FF]+$")

_INVISIBLE_CHARS_PATTERN = re.compile("[\u200b\u200c\u200e\u200f\u2060\ufeff]")
_WHITESPACE_PATTERN = re.compile(r"[ \t]+")
_WORD_PATTERN = re.compile(r"\w+", re.UNICODE)
_TRAILING_PUNCT_PATTERN = re.compile(r"[.!?,;:]+$")
_LETTER_REPETITION_PATTERN = re.compile(r"([a-zA-ZÀ-ÿ])\1{2,}")
_MULTI_PUNCT_PATTERN = re.compile(r"\?{2,}|!{2,}|\.{3,}")


def normalize_text(text: str) -> str:
    """Strip invisible characters and collapse runs of spaces on each line."""
    if not text:
        return ""
    cleaned = _INVISIBLE_CHARS_PATTERN.sub("", text)
    lines = [_WHITESPACE_PATTERN.sub(" ", line.strip()) for line in cleaned.split("\n")]
    return "\n".join(line for line in lines if line).strip()


def tokenize(text: str) -> list[str]:
    """Lowercased word tokens, punctuation and emoji dropped."""
    return _WORD_PATTERN.findall(text.lower())


def has_emoji(text: str) -> bool:
    """Check if text contains at least one presentation emoji."""
    return bool(EMOJI_CHAR_PATTERN.search(text))


def extract_emojis(text: str) -> list[str]:
    """Return every presentation emoji in order of appearance."""
    return EMOJI_CHAR_PATTERN.findall(text)


def is_emoji_only(text: str) -> bool:
    """Check if text contains only emojis and whitespace."""
    if not text or not text.strip():
        return False
    return bool(EMOJI_PATTERN.match(text.strip()))


def is_acknowledgment_only(text: str) -> bool:
    """Check if text is a bare acknowledgment or short reaction.

    Matches the acknowledgment lexicon (with trailing punctuation ignored),
    laugh-only tokens like "kkkkkk" or "hahaha", and emoji-only messages of
    at most four characters.
    """
    if not text:
        return False
    normalized = text.lower().strip()
    stripped = _TRAILING_PUNCT_PATTERN.sub("", normalized)
    if normalized in ACKNOWLEDGMENTS or stripped in ACKNOWLEDGMENTS:
        return True
    if LAUGH_ONLY_REGEX.match(stripped):
        return True
    return len(normalized) <= 4 and is_emoji_only(normalized)


def has_letter_repetition(text: str) -> bool:
    """Check for a letter repeated three or more times ("siiim", "nãooo")."""
    return bool(_LETTER_REPETITION_PATTERN.search(text))


def has_multiple_punctuation(text: str) -> bool:
    """Check for stacked marks ("sério??", "não!!", "enfim...")."""
    return bool(_MULTI_PUNCT_PATTERN.search(text))


def first_words(text: str, count: int = 3) -> str:
    """Return the first ``count`` whitespace-separated words, lowercased."""
    return " ".join(text.lower().split()[:count])
