"""Tests for StyleAnalyzer, StyleProfile and the text helpers they use."""

from __future__ import annotations

import random

from parrot.style_analyzer import StyleAnalyzer
from parrot.style_profile import CONTEXT_BUCKETS, EMOTION_BUCKETS, StyleProfile
from parrot.text_normalizer import (
    extract_emojis,
    has_emoji,
    is_acknowledgment_only,
    is_emoji_only,
    normalize_text,
    tokenize,
)
from tests.helpers import build_conversation, make_message


class TestTextNormalizer:
    """Tests for the chat text helpers."""

    def test_normalize_strips_invisible_and_spaces(self):
        assert normalize_text("  oi\u200b   tudo bem  ") == "oi tudo bem"
        assert normalize_text("") == ""

    def test_tokenize(self):
        assert tokenize("E aí, tudo certo?") == ["e", "aí", "tudo", "certo"]

    def test_emoji_helpers(self):
        assert has_emoji("bora 😂")
        assert not has_emoji("bora")
        assert extract_emojis("😂 oi 🎉") == ["😂", "🎉"]
        assert is_emoji_only("😂😂")
        assert not is_emoji_only("oi 😂")

    def test_acknowledgment_only(self):
        assert is_acknowledgment_only("ok")
        assert is_acknowledgment_only("kkkkkk")
        assert not is_acknowledgment_only("ok mas e amanhã?")


class TestAnalyze:
    """Tests for StyleAnalyzer.analyze."""

    def test_no_self_messages_returns_default(self):
        messages = [make_message("oi"), make_message("tudo bem?")]
        assert StyleAnalyzer().analyze(messages) == StyleProfile()

    def test_basic_metrics(self, sample_messages):
        profile = StyleAnalyzer(rng=random.Random(1)).analyze(sample_messages)
        own = [m.content for m in sample_messages if m.is_self]

        assert profile.avg_response_length == sum(len(t) for t in own) // len(own)
        assert profile.laugh_style == "kkkk"
        assert profile.capitalization_style == "lowercase"
        assert profile.formality_level < 0.5
        assert profile.uses_abbreviations

    def test_vocabulary(self, sample_messages):
        profile = StyleAnalyzer().analyze(sample_messages)
        assert profile.affirmations[0] == "sim"
        assert "bora" in profile.affirmations
        assert "legal" in profile.never_uses
        assert set(profile.emotional_phrases) == set(EMOTION_BUCKETS)
        assert set(profile.contextual_starters) == set(CONTEXT_BUCKETS)

    def test_response_patterns(self, sample_messages):
        profile = StyleAnalyzer().analyze(sample_messages)
        assert "oii tudo sim e vc" in profile.greeting_responses
        assert "bora sim kkkk" in profile.question_responses
        assert "nada kkkk" in profile.statement_responses

    def test_sampling_is_reproducible_with_seeded_rng(self, sample_messages):
        first = StyleAnalyzer(rng=random.Random(7)).analyze(sample_messages)
        second = StyleAnalyzer(rng=random.Random(7)).analyze(sample_messages)
        assert first.sample_responses == second.sample_responses
        assert first.question_responses == second.question_responses

    def test_sample_count_is_respected(self, sample_messages):
        profile = StyleAnalyzer(sample_count=4).analyze(sample_messages)
        assert len(profile.sample_responses) <= 4

    def test_default_formality_when_no_indicators(self):
        messages = build_conversation([("xyz", "abc def")])
        profile = StyleAnalyzer(default_formality=0.8).analyze(messages)
        assert profile.formality_level == 0.8

    def test_uppercase_style(self):
        messages = build_conversation(
            [("oi", "NOSSA QUE LEGAL"), ("e aí", "SIM SIM SIM"), ("foi?", "Foi sim")]
        )
        assert StyleAnalyzer().analyze(messages).capitalization_style == "uppercase"

    def test_favorite_emojis_need_repeats(self):
        messages = build_conversation([("a", "boa 🎉"), ("b", "isso 🎉"), ("c", "ok 😎")])
        profile = StyleAnalyzer().analyze(messages)
        assert profile.favorite_emojis == ["🎉"]


class TestClassifyContext:
    def test_buckets(self):
        assert StyleAnalyzer.classify_context("oi tudo bem") == "greeting"
        assert StyleAnalyzer.classify_context("vc vem hoje?") == "question"
        assert StyleAnalyzer.classify_context("xyz abc") is None


class TestProfileCache:
    """Tests for the per-correspondent profile cache."""

    def test_profile_for_caches(self, sample_messages):
        analyzer = StyleAnalyzer()
        first = analyzer.profile_for(1, sample_messages)
        assert analyzer.profile_for(1, []) is first

    def test_invalidate_rebuilds(self, sample_messages):
        analyzer = StyleAnalyzer()
        first = analyzer.profile_for(1, sample_messages)
        analyzer.invalidate(1)
        assert analyzer.profile_for(1, []) is not first

    def test_clear(self, sample_messages):
        analyzer = StyleAnalyzer()
        analyzer.profile_for(1, sample_messages)
        analyzer.profile_for(2, sample_messages)
        analyzer.clear()
        assert analyzer.profile_for(2, []) == StyleProfile()


class TestStyleProfile:
    """Tests for StyleProfile serialization and rendering."""

    def test_json_round_trip(self, sample_messages):
        profile = StyleAnalyzer(rng=random.Random(3)).analyze(sample_messages)
        assert StyleProfile.from_json(profile.to_json()) == profile

    def test_from_json_rejects_garbage(self):
        assert StyleProfile.from_json("not json") is None
        assert StyleProfile.from_json("[1, 2]") is None

    def test_from_dict_ignores_unknown_keys(self):
        profile = StyleProfile.from_dict({"laugh_style": "rs", "unknown_field": 1})
        assert profile.laugh_style == "rs"

    def test_max_reply_words(self):
        assert StyleProfile(avg_words_per_message=1.0).max_reply_words == 3
        assert StyleProfile(avg_words_per_message=6.0).max_reply_words == 9

    def test_prompt_description(self):
        profile = StyleProfile(
            avg_response_length=20,
            laugh_style="kkkk",
            capitalization_style="lowercase",
            favorite_emojis=["😂"],
        )
        description = profile.to_prompt_description()
        assert description.startswith("Response style guidelines:")
        assert "VERY short" in description
        assert '"kkkk"' in description
        assert "lowercase" in description
        assert "😂" in description
