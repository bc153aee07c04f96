"""Tests for group windows and topic relevance scoring."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from parrot.config import GroupConfig
from parrot.errors import EmbeddingError
from parrot.group_context import (
    GroupContextAnalyzer,
    GroupContextStore,
    GroupMessage,
    extract_keywords,
)
from parrot.rag.models import SimilarPair
from tests.helpers import make_message

NOW = datetime(2024, 3, 10, 14, 0)


class StubRAG:
    def __init__(self, similarities=None, error: Exception | None = None, configured=True):
        self.similarities = similarities or []
        self.error = error
        self.is_configured = configured
        self.queries: list[str] = []

    async def find_similar_context(self, text, correspondent_id, limit=5):
        self.queries.append(text)
        if self.error is not None:
            raise self.error
        return [SimilarPair("past", "reply", s) for s in self.similarities]


class TestGroupContextStore:
    """Tests for the bounded per-group windows."""

    def test_window_keeps_most_recent(self):
        store = GroupContextStore(max_messages=3)
        for i in range(5):
            store.add("g", GroupMessage("Bia", f"m{i}", NOW))
        assert [m.content for m in store.get("g")] == ["m2", "m3", "m4"]

    def test_least_recently_updated_group_evicted(self):
        store = GroupContextStore(max_groups=2)
        store.add("a", GroupMessage("x", "1", NOW))
        store.add("b", GroupMessage("x", "1", NOW))
        store.add("a", GroupMessage("x", "2", NOW))
        store.add("c", GroupMessage("x", "1", NOW))
        assert len(store) == 2
        assert store.get("b") == []
        assert len(store.get("a")) == 2

    def test_refresh_drops_stale_messages(self):
        store = GroupContextStore()
        store.add("old", GroupMessage("x", "velha", NOW - timedelta(hours=7)))
        store.add("mixed", GroupMessage("x", "velha", NOW - timedelta(hours=7)))
        store.add("mixed", GroupMessage("x", "nova", NOW - timedelta(hours=1)))
        store.refresh(now=NOW)
        assert store.get("old") == []
        assert [m.content for m in store.get("mixed")] == ["nova"]
        assert len(store) == 1

    def test_invalidate_and_clear(self):
        store = GroupContextStore()
        store.add("a", GroupMessage("x", "1", NOW))
        store.add("b", GroupMessage("x", "1", NOW))
        store.invalidate("a")
        assert store.get("a") == []
        store.clear()
        assert len(store) == 0


class TestKeywords:
    def test_extract_keywords(self):
        assert extract_keywords("Alguém vai no churrasco? Isso é muito_bom") == [
            "alguém",
            "churrasco",
        ]


class TestMessageTracking:
    def test_stale_messages_leave_window_on_add(self):
        analyzer = GroupContextAnalyzer()
        analyzer.add_message("Amigos", "Bia", "bom dia", NOW - timedelta(hours=7))
        analyzer.add_message("Família", "Caio", "almoço domingo?", NOW - timedelta(hours=8))
        analyzer.add_message("Amigos", "Caio", "bora jogar?", NOW)
        assert [m.content for m in analyzer.get_context("Amigos")] == ["bora jogar?"]
        assert analyzer.get_context("Família") == []

    def test_max_age_is_configurable(self):
        analyzer = GroupContextAnalyzer(config=GroupConfig(context_max_age_hours=12))
        analyzer.add_message("Amigos", "Bia", "bom dia", NOW - timedelta(hours=7))
        analyzer.add_message("Amigos", "Caio", "bora jogar?", NOW)
        assert len(analyzer.get_context("Amigos")) == 2


class TestTopicRelevance:
    """Tests for should_participate and check_topic_relevance."""

    def _analyzer(self, rag, **config) -> GroupContextAnalyzer:
        analyzer = GroupContextAnalyzer(rag=rag, config=GroupConfig(**config))
        for text in ("alguém vai no churrasco?", "curto", "vai ter cerveja gelada"):
            analyzer.add_message("Amigos", "Bia", text, NOW)
        return analyzer

    def test_extract_topic_text_skips_short_messages(self):
        analyzer = self._analyzer(None)
        topic = analyzer.extract_topic_text(analyzer.get_context("Amigos"), "e aí?")
        assert topic == "alguém vai no churrasco? | vai ter cerveja gelada | e aí?"

    @pytest.mark.asyncio
    async def test_boost_when_several_strong_matches(self):
        analyzer = self._analyzer(StubRAG([0.6, 0.6, 0.3]))
        score = await analyzer.check_topic_relevance("churrasco", 1)
        assert score == pytest.approx(0.5 + 0.1)

    @pytest.mark.asyncio
    async def test_score_is_capped(self):
        analyzer = self._analyzer(StubRAG([1.0, 1.0]))
        assert await analyzer.check_topic_relevance("churrasco", 1) == 1.0

    @pytest.mark.asyncio
    async def test_default_relevance_without_rag(self):
        analyzer = self._analyzer(None, default_relevance=0.2)
        assert await analyzer.check_topic_relevance("x", 1) == 0.2
        unconfigured = self._analyzer(StubRAG([0.9], configured=False), default_relevance=0.2)
        assert await unconfigured.check_topic_relevance("x", 1) == 0.2

    @pytest.mark.asyncio
    async def test_should_participate_above_threshold(self):
        rag = StubRAG([0.7, 0.7])
        analyzer = self._analyzer(rag)
        relevance = await analyzer.should_participate("Amigos", 1, "quem leva o carvão")
        assert relevance.participate
        assert relevance.reason == "Topic relevance: 80%"
        assert rag.queries[0].endswith("quem leva o carvão")

    @pytest.mark.asyncio
    async def test_threshold_is_configurable(self):
        analyzer = self._analyzer(StubRAG([0.5]), relevance_threshold=0.6)
        relevance = await analyzer.should_participate("Amigos", 1, "quem leva o carvão")
        assert not relevance.participate
        assert relevance.reason == "Topic not relevant enough (50%)"

    @pytest.mark.asyncio
    async def test_backend_failure_is_not_fatal(self):
        analyzer = self._analyzer(StubRAG(error=EmbeddingError("down")))
        relevance = await analyzer.should_participate("Amigos", 1, "quem leva o carvão")
        assert not relevance.participate
        assert relevance.reason == "Relevance check failed"


class TestParticipationPatterns:
    def test_answerable_question(self):
        assert GroupContextAnalyzer.is_answerable_question("alguém sabe um bom mecânico")
        assert GroupContextAnalyzer.is_answerable_question("sério?")
        assert not GroupContextAnalyzer.is_answerable_question("que calor hoje")

    def test_matches_response_pattern_needs_two_self_messages(self):
        one = [make_message("adoro futebol", is_self=True), make_message("futebol?")]
        assert not GroupContextAnalyzer.matches_response_pattern("futebol hoje", one)
        two = one + [make_message("futebol sempre", is_self=True)]
        assert GroupContextAnalyzer.matches_response_pattern("futebol hoje", two)

    def test_extract_user_interests(self):
        messages = [
            make_message("bora no bar, depois futebol", is_self=True),
            make_message("futebol de novo", is_self=True),
            make_message("viagem no feriado"),
        ]
        interests = GroupContextAnalyzer.extract_user_interests(messages)
        assert interests[0] == "futebol"
        assert "bar" in interests
        assert "viagem" not in interests
