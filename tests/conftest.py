"""Pytest configuration for Parrot tests.

Fixtures wire the in-memory fakes from tests.helpers so the pipeline runs
without network access or shared disk state.
"""

from __future__ import annotations

import random

import pytest

from parrot.config import ParrotConfig
from parrot.contracts.messages import Message
from tests.helpers import (
    SAMPLE_EXCHANGES,
    FakeEmbeddingClient,
    FakeGenerationClient,
    FakeHistory,
    build_conversation,
)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def embedder() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def generator_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def sample_messages() -> list[Message]:
    return build_conversation(SAMPLE_EXCHANGES)


@pytest.fixture
def history(sample_messages) -> FakeHistory:
    return FakeHistory(sample_messages)


@pytest.fixture
def config(tmp_path) -> ParrotConfig:
    """Config rooted in a temporary data directory."""
    return ParrotConfig(data_dir=str(tmp_path / "data"), user_name="Ana Souza")
