"""Shared test helpers: in-memory backend and history fakes, message builders."""

from __future__ import annotations

import re
import zlib
from datetime import datetime, timedelta

import numpy as np

from parrot.contracts.messages import Message, Sender
from parrot.errors import EmbeddingError

FAKE_EMBEDDING_DIM = 64
BASE_TIME = datetime(2024, 3, 10, 14, 0, 0)


class FakeEmbeddingClient:
    """Bag-of-words hashing embedder: texts sharing words get similar vectors."""

    def __init__(self, configured: bool = True, fail_on: str | None = None):
        self.configured = configured
        self.fail_on = fail_on
        self.batches: list[list[str]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    @staticmethod
    def vector(text: str) -> list[float]:
        vec = np.zeros(FAKE_EMBEDDING_DIM, dtype=np.float32)
        for word in re.findall(r"\w+", text.lower()):
            vec[zlib.crc32(word.encode()) % FAKE_EMBEDDING_DIM] += 1.0
        if not vec.any():
            vec[0] = 1.0
        return vec.tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if self.fail_on is not None and any(self.fail_on in t for t in texts):
            raise EmbeddingError("fake embedding failure", backend="fake")
        return [self.vector(t) for t in texts]

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]


class FakeGenerationClient:
    """Records every request and answers with a canned reply."""

    def __init__(self, reply: str = "tô sim, bora"):
        self.reply = reply
        self.calls: list[tuple[str, str | None]] = []

    @property
    def name(self) -> str:
        return "fake"

    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        self.calls.append((prompt, system_prompt))
        return self.reply


class FakeHistory:
    """In-memory HistorySource keyed by correspondent id."""

    def __init__(self, messages: list[Message] | None = None):
        self.by_correspondent: dict[int, list[Message]] = {}
        for message in messages or []:
            self.by_correspondent.setdefault(message.correspondent_id, []).append(message)
        self.calls = 0

    def get_messages(self, correspondent_id: int, limit: int = 100) -> list[Message]:
        self.calls += 1
        return self.by_correspondent.get(correspondent_id, [])[-limit:]

    def get_message_count(self, correspondent_id: int) -> int:
        return len(self.by_correspondent.get(correspondent_id, []))


def make_message(
    content: str,
    is_self: bool = False,
    correspondent_id: int = 1,
    timestamp: datetime | None = None,
    message_id: int = 0,
) -> Message:
    """Build a Message with sensible defaults."""
    return Message(
        id=message_id,
        correspondent_id=correspondent_id,
        sender=Sender.SELF if is_self else Sender.OTHER,
        content=content,
        timestamp=timestamp or BASE_TIME,
    )


def build_conversation(
    exchanges: list[tuple[str, str]],
    correspondent_id: int = 1,
    start: datetime = BASE_TIME,
    step: timedelta = timedelta(minutes=1),
) -> list[Message]:
    """Alternate (other, self) exchanges into a chronological message list."""
    messages: list[Message] = []
    when = start
    for other_text, self_text in exchanges:
        for text, is_self in ((other_text, False), (self_text, True)):
            messages.append(
                make_message(
                    text,
                    is_self=is_self,
                    correspondent_id=correspondent_id,
                    timestamp=when,
                    message_id=len(messages) + 1,
                )
            )
            when += step
    return messages


SAMPLE_EXCHANGES = [
    ("oi, tudo bem?", "oii tudo sim e vc"),
    ("bora almoçar amanhã?", "bora sim kkkk"),
    ("vc viu o jogo ontem?", "vi mano, q jogo"),
    ("tá em casa?", "tô sim"),
    ("me manda aquela foto", "mando já"),
    ("que horas vc chega?", "lá pras 8"),
    ("valeu pela ajuda", "nada kkkk"),
    ("bom dia!", "bom diaa"),
    ("vamos no cinema sábado?", "vamos sim, qual filme?"),
    ("conseguiu resolver aquilo?", "consegui kkkk"),
    ("tô indo aí", "blz, te espero"),
    ("onde vc tá?", "no trampo ainda"),
]


