"""OpenAI-compatible backends (OpenAI and Maritaca) via openai.AsyncOpenAI.

Maritaca exposes the OpenAI chat completions API under its own base URL, so
both providers share one client class.
"""

from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

from parrot.errors import (
    EmbeddingError,
    GenerationError,
    backend_not_configured,
    generation_timeout,
)

logger = logging.getLogger(__name__)

MARITACA_SYSTEM_NOTE = (
    "\n\nIMPORTANT: You are optimized for Brazilian Portuguese. Be natural and casual."
)


class OpenAICompatClient:
    """Chat completion and embedding client for OpenAI-style APIs.

    Args:
        api_key: Provider API key. An empty key leaves the client unconfigured.
        model: Chat model identifier.
        name: Backend name used in logs and errors.
        base_url: Override for OpenAI-compatible providers.
        embedding_model: Embedding model identifier, None if unsupported.
        timeout_seconds: Per-request timeout.
        system_note: Text appended to every system prompt.
        client: Prebuilt AsyncOpenAI client (tests inject a mock).
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        name: str = "openai",
        base_url: str | None = None,
        embedding_model: str | None = None,
        timeout_seconds: float = 30.0,
        system_note: str = "",
        temperature: float = 0.7,
        top_p: float | None = None,
        max_tokens: int = 150,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.name = name
        self.model = model
        self.embedding_model = embedding_model
        self.timeout_seconds = timeout_seconds
        self.system_note = system_note
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds)

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        if self._client is None:
            raise backend_not_configured(self.name)

        messages = []
        system = (system_prompt or "") + self.system_note
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if self.top_p is not None:
            kwargs["top_p"] = self.top_p

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise generation_timeout(self.name, self.timeout_seconds) from e
        except openai.APIStatusError as e:
            raise GenerationError(
                f"{self.name} returned HTTP {e.status_code}",
                backend=self.name,
                status_code=e.status_code,
                prompt=prompt,
                cause=e,
            ) from e
        except openai.OpenAIError as e:
            raise GenerationError(
                f"{self.name} request failed: {e}", backend=self.name, prompt=prompt, cause=e
            ) from e

        if not response.choices:
            raise GenerationError(f"{self.name} returned no choices", backend=self.name, prompt=prompt)
        content = response.choices[0].message.content or ""
        return content.strip()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if self._client is None or not self.embedding_model:
            raise EmbeddingError(f"{self.name} embeddings are not configured", backend=self.name)

        try:
            response = await self._client.embeddings.create(model=self.embedding_model, input=texts)
        except openai.APIStatusError as e:
            raise EmbeddingError(
                f"{self.name} returned HTTP {e.status_code}",
                backend=self.name,
                status_code=e.status_code,
                cause=e,
            ) from e
        except openai.OpenAIError as e:
            raise EmbeddingError(f"{self.name} embed failed: {e}", backend=self.name, cause=e) from e

        if len(response.data) != len(texts):
            raise EmbeddingError(
                f"{self.name} returned {len(response.data)} vectors for {len(texts)} texts",
                backend=self.name,
            )
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]
