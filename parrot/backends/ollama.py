"""Ollama backend over httpx.

Talks to a local Ollama server: /api/generate for replies, /api/embed for
embeddings and /api/tags as a liveness probe.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from parrot.errors import EmbeddingError, ErrorCode, GenerationError, generation_timeout

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaClient:
    """Generation and embedding client for a local Ollama server.

    Args:
        base_url: Server root URL.
        model: Generation model tag.
        embedding_model: Embedding model tag.
        timeout_seconds: Per-request timeout.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    name = "ollama"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = "llama3.2:3b",
        embedding_model: str = "nomic-embed-text",
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.embedding_model = embedding_model
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.embedding_model)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            transport=self._transport,
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            return response.json()

    async def generate(self, prompt: str, system_prompt: str | None = None) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0.7, "num_predict": 100},
        }
        if system_prompt:
            payload["system"] = system_prompt

        try:
            data = await self._post("/api/generate", payload)
        except httpx.TimeoutException as e:
            raise generation_timeout(self.name, self.timeout_seconds) from e
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                f"Ollama returned HTTP {e.response.status_code}",
                backend=self.name,
                status_code=e.response.status_code,
                prompt=prompt,
                cause=e,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationError(
                f"Ollama request failed: {e}", backend=self.name, prompt=prompt, cause=e
            ) from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise GenerationError("Ollama response has no text", backend=self.name, prompt=prompt)
        return text

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            data = await self._post("/api/embed", {"model": self.embedding_model, "input": texts})
        except httpx.TimeoutException as e:
            raise EmbeddingError(
                f"Ollama embed timed out after {self.timeout_seconds}s",
                backend=self.name,
                code=ErrorCode.BKD_TIMEOUT,
                cause=e,
            ) from e
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"Ollama returned HTTP {e.response.status_code}",
                backend=self.name,
                status_code=e.response.status_code,
                cause=e,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(f"Ollama embed failed: {e}", backend=self.name, cause=e) from e

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise EmbeddingError(
                "Ollama returned a malformed embedding list",
                backend=self.name,
                code=ErrorCode.BKD_PARSE_FAILED,
                details={"expected": len(texts)},
            )
        return [self._vector(vector, index) for index, vector in enumerate(embeddings)]

    def _vector(self, vector: Any, index: int) -> list[float]:
        if not isinstance(vector, list) or not vector:
            raise EmbeddingError(
                f"Ollama returned an empty embedding at position {index}",
                backend=self.name,
                code=ErrorCode.EMB_EMPTY_RESPONSE,
            )
        if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in vector):
            raise EmbeddingError(
                f"Ollama returned a non-numeric embedding at position {index}",
                backend=self.name,
                code=ErrorCode.BKD_PARSE_FAILED,
            )
        return [float(x) for x in vector]

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def is_available(self) -> bool:
        """Check whether the server answers /api/tags."""
        try:
            async with self._client() as client:
                response = await client.get("/api/tags")
        except httpx.HTTPError as e:
            logger.debug("Ollama not reachable at %s: %s", self.base_url, e)
            return False
        return response.status_code == 200
