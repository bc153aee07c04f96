"""Tests for the Ollama and OpenAI-compatible backends and their factories."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from parrot.backends import (
    OllamaClient,
    OpenAICompatClient,
    create_embedding_client,
    create_generation_client,
)
from parrot.backends.openai_compat import MARITACA_SYSTEM_NOTE
from parrot.config import ParrotConfig
from parrot.errors import BackendNotConfiguredError, EmbeddingError, ErrorCode, GenerationError


def _ollama(handler) -> OllamaClient:
    return OllamaClient(transport=httpx.MockTransport(handler))


class TestOllamaClient:
    """Tests for OllamaClient over a mock transport."""

    @pytest.mark.asyncio
    async def test_generate_sends_system_prompt(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            assert request.url.path == "/api/generate"
            return httpx.Response(200, json={"response": "bora sim"})

        text = await _ollama(handler).generate("oi", system_prompt="be brief")
        assert text == "bora sim"
        assert seen[0]["system"] == "be brief"
        assert seen[0]["stream"] is False

    @pytest.mark.asyncio
    async def test_generate_http_error(self):
        client = _ollama(lambda request: httpx.Response(500, json={}))
        with pytest.raises(GenerationError) as exc_info:
            await client.generate("oi")
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_generate_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GenerationError, match="timed out"):
            await _ollama(handler).generate("oi")

    @pytest.mark.asyncio
    async def test_generate_missing_text(self):
        client = _ollama(lambda request: httpx.Response(200, json={"done": True}))
        with pytest.raises(GenerationError):
            await client.generate("oi")

    @pytest.mark.asyncio
    async def test_embed_batch_preserves_order(self):
        def handler(request: httpx.Request) -> httpx.Response:
            texts = json.loads(request.content)["input"]
            return httpx.Response(200, json={"embeddings": [[float(len(t))] for t in texts]})

        vectors = await _ollama(handler).embed_batch(["a", "bbb", "cc"])
        assert vectors == [[1.0], [3.0], [2.0]]

    @pytest.mark.asyncio
    async def test_embed_batch_count_mismatch_is_atomic_failure(self):
        client = _ollama(lambda request: httpx.Response(200, json={"embeddings": [[1.0]]}))
        with pytest.raises(EmbeddingError):
            await client.embed_batch(["a", "b"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "vectors, code",
        [
            ([None, [1.0]], ErrorCode.EMB_EMPTY_RESPONSE),
            ([[], [1.0]], ErrorCode.EMB_EMPTY_RESPONSE),
            ([["x"], [1.0]], ErrorCode.BKD_PARSE_FAILED),
        ],
    )
    async def test_embed_batch_bad_vector(self, vectors, code):
        client = _ollama(lambda request: httpx.Response(200, json={"embeddings": vectors}))
        with pytest.raises(EmbeddingError) as exc_info:
            await client.embed_batch(["a", "b"])
        assert exc_info.value.code is code

    @pytest.mark.asyncio
    async def test_embed_batch_non_object_body(self):
        client = _ollama(lambda request: httpx.Response(200, json=[[1.0]]))
        with pytest.raises(EmbeddingError) as exc_info:
            await client.embed_batch(["a"])
        assert exc_info.value.code is ErrorCode.BKD_PARSE_FAILED

    @pytest.mark.asyncio
    async def test_embed_batch_timeout(self):
        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(EmbeddingError) as exc_info:
            await _ollama(slow).embed_batch(["a"])
        assert exc_info.value.code is ErrorCode.BKD_TIMEOUT

    @pytest.mark.asyncio
    async def test_embed_batch_empty_input(self):
        client = _ollama(lambda request: pytest.fail("no request expected"))
        assert await client.embed_batch([]) == []

    @pytest.mark.asyncio
    async def test_is_available(self):
        assert await _ollama(lambda request: httpx.Response(200, json={"models": []})).is_available()

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert not await _ollama(refuse).is_available()


def _completion(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def _mock_openai(**create_kwargs) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    client.embeddings.create = AsyncMock()
    return client


class TestOpenAICompatClient:
    """Tests for OpenAICompatClient with a mocked AsyncOpenAI."""

    def test_unconfigured_without_key(self):
        assert not OpenAICompatClient(api_key="", model="gpt-4o-mini").is_configured

    @pytest.mark.asyncio
    async def test_generate_unconfigured_raises(self):
        client = OpenAICompatClient(api_key="", model="gpt-4o-mini")
        with pytest.raises(BackendNotConfiguredError):
            await client.generate("oi")

    @pytest.mark.asyncio
    async def test_generate_builds_messages(self):
        mock = _mock_openai(return_value=_completion("  tô sim  "))
        client = OpenAICompatClient(api_key="", model="gpt-4o-mini", client=mock)

        assert await client.generate("oi", system_prompt="sys") == "tô sim"
        kwargs = mock.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["messages"][1] == {"role": "user", "content": "oi"}
        assert "top_p" not in kwargs

    @pytest.mark.asyncio
    async def test_system_note_is_appended(self):
        mock = _mock_openai(return_value=_completion("ok"))
        client = OpenAICompatClient(
            api_key="", model="sabia-3", name="maritaca", system_note=MARITACA_SYSTEM_NOTE,
            top_p=0.9, client=mock,
        )
        await client.generate("oi", system_prompt="sys")
        kwargs = mock.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0]["content"] == "sys" + MARITACA_SYSTEM_NOTE
        assert kwargs["top_p"] == 0.9

    @pytest.mark.asyncio
    async def test_generate_timeout(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        mock = _mock_openai(side_effect=openai.APITimeoutError(request=request))
        client = OpenAICompatClient(api_key="", model="gpt-4o-mini", client=mock)
        with pytest.raises(GenerationError, match="timed out"):
            await client.generate("oi")

    @pytest.mark.asyncio
    async def test_generate_empty_choices(self):
        mock = _mock_openai(return_value=SimpleNamespace(choices=[]))
        client = OpenAICompatClient(api_key="", model="gpt-4o-mini", client=mock)
        with pytest.raises(GenerationError):
            await client.generate("oi")

    @pytest.mark.asyncio
    async def test_embed_batch_orders_by_index(self):
        mock = _mock_openai()
        mock.embeddings.create.return_value = SimpleNamespace(
            data=[
                SimpleNamespace(index=1, embedding=[2.0]),
                SimpleNamespace(index=0, embedding=[1.0]),
            ]
        )
        client = OpenAICompatClient(
            api_key="", model="gpt-4o-mini", embedding_model="text-embedding-3-small", client=mock
        )
        assert await client.embed_batch(["a", "b"]) == [[1.0], [2.0]]

    @pytest.mark.asyncio
    async def test_embed_without_model_raises(self):
        client = OpenAICompatClient(api_key="", model="sabia-3", client=_mock_openai())
        with pytest.raises(EmbeddingError):
            await client.embed("oi")


class TestFactories:
    """Tests for backend selection from config."""

    def test_local_backend(self):
        client = create_generation_client(ParrotConfig(backend="local"))
        assert isinstance(client, OllamaClient)

    def test_cloud_backend_without_key_raises(self):
        with pytest.raises(BackendNotConfiguredError):
            create_generation_client(ParrotConfig(backend="cloud-a"))
        with pytest.raises(BackendNotConfiguredError):
            create_generation_client(ParrotConfig(backend="cloud-b"))

    def test_maritaca_client(self):
        config = ParrotConfig(backend="cloud-b")
        config.maritaca.api_key = "mk-test"
        client = create_generation_client(config)
        assert isinstance(client, OpenAICompatClient)
        assert client.name == "maritaca"
        assert client.system_note == MARITACA_SYSTEM_NOTE

    def test_embedding_client_degrades_without_key(self):
        client = create_embedding_client(ParrotConfig(embedding_backend="cloud-a"))
        assert not client.is_configured

    def test_local_embedding_client(self):
        client = create_embedding_client(ParrotConfig(embedding_backend="local"))
        assert isinstance(client, OllamaClient)
        assert client.is_configured
