"""Embedding and generation backends.

Backend selection follows ParrotConfig.backend:
    local   -> Ollama over httpx
    cloud-a -> OpenAI via openai.AsyncOpenAI
    cloud-b -> Maritaca (OpenAI-compatible) via openai.AsyncOpenAI

Usage:
    from parrot.backends import create_generation_client

    client = create_generation_client(config)
    text = await client.generate(prompt, system_prompt=system)
"""

from __future__ import annotations

import logging

from parrot.backends.ollama import OllamaClient
from parrot.backends.openai_compat import MARITACA_SYSTEM_NOTE, OpenAICompatClient
from parrot.config import ParrotConfig
from parrot.contracts.backends import EmbeddingClient, GenerationClient
from parrot.errors import backend_not_configured

logger = logging.getLogger(__name__)


def create_ollama_client(config: ParrotConfig) -> OllamaClient:
    return OllamaClient(
        base_url=config.ollama.base_url,
        model=config.ollama.model,
        embedding_model=config.ollama.embedding_model,
        timeout_seconds=config.ollama.timeout_seconds,
    )


def create_openai_client(config: ParrotConfig) -> OpenAICompatClient:
    return OpenAICompatClient(
        api_key=config.openai.api_key,
        model=config.openai.model,
        name="openai",
        embedding_model=config.openai.embedding_model,
        timeout_seconds=config.openai.timeout_seconds,
    )


def create_maritaca_client(config: ParrotConfig) -> OpenAICompatClient:
    return OpenAICompatClient(
        api_key=config.maritaca.api_key,
        model=config.maritaca.model,
        name="maritaca",
        base_url=config.maritaca.base_url,
        timeout_seconds=config.maritaca.timeout_seconds,
        system_note=MARITACA_SYSTEM_NOTE,
        top_p=0.9,
    )


def create_generation_client(config: ParrotConfig) -> GenerationClient:
    """Build the generation client selected by ``config.backend``.

    Cloud backends without an API key raise BackendNotConfiguredError.
    """
    if config.backend == "cloud-a":
        if not config.is_openai_configured:
            raise backend_not_configured("openai")
        client: GenerationClient = create_openai_client(config)
    elif config.backend == "cloud-b":
        if not config.is_maritaca_configured:
            raise backend_not_configured("maritaca")
        client = create_maritaca_client(config)
    else:
        client = create_ollama_client(config)

    logger.info("Using %s for generation", config.current_provider_name)
    return client


def create_embedding_client(config: ParrotConfig) -> EmbeddingClient:
    """Build the embedding client selected by ``config.embedding_backend``.

    An OpenAI client without a key is returned unconfigured so callers can
    degrade silently by checking ``is_configured``.
    """
    if config.embedding_backend == "local":
        return create_ollama_client(config)
    return create_openai_client(config)


__all__ = [
    "OllamaClient",
    "OpenAICompatClient",
    "create_embedding_client",
    "create_generation_client",
    "create_maritaca_client",
    "create_ollama_client",
    "create_openai_client",
]
