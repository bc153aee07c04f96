"""Backend error classes.

Contains errors raised by the embedding and generation backends
(Ollama, OpenAI, Maritaca).
"""

from __future__ import annotations

from typing import Any

from parrot.errors.base import ErrorCode, ParrotError


class BackendError(ParrotError):
    """Base class for errors talking to an external model backend."""

    default_message = "Backend request failed"
    default_code = ErrorCode.BKD_REQUEST_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        backend: str | None = None,
        status_code: int | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if backend:
            details["backend"] = backend
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, code=code, details=details, cause=cause)


class BackendNotConfiguredError(BackendError):
    """Raised when a backend is selected but has no credentials."""

    default_message = "Backend not configured"
    default_code = ErrorCode.BKD_NOT_CONFIGURED


class EmbeddingError(BackendError):
    """Raised when an embedding batch cannot be produced.

    Embedding failures are atomic: no partial vector list is ever returned.
    """

    default_message = "Embedding request failed"
    default_code = ErrorCode.EMB_ENCODING_FAILED


class GenerationError(BackendError):
    """Raised when text generation fails."""

    default_message = "Text generation failed"
    default_code = ErrorCode.GEN_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        backend: str | None = None,
        status_code: int | None = None,
        prompt: str | None = None,
        timeout_seconds: float | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
            code = code or ErrorCode.GEN_TIMEOUT
        if prompt is not None:
            details["prompt_preview"] = prompt[:200] + "..." if len(prompt) > 200 else prompt
        super().__init__(
            message,
            backend=backend,
            status_code=status_code,
            code=code,
            details=details,
            cause=cause,
        )
