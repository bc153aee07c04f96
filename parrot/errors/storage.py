"""Storage and parsing error classes.

Contains errors for the message history store, the external WhatsApp
database adapter, vector index persistence, and chat export parsing.
"""

from __future__ import annotations

from typing import Any

from parrot.errors.base import ErrorCode, ParrotError


class StorageError(ParrotError):
    """Base class for storage-related errors."""

    default_message = "Storage error"
    default_code = ErrorCode.STO_HISTORY_FAILED

    def __init__(
        self,
        message: str | None = None,
        *,
        path: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, code=code, details=details, cause=cause)


class HistoryError(StorageError):
    """Raised when message history cannot be read or written."""

    default_message = "Message history operation failed"
    default_code = ErrorCode.STO_HISTORY_FAILED


class IndexPersistenceError(StorageError):
    """Raised when the vector index file cannot be read or written."""

    default_message = "Vector index persistence failed"
    default_code = ErrorCode.STO_INDEX_WRITE_FAILED


class ParseError(ParrotError):
    """Raised when a chat export cannot be parsed."""

    default_message = "Failed to parse chat export"
    default_code = ErrorCode.PRS_INVALID_EXPORT

    def __init__(
        self,
        message: str | None = None,
        *,
        path: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, code=code, details=details, cause=cause)
