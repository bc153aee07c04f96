"""Base error classes and error codes for Parrot.

Contains ErrorCode enum, ParrotError base class, and ConfigurationError.
All Parrot-specific exceptions inherit from ParrotError.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standard error codes for Parrot errors.

    These codes can be used to programmatically identify error types
    and are included in CLI error output.
    """

    # Configuration errors (CFG_*)
    CFG_INVALID = "CFG_INVALID"

    # Backend errors (BKD_*)
    BKD_NOT_CONFIGURED = "BKD_NOT_CONFIGURED"
    BKD_REQUEST_FAILED = "BKD_REQUEST_FAILED"
    BKD_TIMEOUT = "BKD_TIMEOUT"
    BKD_PARSE_FAILED = "BKD_PARSE_FAILED"

    # Embedding errors (EMB_*)
    EMB_ENCODING_FAILED = "EMB_ENCODING_FAILED"
    EMB_EMPTY_RESPONSE = "EMB_EMPTY_RESPONSE"

    # Generation errors (GEN_*)
    GEN_FAILED = "GEN_FAILED"
    GEN_TIMEOUT = "GEN_TIMEOUT"

    # Storage errors (STO_*)
    STO_HISTORY_FAILED = "STO_HISTORY_FAILED"
    STO_DB_NOT_FOUND = "STO_DB_NOT_FOUND"
    STO_SCHEMA_UNSUPPORTED = "STO_SCHEMA_UNSUPPORTED"
    STO_INDEX_READ_FAILED = "STO_INDEX_READ_FAILED"
    STO_INDEX_WRITE_FAILED = "STO_INDEX_WRITE_FAILED"

    # Parse errors (PRS_*)
    PRS_INVALID_EXPORT = "PRS_INVALID_EXPORT"
    PRS_INVALID_ENCODING = "PRS_INVALID_ENCODING"
    PRS_FILE_NOT_FOUND = "PRS_FILE_NOT_FOUND"

    # Generic errors
    UNKNOWN = "UNKNOWN"


class ParrotError(Exception):
    """Base exception for all Parrot errors.

    All Parrot-specific exceptions inherit from this class, enabling
    consistent error handling patterns across the codebase.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code from ErrorCode enum.
        details: Optional additional context about the error.
        cause: Optional original exception that caused this error.
    """

    default_message: str = "An error occurred"
    default_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(
        self,
        message: str | None = None,
        *,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        self.cause = cause

        super().__init__(self.message)

        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        parts = [f"{self.__class__.__name__}({self.message!r}"]
        if self.code != self.default_code:
            parts.append(f", code={self.code.value!r}")
        if self.details:
            parts.append(f", details={self.details!r}")
        if self.cause:
            parts.append(f", cause={self.cause!r}")
        parts.append(")")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for structured output."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "detail": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# Configuration Errors


class ConfigurationError(ParrotError):
    """Raised for configuration and settings issues."""

    default_message = "Configuration error"
    default_code = ErrorCode.CFG_INVALID

    def __init__(
        self,
        message: str | None = None,
        *,
        config_key: str | None = None,
        config_path: str | None = None,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = details or {}
        if config_key:
            details["config_key"] = config_key
        if config_path:
            details["config_path"] = config_path
        super().__init__(message, code=code, details=details, cause=cause)
