"""Convenience factory functions for common error scenarios.

Provides shorthand functions for creating commonly-used error instances
with appropriate error codes and details pre-filled.
"""

from __future__ import annotations

from parrot.errors.backend import BackendNotConfiguredError, GenerationError
from parrot.errors.base import ErrorCode
from parrot.errors.storage import HistoryError, ParseError


def backend_not_configured(backend: str) -> BackendNotConfiguredError:
    """Create a BackendNotConfiguredError for a backend without credentials."""
    return BackendNotConfiguredError(
        f"Backend '{backend}' is not configured (missing API key)",
        backend=backend,
    )


def generation_timeout(backend: str, timeout_seconds: float) -> GenerationError:
    """Create a GenerationError for a timed-out generation request."""
    return GenerationError(
        f"Generation timed out after {timeout_seconds}s on '{backend}'",
        backend=backend,
        timeout_seconds=timeout_seconds,
    )


def history_db_not_found(db_path: str) -> HistoryError:
    """Create a HistoryError for a missing database file."""
    return HistoryError(
        f"Message database not found at: {db_path}",
        path=db_path,
        code=ErrorCode.STO_DB_NOT_FOUND,
    )


def export_not_found(path: str) -> ParseError:
    """Create a ParseError for a missing chat export."""
    return ParseError(
        f"Chat export not found: {path}",
        path=path,
        code=ErrorCode.PRS_FILE_NOT_FOUND,
    )
