"""Unified exception hierarchy for Parrot.

All Parrot-specific exceptions inherit from ParrotError, enabling consistent
handling in the CLI and the reply pipeline.

Exception Hierarchy:
    ParrotError (base)
    +-- ConfigurationError - Configuration and settings issues
    +-- BackendError - Embedding/generation backend failures
    |   +-- BackendNotConfiguredError - Missing credentials
    |   +-- EmbeddingError - Embedding batch failed
    |   +-- GenerationError - Generation failed
    +-- StorageError - Storage failures
    |   +-- HistoryError - Message history read/write failure
    |   +-- IndexPersistenceError - Vector index file failure
    +-- ParseError - Chat export parsing failure

Usage:
    from parrot.errors import GenerationError

    try:
        reply = await generator.generate_response(contact, text)
    except GenerationError as e:
        logger.error("Generation error: %s (code: %s)", e.message, e.code)
"""

# --- base ---
from parrot.errors.base import (
    ConfigurationError,
    ErrorCode,
    ParrotError,
)

# --- backends ---
from parrot.errors.backend import (
    BackendError,
    BackendNotConfiguredError,
    EmbeddingError,
    GenerationError,
)

# --- convenience factories ---
from parrot.errors.factories import (
    backend_not_configured,
    export_not_found,
    generation_timeout,
    history_db_not_found,
)

# --- storage ---
from parrot.errors.storage import (
    HistoryError,
    IndexPersistenceError,
    ParseError,
    StorageError,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Base exception
    "ParrotError",
    # Configuration errors
    "ConfigurationError",
    # Backend errors
    "BackendError",
    "BackendNotConfiguredError",
    "EmbeddingError",
    "GenerationError",
    # Storage errors
    "StorageError",
    "HistoryError",
    "IndexPersistenceError",
    # Parse errors
    "ParseError",
    # Convenience functions
    "backend_not_configured",
    "generation_timeout",
    "history_db_not_found",
    "export_not_found",
]
