"""Parrot Configuration System.

Loads and validates configuration from ~/.parrot/config.json.
Uses Pydantic for schema validation with sensible defaults.

Supports migration from older config versions while preserving existing values.
Credentials can be supplied through the environment instead of the file.

Usage:
    from parrot.config import load_config, save_config

    config = load_config()
    print(config.backend)
    print(config.openai.model)

    # Modify and save
    config.use_rag = True
    save_config(config)
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".parrot"
CONFIG_PATH = DEFAULT_DATA_DIR / "config.json"

# Current config schema version for migration tracking
CONFIG_VERSION = 3

BackendName = Literal["local", "cloud-a", "cloud-b"]

BACKEND_ALIASES: dict[str, str] = {
    "ollama": "local",
    "openai": "cloud-a",
    "maritaca": "cloud-b",
}

BACKEND_DISPLAY_NAMES: dict[str, str] = {
    "local": "Ollama (Local)",
    "cloud-a": "OpenAI",
    "cloud-b": "Maritaca AI",
}


def _normalize_backend(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        return BACKEND_ALIASES.get(lowered, lowered)
    return value


class OllamaConfig(BaseModel):
    """Local Ollama server settings.

    Attributes:
        base_url: Server root URL.
        model: Generation model tag.
        embedding_model: Embedding model tag for /api/embed.
        timeout_seconds: Per-request timeout.
    """

    base_url: str = "http://localhost:11434"
    model: str = "llama3.2:3b"
    embedding_model: str = "nomic-embed-text"
    timeout_seconds: float = Field(default=60.0, gt=0)


class OpenAIConfig(BaseModel):
    """OpenAI credentials and model identifiers."""

    api_key: str = ""
    model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    timeout_seconds: float = Field(default=30.0, gt=0)


class MaritacaConfig(BaseModel):
    """Maritaca AI (OpenAI-compatible, Portuguese-tuned) settings."""

    api_key: str = ""
    model: str = "sabia-3"
    base_url: str = "https://chat.maritaca.ai/api"
    timeout_seconds: float = Field(default=30.0, gt=0)


class RAGConfig(BaseModel):
    """Embedding generation and thread-building parameters.

    Attributes:
        max_messages: History window loaded per correspondent.
        thread_gap_minutes: Silence that starts a new conversation thread.
        thread_min_messages: Threads shorter than this are discarded.
        thread_max_messages: Threads are emitted once they reach this size.
        thread_batch_size: Threads per embedding request.
        pair_batch_size: Message pairs per embedding request.
        batch_delay_seconds: Pause after each batch.
    """

    max_messages: int = Field(default=1000, ge=1)
    thread_gap_minutes: int = Field(default=30, ge=1)
    thread_min_messages: int = Field(default=4, ge=2)
    thread_max_messages: int = Field(default=8, ge=2)
    thread_batch_size: int = Field(default=10, ge=1)
    pair_batch_size: int = Field(default=20, ge=1)
    batch_delay_seconds: float = Field(default=0.1, ge=0)


class GenerationConfig(BaseModel):
    """Reply generation limits."""

    max_input_chars: int = Field(default=500, ge=1)
    max_output_chars: int = Field(default=200, ge=1)
    history_limit: int = Field(default=50, ge=1)
    min_history_messages: int = Field(default=10, ge=0)
    min_pairs: int = Field(default=5, ge=0)
    recent_pairs: int = Field(default=15, ge=1)


class StyleConfig(BaseModel):
    """Style extraction priors.

    Attributes:
        default_formality: Formality reported when no indicator is found.
        sample_count: Number of sample responses kept in a profile.
    """

    default_formality: float = Field(default=0.5, ge=0.0, le=1.0)
    sample_count: int = Field(default=15, ge=1)


class GroupConfig(BaseModel):
    """Group chat participation thresholds.

    Attributes:
        max_context_size: Messages kept in each group window.
        min_context_size: Messages required before topic relevance is evaluated.
        relevance_threshold: Minimum relevance for answerable questions.
        statement_threshold: Minimum relevance for plain statements.
        default_relevance: Relevance reported when no signal is available.
        context_max_age_hours: Age after which group messages leave the window.
    """

    max_context_size: int = Field(default=15, ge=1)
    min_context_size: int = Field(default=3, ge=1)
    relevance_threshold: float = Field(default=0.45, ge=0.0, le=1.0)
    statement_threshold: float = Field(default=0.55, ge=0.0, le=1.0)
    default_relevance: float = Field(default=0.0, ge=0.0, le=1.0)
    context_max_age_hours: float = Field(default=6.0, gt=0)


class ParrotConfig(BaseModel):
    """Parrot configuration schema.

    Attributes:
        config_version: Schema version for migration tracking.
        user_name: Display name of the profiled person.
        backend: Active generation backend.
        embedding_backend: Backend used for RAG embeddings.
        use_rag: Retrieve similar past conversations for prompts.
        smart_response: Apply the respond/skip heuristics.
        group_topic_participation: Join group conversations on relevant topics.
        ignore_group_name_tricks: Skip groups whose name looks like a prompt attack.
        data_dir: Directory holding the message store and vector index.
    """

    config_version: int = CONFIG_VERSION
    user_name: str = "Me"
    backend: BackendName = "local"
    embedding_backend: Literal["cloud-a", "local"] = "cloud-a"
    use_rag: bool = False
    smart_response: bool = True
    group_topic_participation: bool = False
    ignore_group_name_tricks: bool = True
    data_dir: str = str(DEFAULT_DATA_DIR)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    maritaca: MaritacaConfig = Field(default_factory=MaritacaConfig)
    rag: RAGConfig = Field(default_factory=RAGConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    style: StyleConfig = Field(default_factory=StyleConfig)
    group: GroupConfig = Field(default_factory=GroupConfig)

    @field_validator("backend", "embedding_backend", mode="before")
    @classmethod
    def _accept_aliases(cls, value: Any) -> Any:
        return _normalize_backend(value)

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def is_openai_configured(self) -> bool:
        return bool(self.openai.api_key)

    @property
    def is_maritaca_configured(self) -> bool:
        return bool(self.maritaca.api_key)

    @property
    def is_embedding_configured(self) -> bool:
        if self.embedding_backend == "cloud-a":
            return self.is_openai_configured
        return True

    @property
    def current_provider_name(self) -> str:
        return BACKEND_DISPLAY_NAMES[self.backend]


def _migrate_v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate from v1 to v2: flat provider keys become backend sections."""
    if "ai_provider" in data and "backend" not in data:
        data["backend"] = _normalize_backend(data.pop("ai_provider"))

    flat_keys = {
        "openai_api_key": ("openai", "api_key"),
        "openai_model": ("openai", "model"),
        "maritaca_api_key": ("maritaca", "api_key"),
        "maritaca_model": ("maritaca", "model"),
        "ollama_model": ("ollama", "model"),
    }
    for old_key, (section, new_key) in flat_keys.items():
        if old_key in data:
            data.setdefault(section, {})
            data[section].setdefault(new_key, data.pop(old_key))

    return data


def _migrate_v2_to_v3(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate from v2 to v3: add style and group sections."""
    data.setdefault("style", {})
    data.setdefault("group", {})
    if "group_context_size" in data:
        data["group"].setdefault("max_context_size", data.pop("group_context_size"))
    return data


# Migration registry: maps target version to migration function.
_MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    2: _migrate_v1_to_v2,
    3: _migrate_v2_to_v3,
}


def _migrate_config(data: dict[str, Any]) -> dict[str, Any]:
    """Migrate config data from older versions to current schema.

    Args:
        data: Raw config data loaded from file.

    Returns:
        Migrated config data compatible with current schema.
    """
    version = data.get("config_version", 1)

    for target_version in sorted(_MIGRATIONS.keys()):
        if version < target_version:
            logger.info("Migrating config from version %s to %s", version, target_version)
            data = _MIGRATIONS[target_version](data)
            version = target_version

    data["config_version"] = CONFIG_VERSION
    return data


def _apply_env_overrides(config: ParrotConfig) -> ParrotConfig:
    """Fill credentials and the user name from the environment when set."""
    openai_key = os.environ.get("OPENAI_API_KEY")
    if openai_key:
        config.openai.api_key = openai_key
    maritaca_key = os.environ.get("MARITACA_API_KEY")
    if maritaca_key:
        config.maritaca.api_key = maritaca_key
    user_name = os.environ.get("PARROT_USER_NAME")
    if user_name:
        config.user_name = user_name
    return config


def load_config(config_path: Path | None = None, apply_env: bool = True) -> ParrotConfig:
    """Load configuration from file, return defaults if missing/invalid.

    Automatically migrates older config versions while preserving existing values.
    If migration occurs, the updated config is saved back to disk.

    Args:
        config_path: Optional path to config file. Defaults to ~/.parrot/config.json.
        apply_env: Apply environment overrides. Disable when the result will be
            saved back, so secrets from the environment stay out of the file.

    Returns:
        ParrotConfig instance with loaded or default values.
    """
    path = config_path or CONFIG_PATH
    finish = _apply_env_overrides if apply_env else (lambda c: c)

    if not path.exists():
        logger.debug("Config file not found at %s, using defaults", path)
        return finish(ParrotConfig())

    try:
        with path.open(encoding="utf-8") as f:
            data: dict[str, Any] = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in config file %s: %s, using defaults", path, e)
        return finish(ParrotConfig())
    except OSError as e:
        logger.warning("Cannot read config file %s: %s, using defaults", path, e)
        return finish(ParrotConfig())

    if not isinstance(data, dict):
        logger.warning("Config file %s is not a JSON object, using defaults", path)
        return finish(ParrotConfig())

    original_version = data.get("config_version", 1)
    data = _migrate_config(data)

    try:
        config = ParrotConfig.model_validate(data)
    except ValidationError as e:
        logger.warning("Config validation failed: %s, using defaults", e)
        return finish(ParrotConfig())

    # Persist before env overrides so secrets from the environment stay out of the file
    if original_version < CONFIG_VERSION:
        logger.info("Persisting migrated config (v%s -> v%s)", original_version, CONFIG_VERSION)
        save_config(config, path)

    return finish(config)


def save_config(config: ParrotConfig, config_path: Path | None = None) -> bool:
    """Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to config file. Defaults to ~/.parrot/config.json.

    Returns:
        True if saved successfully, False otherwise.
    """
    path = config_path or CONFIG_PATH

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("w", encoding="utf-8") as f:
            json.dump(config.model_dump(), f, indent=2)

        # Owner-only: the file may hold API keys
        os.chmod(path, 0o600)

        logger.debug("Configuration saved to %s", path)
        return True

    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        return False
