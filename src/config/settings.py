# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    llm_default_provider: str = "ollama"
    llm_default_model: str = "llava:7b"

    # Provider API keys / hosts
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # Per-component LLM assignment, "provider:model" (highest priority)
    llm_identifier: str = "ollama:llava:7b"
    llm_detailer: str = "ollama:llama3.2:1b"
    llm_subject_guesser: str = ""

    # === Pipeline ===
    model_timeout_s: float = 60.0
    food_confidence_threshold: float = 0.5
    resolve_retries: int = 0

    # === Local tier ===
    local_cache_path: Path | None = Path("~/.bitecache/local_cache.json")
    local_cache_max_entries: int = 100
    local_cache_expiry_days: float = 30

    # === Persistent tier ===
    persistent_db_path: Path = Path("~/.bitecache/analyses.db")

    # === Uploads ===
    compress_uploads: bool = False
    compress_max_dimension: int = 800
    compress_quality: int = 85
    compress_min_bytes: int = 200 * 1024

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate value ranges and cross-field consistency."""
        errors: list[str] = []

        if self.model_timeout_s <= 0:
            errors.append("MODEL_TIMEOUT_S must be > 0")
        if not 0.0 <= self.food_confidence_threshold <= 1.0:
            errors.append("FOOD_CONFIDENCE_THRESHOLD must be within [0, 1]")
        if self.resolve_retries < 0:
            errors.append("RESOLVE_RETRIES must be >= 0")
        if self.local_cache_max_entries < 1:
            errors.append("LOCAL_CACHE_MAX_ENTRIES must be >= 1")
        if self.local_cache_expiry_days < 1:
            errors.append("LOCAL_CACHE_EXPIRY_DAYS must be >= 1")
        if not 1 <= self.compress_quality <= 95:
            errors.append("COMPRESS_QUALITY must be within [1, 95]")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-call config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
