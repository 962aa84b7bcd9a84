# src/config/settings.py
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for provider credentials, call budgets, chunking
constants, stage runtime policies and collaborator backends.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
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

    # === OPENAI ===
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo-16k"
    openai_timeout_ms: int = 30_000
    openai_max_retries: int = 2
    openai_retry_base_delay_ms: int = 1000
    openai_temperature: float = 0.7
    openai_context_window: int = 16_385
    openai_max_output_tokens: int = 4000
    openai_daily_limit: int = 100
    openai_reset_hour: int = 0
    openai_circuit_threshold: int = 5
    openai_circuit_cooldown_s: float = 60.0

    # === HUGGING FACE ===
    hugging_face_api_key: str = ""
    hugging_face_model: str = "facebook/bart-large-cnn"
    hugging_face_timeout_ms: int = 30_000
    hugging_face_max_retries: int = 2
    hugging_face_daily_limit: int = 800
    hugging_face_reset_hour: int = 0
    hugging_face_circuit_threshold: int = 15
    hugging_face_circuit_cooldown_s: float = 300.0

    # === Rate limiter ===
    rate_limit_backend: Literal["memory", "redis"] = "memory"
    rate_limit_redis_url: str = ""

    # === Chunking ===
    chunk_size_tokens: int = 3000
    chunk_overlap_tokens: int = 300
    chars_per_token: int = 4
    boundary_search_window: int = 200

    # === Summarization ===
    min_text_chars: int = 100
    summary_batch_size: int = 3
    summary_batch_delay_ms: int = 2000
    chunk_summary_min_words: int = 200
    chunk_summary_max_words: int = 600
    chunk_timeout_ms: int = 60_000
    chunk_retries: int = 1
    direct_retries: int = 2
    max_reduction_depth: int = 2

    # === Translation ===
    translation_model: str = "gpt-3.5-turbo"
    translation_timeout_ms: int = 60_000
    translation_max_chars: int = 50_000
    translation_direction: Literal["en-to-sw", "sw-to-en"] = "en-to-sw"
    translation_context: Literal["budget", "general"] = "budget"

    # === Stage runtime policies ===
    extraction_retries: int = 3
    extraction_concurrency: int = 3
    extraction_timeout_s: float = 300.0
    summarization_retries: int = 2
    summarization_concurrency: int = 2
    summarization_timeout_s: float = 10_800.0
    translation_retries: int = 2
    translation_concurrency: int = 3
    translation_timeout_s: float = 120.0
    download_attempts: int = 2

    # === Object storage ===
    object_store: Literal["local", "s3"] = "local"
    object_store_root: Path = Path("~/.budgetdigest/objects")
    s3_bucket: str = ""
    s3_prefix: str = "budgetdigest/"
    s3_region: str = ""
    s3_endpoint_url: str = ""
    documents_bucket: str = "documents"
    extracted_text_bucket: str = "extracted-text"

    # === Document store ===
    document_store: Literal["memory", "sqlite"] = "sqlite"
    document_store_path: Path = Path("~/.budgetdigest/documents.db")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("openai_reset_hour", "hugging_face_reset_hour")
    @classmethod
    def validate_reset_hour(cls, v: int) -> int:
        """Reset hours are UTC clock hours."""
        if not 0 <= v <= 23:
            raise ValueError("reset hour must be within 0-23")
        return v

    @field_validator("chunk_overlap_tokens")
    @classmethod
    def validate_chunk_overlap(cls, v: int) -> int:
        if v < 0:
            raise ValueError("chunk_overlap_tokens must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.chunk_overlap_tokens >= self.chunk_size_tokens:
            errors.append("CHUNK_OVERLAP_TOKENS must be < CHUNK_SIZE_TOKENS")

        if self.object_store == "s3" and not self.s3_bucket:
            errors.append("OBJECT_STORE=s3 requires S3_BUCKET")

        if self.rate_limit_backend == "redis" and not self.rate_limit_redis_url:
            errors.append("RATE_LIMIT_BACKEND=redis requires RATE_LIMIT_REDIS_URL")

        if self.summary_batch_size < 1:
            errors.append("SUMMARY_BATCH_SIZE must be >= 1")

        if self.chunk_summary_min_words > self.chunk_summary_max_words:
            errors.append(
                "CHUNK_SUMMARY_MIN_WORDS must be <= CHUNK_SUMMARY_MAX_WORDS"
            )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def chunk_size_chars(self) -> int:
        """Chunk capacity expressed in characters."""
        return self.chunk_size_tokens * self.chars_per_token

    @property
    def translation_configured(self) -> bool:
        return bool(self.openai_api_key)


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
