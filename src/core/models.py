# src/core/models.py
"""Shared Pydantic domain models used across modules.

The Document record mirrors the persisted row read back by the external UI,
so status and error-type literals are kept verbatim.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

# === STATUS ENUMS ===

ExtractionStatus = Literal[
    "pending", "extracting", "completed", "completed_scanned", "failed"
]
SummarizationStatus = Literal[
    "pending", "summarizing", "completed", "failed", "skipped"
]
TranslationStatus = Literal[
    "pending", "translating", "completed", "failed", "skipped"
]
PublishStatus = Literal["processing", "published", "archived"]

ExtractionErrorType = Literal[
    "encrypted",
    "corrupt_file",
    "empty",
    "timeout",
    "memory_error",
    "download_failed",
    "parsing_error",
    "unknown",
]
SummarizationErrorType = Literal[
    "rate_limited",
    "timeout",
    "empty_content",
    "api_error",
    "invalid_response",
    "parsing_error",
    "model_error",
    "connection_error",
    "invalid_text",
    "unknown",
]
TranslationErrorType = Literal[
    "timeout",
    "rate_limited",
    "api_error",
    "authentication_failed",
    "empty_content",
    "invalid_text",
    "connection_error",
    "unknown",
]
TranslationDirection = Literal["en-to-sw", "sw-to-en"]
TranslationContext = Literal["budget", "general"]

RETRYABLE_STAGE_ERRORS: frozenset[str] = frozenset(
    {"rate_limited", "timeout", "connection_error", "api_error"}
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# === DOCUMENT ===


class Document(BaseModel):
    """Central pipeline entity. Mutated only by stages and manual actions."""

    id: str
    title: str = ""
    file_name: str = ""
    file_reference: str = ""
    file_size: int = 0
    created_at: datetime | None = None

    # --- Extraction ---
    extraction_status: ExtractionStatus = "pending"
    extraction_error: str | None = None
    extraction_error_type: ExtractionErrorType | None = None
    extraction_warning: str | None = None
    extracted_text_reference: str | None = None
    page_count: int | None = None
    char_count: int | None = None
    extraction_started_at: datetime | None = None
    extraction_completed_at: datetime | None = None
    extraction_duration_ms: int | None = None

    # --- Summarization ---
    summarization_status: SummarizationStatus = "pending"
    summary_text: str | None = None
    summary_confidence: float | None = None
    summary_model_version: str | None = None
    summary_provider: str | None = None
    summary_char_count: int | None = None
    summary_chunk_count: int | None = None
    summary_tokens_used: int | None = None
    summary_target_length: int | None = None
    summary_actual_length: int | None = None
    summary_coverage_percent: int | None = None
    summary_error: str | None = None
    summary_error_type: SummarizationErrorType | None = None
    summarization_started_at: datetime | None = None
    summarization_completed_at: datetime | None = None
    summarization_duration_ms: int | None = None

    # --- Translation ---
    translation_status: TranslationStatus = "pending"
    translated_summary: str | None = None
    translation_confidence: float | None = None
    translation_source_char_count: int | None = None
    translation_output_char_count: int | None = None
    translation_source_word_count: int | None = None
    translation_output_word_count: int | None = None
    translation_model_version: str | None = None
    translation_provider: str | None = None
    translation_duration_ms: int | None = None
    translation_error: str | None = None
    translation_error_type: TranslationErrorType | None = None
    translation_started_at: datetime | None = None
    translation_completed_at: datetime | None = None

    # --- Publication ---
    publish_status: PublishStatus = "processing"
    published_at: datetime | None = None

    @property
    def is_publishable(self) -> bool:
        """Both language summaries must be present."""
        return bool(self.summary_text and self.translated_summary)


# === SUMMARIZATION ===


class SummarizationChunk(BaseModel):
    """Sentence-aligned slice of source text. Ephemeral, never persisted."""

    text: str
    index: int
    start_pos: int
    end_pos: int
    token_count: int


class SummarizationResult(BaseModel):
    """Outcome of the summarization engine for one document."""

    summary: str
    confidence: float = Field(ge=0.0, le=1.0)
    model_version: str
    char_count: int
    chunk_count: int
    provider: str | None = None
    tokens_used: int | None = None
    target_length: int | None = None
    actual_length: int | None = None
    errors: list[str] | None = None


# === EXTRACTION ===


class ExtractionOutcome(BaseModel):
    """Result reported by the extraction stage."""

    document_id: str
    status: ExtractionStatus
    page_count: int = 0
    char_count: int = 0
    duration_ms: int = 0
    extracted_text_reference: str | None = None
    error_type: ExtractionErrorType | None = None
    triggered_summarization: bool = False


# === TRANSLATION ===


class TranslationOutcome(BaseModel):
    """Translated text plus heuristic quality signals."""

    translated_text: str
    confidence: float = Field(ge=0.0, le=1.0)
    source_char_count: int
    output_char_count: int
    source_word_count: int
    output_word_count: int
    model_version: str
    duration_ms: int
    direction: TranslationDirection = "en-to-sw"


class StageOutcome(BaseModel):
    """Generic return value for summarization/translation stage runs."""

    document_id: str
    stage: str
    status: str
    detail: dict[str, Any] = Field(default_factory=dict)
