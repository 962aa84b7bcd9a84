# src/llm/models.py
"""Provider-facing types: SummarizeOptions, SummarizeResult, TokenUsage, HealthCheckResult."""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ProviderType = Literal["openai", "huggingface", "extractive"]


class SummarizeOptions(BaseModel):
    """Per-call summarization options. Lengths are in words."""

    min_length: int | None = None
    max_length: int | None = None
    timeout_ms: int | None = None
    retries: int | None = None
    language: Literal["en", "sw"] = "en"
    chunk_index: int | None = None
    total_chunks: int | None = None
    dynamic_length: bool = True
    length_percentage: float = 0.10
    is_multi_level: bool = False

    @model_validator(mode="after")
    def validate_lengths(self) -> SummarizeOptions:
        if self.min_length is not None and self.min_length < 0:
            raise ValueError("min_length must be non-negative")
        if self.max_length is not None and self.max_length < 0:
            raise ValueError("max_length must be non-negative")
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError("min_length cannot be greater than max_length")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.retries is not None and self.retries < 0:
            raise ValueError("retries must be non-negative")
        if not 0 < self.length_percentage <= 1:
            raise ValueError("length_percentage must be in (0, 1]")
        return self

    @property
    def has_explicit_lengths(self) -> bool:
        return bool(self.min_length or self.max_length)


class TokenUsage(BaseModel):
    input: int = 0
    output: int = 0
    total: int = 0
    model: str | None = None


class SummarizeResult(BaseModel):
    """Normalized result from any summarization provider."""

    summary: str
    confidence: float = Field(ge=0.0, le=1.0)
    model_version: str
    provider: str
    tokens_used: TokenUsage | None = None
    target_length: int | None = None
    actual_length: int | None = None
    errors: list[str] | None = None


class HealthCheckResult(BaseModel):
    success: bool
    latency_ms: int | None = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


def calculate_word_count(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


def estimate_token_count(text: str, chars_per_token: int = 4) -> int:
    """Approximate token count (1 token ~ 4 characters)."""
    return math.ceil(len(text) / chars_per_token)
