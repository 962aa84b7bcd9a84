# src/llm/summary_length.py
"""Dynamic summary length calculation (the 10% rule).

Target length is 10% of the estimated source word count, with an 80-120%
acceptable band, clamped to absolute word limits. Pure functions only.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

CHARS_PER_WORD = 5
SUMMARY_PERCENTAGE = 0.10
MIN_PERCENTAGE = 0.08
MAX_PERCENTAGE = 0.12
ABSOLUTE_MIN_WORDS = 200
ABSOLUTE_MAX_WORDS = 15_000
MIN_CHUNK_WORDS = 10


@dataclass(frozen=True)
class SummaryLength:
    min_length: int
    target_length: int
    max_length: int


def _clamp(value: int) -> int:
    return max(ABSOLUTE_MIN_WORDS, min(ABSOLUTE_MAX_WORDS, value))


def _ceil_words(value: float) -> int:
    # Rounding first keeps float noise (8.000000000000002) from adding a word.
    return math.ceil(round(value, 6))


def estimate_word_count(char_count: int) -> int:
    """Estimate words from characters. Non-positive input yields 0."""
    if char_count <= 0:
        return 0
    return math.ceil(char_count / CHARS_PER_WORD)


def calculate_summary_length(
    char_count: int, percentage: float = SUMMARY_PERCENTAGE
) -> SummaryLength:
    """Compute min/target/max summary words for a document of char_count chars.

    ``percentage`` sets the target share of source words; the acceptable
    band keeps the same 80-120% proportions around it. Always returns
    min <= target <= max, all within the absolute limits.
    """
    words = estimate_word_count(char_count)
    scale = percentage / SUMMARY_PERCENTAGE
    target = _clamp(_ceil_words(words * percentage))
    min_length = _clamp(_ceil_words(words * MIN_PERCENTAGE * scale))
    max_length = _clamp(_ceil_words(words * MAX_PERCENTAGE * scale))
    return SummaryLength(
        min_length=min(min_length, target),
        target_length=target,
        max_length=max(max_length, target),
    )


def calculate_chunk_length(total_chunks: int, document_target: int) -> SummaryLength:
    """Split a document-level word target evenly across chunks.

    Raises:
        ValueError: If total_chunks or document_target is not positive.
    """
    if total_chunks <= 0:
        raise ValueError("total_chunks must be positive")
    if document_target <= 0:
        raise ValueError("document_target must be positive")

    target = max(MIN_CHUNK_WORDS, math.ceil(document_target / total_chunks))
    return SummaryLength(
        min_length=max(MIN_CHUNK_WORDS, math.ceil(target * 0.8)),
        target_length=target,
        max_length=max(MIN_CHUNK_WORDS, math.ceil(target * 1.2)),
    )


def calculate_coverage(actual_words: int, target_words: int) -> int:
    """Percent of the target actually produced, rounded."""
    if target_words <= 0:
        return 0
    return round(actual_words / target_words * 100)


def is_length_valid(actual_words: int, length: SummaryLength) -> bool:
    return length.min_length <= actual_words <= length.max_length


def format_length_stats(actual_words: int, length: SummaryLength) -> str:
    coverage = calculate_coverage(actual_words, length.target_length)
    return (
        f"{actual_words} words (target {length.target_length}, "
        f"range {length.min_length}-{length.max_length}, coverage {coverage}%)"
    )
