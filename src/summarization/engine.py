# src/summarization/engine.py
"""Document summarization engine.

Short documents go through the provider chain in one call. Long documents
are chunked, summarized in concurrent batches, combined, and reduced
further in a depth-bounded loop while the combined text still exceeds a
single pass. Provider failures degrade to local extractive summaries, with
confidence discounted by the share of chunks that needed the fallback.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field

from budgetdigest.chunking.boundary_chunker import BoundaryChunker
from budgetdigest.config.settings import Settings
from budgetdigest.core.models import SummarizationChunk, SummarizationResult
from budgetdigest.llm.errors import AIProviderError
from budgetdigest.llm.models import SummarizeOptions, SummarizeResult, calculate_word_count
from budgetdigest.llm.provider_chain import ProviderChain
from budgetdigest.llm.retry import Sleep
from budgetdigest.llm.summary_length import (
    calculate_chunk_length,
    calculate_summary_length,
)

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "fallback-v1"
COMBINED_MODEL = "multi-chunk-combined"
RECURSIVE_MODEL = "multi-level-recursive"

DIRECT_FALLBACK_CONFIDENCE = 0.3
LEVEL2_FALLBACK_CONFIDENCE = 0.4
COMBINED_BASE, COMBINED_FLOOR = 0.85, 0.6
RECURSIVE_BASE, LEVEL2_FLOOR = 0.8, 0.5
LEVEL2_PASS_MIN = 0.9

DOCUMENT_FALLBACK_CHARS = 600
CHUNK_FALLBACK_CHARS = 200
RECURSIVE_TRUNCATION_CHARS = 800
LEVEL2_PASSTHROUGH_CHARS = 1000

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_FALLBACK_KEYWORDS = re.compile(
    r"\b(budget|total|allocation|million|billion|ksh|key|priority|objective)\b", re.I
)


class EmptyContentError(ValueError):
    """Input text is empty or below the minimum summarizable length."""


class SummaryQualityError(ValueError):
    """Provider output failed validate_summary()."""


def validate_summary(summary: str, original: str) -> bool:
    """Non-empty, at least 10% shorter than the source, at least 20 chars."""
    if not summary or not summary.strip():
        return False
    if len(summary) >= len(original) * 0.9:
        return False
    return len(summary) >= 20


def combine_chunk_summaries(summaries: list[str]) -> str:
    """Trim, ensure terminal period, join with spaces."""
    parts = [s.strip() for s in summaries if s and s.strip()]
    return " ".join(p if p.endswith(".") else p + "." for p in parts)


def create_fallback_summary(text: str, target_chars: int = DOCUMENT_FALLBACK_CHARS) -> str:
    """Local extractive summary bounded by a character budget.

    Candidates come from the opening 20%, the 40-60% band and the closing
    10% of sentences; keyword-bearing ones are taken first.
    """
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text)]
    sentences = [s for s in sentences if len(s) > 10]
    if not sentences:
        return text[:target_chars].strip() + "..."

    n = len(sentences)
    begin = sentences[: math.ceil(n * 0.2)]
    middle = sentences[math.floor(n * 0.4) : math.ceil(n * 0.6)]
    end = sentences[-math.ceil(n * 0.1) :]

    candidates = list(dict.fromkeys(begin + middle + end))
    candidates.sort(key=lambda s: 0 if _FALLBACK_KEYWORDS.search(s) else 1)

    selected: list[str] = []
    total = 0
    for sentence in candidates:
        if total + len(sentence) + 2 > target_chars:
            break
        selected.append(sentence)
        total += len(sentence) + 2

    if not selected:
        return sentences[0] + "."
    return ". ".join(selected) + "."


def _discounted(base: float, floor: float, errors: int, total: int) -> float:
    return max(floor, base * (1.0 - errors / total))


@dataclass
class _BatchOutcome:
    summaries: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class SummarizationEngine:
    """Chunk, summarize, combine and reduce a document's extracted text."""

    def __init__(
        self,
        chain: ProviderChain,
        chunker: BoundaryChunker | None = None,
        settings: Settings | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or Settings()
        self._chain = chain
        self._chunker = chunker or BoundaryChunker.from_settings(self._settings)
        self._sleep = sleep

    @property
    def capacity_tokens(self) -> int:
        return self._chunker.chunk_size_tokens

    def _tokens(self, text: str) -> int:
        return self._chunker.estimate_tokens(text)

    async def summarize_document(self, text: str) -> SummarizationResult:
        """Summarize extracted text.

        Raises:
            EmptyContentError: Empty input or fewer than min_text_chars characters.
        """
        if not text or not text.strip():
            raise EmptyContentError("No valid text to summarize")
        trimmed = text.strip()
        if len(trimmed) < self._settings.min_text_chars:
            raise EmptyContentError(
                "Text is too short to summarize "
                f"(minimum {self._settings.min_text_chars} characters)"
            )

        logger.info(
            "Starting summarization: %d chars (~%d tokens)",
            len(trimmed), self._tokens(trimmed),
        )
        if self._tokens(trimmed) <= self.capacity_tokens:
            return await self._summarize_direct(trimmed)
        return await self._summarize_chunked(trimmed)

    # --- Path A: single pass ---

    async def _summarize_direct(self, text: str) -> SummarizationResult:
        options = SummarizeOptions(
            retries=self._settings.direct_retries,
            timeout_ms=self._settings.chunk_timeout_ms,
        )
        try:
            result = await self._chain.summarize(text, options)
            if not validate_summary(result.summary, text):
                raise SummaryQualityError("Generated summary failed quality validation")
        except (AIProviderError, SummaryQualityError) as e:
            logger.error("Direct summarization failed, using local fallback: %s", e)
            fallback = create_fallback_summary(text)
            return SummarizationResult(
                summary=fallback,
                confidence=DIRECT_FALLBACK_CONFIDENCE,
                model_version=FALLBACK_MODEL,
                char_count=len(fallback),
                chunk_count=1,
                errors=[str(e)],
            )

        logger.info(
            "Document summarized by %s (confidence %.2f)",
            result.provider, result.confidence,
        )
        return self._from_provider_result(result, result.confidence, chunk_count=1)

    # --- Path B: chunked ---

    def _chunk_options(self, chunk: SummarizationChunk, total: int, doc_target: int) -> SummarizeOptions:
        per_chunk = calculate_chunk_length(total, doc_target)
        return SummarizeOptions(
            min_length=min(self._settings.chunk_summary_min_words, per_chunk.min_length),
            max_length=min(self._settings.chunk_summary_max_words, per_chunk.max_length),
            retries=self._settings.chunk_retries,
            timeout_ms=self._settings.chunk_timeout_ms,
            chunk_index=chunk.index,
            total_chunks=total,
        )

    async def _summarize_chunk(
        self, chunk: SummarizationChunk, total: int, doc_target: int
    ) -> tuple[str, str | None]:
        logger.debug(
            "Processing chunk %d/%d (%d tokens)", chunk.index + 1, total, chunk.token_count
        )
        try:
            result = await self._chain.summarize(
                chunk.text, self._chunk_options(chunk, total, doc_target)
            )
        except AIProviderError as e:
            logger.error(
                "All providers failed for chunk %d, using local fallback: %s",
                chunk.index + 1, e,
            )
            return create_fallback_summary(chunk.text, CHUNK_FALLBACK_CHARS), str(e)
        return result.summary, None

    async def _summarize_batches(
        self, chunks: list[SummarizationChunk], doc_target: int, level: int
    ) -> _BatchOutcome:
        outcome = _BatchOutcome()
        batch_size = self._settings.summary_batch_size
        batches = math.ceil(len(chunks) / batch_size)

        for b, start in enumerate(range(0, len(chunks), batch_size)):
            batch = chunks[start : start + batch_size]
            logger.info(
                "Level %d batch %d/%d (chunks %d-%d)",
                level, b + 1, batches, start + 1, start + len(batch),
            )
            results = await asyncio.gather(
                *(self._summarize_chunk(c, len(chunks), doc_target) for c in batch)
            )
            for summary, error in results:
                outcome.summaries.append(summary)
                if error is not None:
                    outcome.errors.append(error)

            if start + batch_size < len(chunks):
                await self._sleep(self._settings.summary_batch_delay_ms / 1000)

        return outcome

    async def _summarize_chunked(self, text: str) -> SummarizationResult:
        doc_length = calculate_summary_length(len(text))
        chunks = self._chunker.split_by_boundary(text)
        total = len(chunks)
        logger.info("Document split into %d chunks", total)

        level1 = await self._summarize_batches(chunks, doc_length.target_length, level=1)
        chunk_errors = level1.errors
        combined = combine_chunk_summaries(level1.summaries)
        logger.info("Combined %d chunk summaries (%d chars)", total, len(combined))

        if self._tokens(combined) <= self.capacity_tokens:
            confidence = _discounted(
                COMBINED_BASE, COMBINED_FLOOR, len(chunk_errors), total
            )
            return SummarizationResult(
                summary=combined,
                confidence=confidence,
                model_version=COMBINED_MODEL,
                char_count=len(combined),
                chunk_count=total,
                target_length=doc_length.target_length,
                actual_length=calculate_word_count(combined),
                errors=chunk_errors or None,
            )

        return await self._reduce(combined, doc_length.target_length, chunk_errors, total)

    # --- Level 2+: depth-bounded reduction ---

    async def _reduce(
        self, combined: str, doc_target: int, chunk_errors: list[str], total: int
    ) -> SummarizationResult:
        current = combined
        extra_errors: list[str] = []
        try:
            for level in range(2, self._settings.max_reduction_depth + 1):
                tokens = self._tokens(current)
                if tokens <= self.capacity_tokens:
                    break

                if tokens <= self.capacity_tokens * 2:
                    logger.info("Level %d: single combination pass over %d tokens", level, tokens)
                    return await self._combination_pass(current, chunk_errors, total)

                logger.info("Level %d: re-chunking %d tokens", level, tokens)
                level_chunks = self._chunker.split_by_boundary(current)
                outcome = await self._summarize_batches(level_chunks, doc_target, level)
                extra_errors.extend(outcome.errors)
                current = combine_chunk_summaries(outcome.summaries)
                logger.info("Level %d combined: %d chars", level, len(current))
        except AIProviderError as e:
            logger.error("Level 2 summarization failed: %s", e)
            fallback = (
                current
                if len(current) <= LEVEL2_PASSTHROUGH_CHARS
                else create_fallback_summary(current, DOCUMENT_FALLBACK_CHARS)
            )
            return SummarizationResult(
                summary=fallback,
                confidence=LEVEL2_FALLBACK_CONFIDENCE,
                model_version=FALLBACK_MODEL,
                char_count=len(fallback),
                chunk_count=total,
                errors=[*chunk_errors, *extra_errors, str(e)],
            )

        if self._tokens(current) > self.capacity_tokens:
            logger.warning(
                "Reduction depth %d exhausted, truncating extractively",
                self._settings.max_reduction_depth,
            )
            current = create_fallback_summary(current, RECURSIVE_TRUNCATION_CHARS)

        confidence = _discounted(RECURSIVE_BASE, LEVEL2_FLOOR, len(chunk_errors), total)
        errors = [*chunk_errors, *extra_errors]
        return SummarizationResult(
            summary=current,
            confidence=confidence,
            model_version=RECURSIVE_MODEL,
            char_count=len(current),
            chunk_count=total,
            target_length=doc_target,
            actual_length=calculate_word_count(current),
            errors=errors or None,
        )

    async def _combination_pass(
        self, combined: str, chunk_errors: list[str], total: int
    ) -> SummarizationResult:
        options = SummarizeOptions(
            min_length=self._settings.chunk_summary_min_words,
            max_length=self._settings.chunk_summary_max_words,
            retries=self._settings.direct_retries,
            timeout_ms=self._settings.chunk_timeout_ms,
            is_multi_level=True,
        )
        result = await self._chain.summarize(combined, options)
        confidence = (
            _discounted(result.confidence, LEVEL2_FLOOR, len(chunk_errors), total)
            if chunk_errors
            else max(LEVEL2_PASS_MIN, result.confidence)
        )
        logger.info(
            "Level 2 summary created by %s (confidence %.2f)", result.provider, confidence
        )
        return self._from_provider_result(
            result, confidence, chunk_count=total, errors=chunk_errors or None
        )

    @staticmethod
    def _from_provider_result(
        result: SummarizeResult,
        confidence: float,
        chunk_count: int,
        errors: list[str] | None = None,
    ) -> SummarizationResult:
        return SummarizationResult(
            summary=result.summary,
            confidence=confidence,
            model_version=result.model_version,
            char_count=len(result.summary),
            chunk_count=chunk_count,
            provider=result.provider,
            tokens_used=result.tokens_used.total if result.tokens_used else None,
            target_length=result.target_length,
            actual_length=result.actual_length,
            errors=errors,
        )
