# src/pipeline/stages/summarization_stage.py
"""Summarization stage: extracted text -> primary-language summary.

Triggered by ``document.extraction-completed``. The ``summarizing`` status
is the re-entry lock: a duplicate delivery while a run is in flight, or
after completion, returns without touching providers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import (
    RETRYABLE_STAGE_ERRORS,
    StageOutcome,
    SummarizationErrorType,
    utc_now,
)
from budgetdigest.llm.errors import AIProviderError
from budgetdigest.llm.summary_length import calculate_coverage
from budgetdigest.logging.context import set_document_context, set_stage_context
from budgetdigest.pipeline.errors import RetryableStageError
from budgetdigest.pipeline.events import (
    SUMMARIZATION_COMPLETED,
    EventEmitter,
    ExtractionCompleted,
    SummarizationCompleted,
)
from budgetdigest.storage.base_object_store import BaseObjectStore
from budgetdigest.store.base_document_store import BaseDocumentStore
from budgetdigest.summarization.engine import EmptyContentError, SummarizationEngine

logger = logging.getLogger(__name__)

_MESSAGES: dict[str, str] = {
    "rate_limited": "AI provider rate limit exceeded",
    "timeout": "Summarization process timed out",
    "empty_content": "Document has insufficient content to summarize",
    "connection_error": "Failed to connect to AI provider",
    "api_error": "AI provider API error",
    "model_error": "AI model is currently unavailable",
    "invalid_response": "Invalid response from AI provider",
    "invalid_text": "Text failed validation checks",
    "unknown": "An unexpected error occurred during summarization",
}

_AI_TO_SUMMARIZATION: dict[str, SummarizationErrorType] = {
    "rate_limited": "rate_limited",
    "timeout": "timeout",
    "connection_error": "connection_error",
    "api_error": "api_error",
    "model_unavailable": "model_error",
    "circuit_open": "model_error",
    "invalid_input": "invalid_text",
}

# Message heuristics, checked in order.
_RULES: list[tuple[tuple[str, ...], SummarizationErrorType]] = [
    (("rate limit", "429"), "rate_limited"),
    (("timeout", "timed out"), "timeout"),
    (("no valid text", "too short"), "empty_content"),
    (("network", "connection", "fetch failed"), "connection_error"),
    (("500", "503", "api"), "api_error"),
    (("model", "circuit"), "model_error"),
    (("invalid", "parse"), "invalid_response"),
    (("validation",), "invalid_text"),
]


def classify_summarization_error(
    error: BaseException,
) -> tuple[SummarizationErrorType, str]:
    """Map an exception to (error_type, user-facing message)."""
    if isinstance(error, EmptyContentError):
        error_type: SummarizationErrorType = "empty_content"
    elif isinstance(error, AIProviderError) and error.error_type in _AI_TO_SUMMARIZATION:
        error_type = _AI_TO_SUMMARIZATION[error.error_type]
    elif isinstance(error, TimeoutError):
        error_type = "timeout"
    else:
        lowered = str(error).lower()
        error_type = next(
            (t for needles, t in _RULES if any(n in lowered for n in needles)),
            "unknown",
        )
    return error_type, _MESSAGES[error_type]


def split_reference(reference: str) -> tuple[str, str]:
    """'extracted-text/abc.txt' -> ('extracted-text', 'abc.txt')."""
    bucket, _, path = reference.partition("/")
    if not path:
        raise ValueError(f"Invalid object reference: {reference!r}")
    return bucket, path


class SummarizationStage:
    """Handler for ``document.extraction-completed``."""

    function_id = "summarize-document"

    def __init__(
        self,
        documents: BaseDocumentStore,
        objects: BaseObjectStore,
        emitter: EventEmitter,
        engine: SummarizationEngine,
        settings: Settings,
        clock: Callable = utc_now,
    ) -> None:
        self._documents = documents
        self._objects = objects
        self._emitter = emitter
        self._engine = engine
        self._settings = settings
        self._clock = clock

    async def __call__(self, event: ExtractionCompleted) -> StageOutcome | None:
        return await self.run(event)

    async def run(self, event: ExtractionCompleted) -> StageOutcome | None:
        """Summarize one document.

        Returns None for a no-op (wrong state, in flight, or already done).

        Raises:
            RetryableStageError: Transient failure; status reset to ``pending``.
        """
        set_document_context(event.document_id)
        set_stage_context("summarization")

        doc = await self._documents.get(event.document_id)
        if doc.extraction_status != "completed":
            logger.warning(
                "Extraction not completed (status=%s), skipping", doc.extraction_status
            )
            return None

        doc = await self._documents.claim(
            doc.id,
            "summarization_status",
            ("pending", "failed", "skipped"),
            summarization_status="summarizing",
            summarization_started_at=self._clock(),
            summary_error=None,
            summary_error_type=None,
        )
        if doc is None:
            logger.info("Summarization already in progress or completed, skipping")
            return None

        t0 = time.monotonic()
        try:
            reference = event.extracted_text_reference or doc.extracted_text_reference or ""
            raw = await self._objects.download(*split_reference(reference))
            text = raw.decode("utf-8", errors="replace")
            minimum = self._settings.min_text_chars
            if len(text.strip()) < minimum:
                raise EmptyContentError(
                    f"Extracted text is too short to summarize (minimum {minimum} characters)"
                )
            result = await self._engine.summarize_document(text)
        except asyncio.CancelledError:
            await self._documents.update(doc.id, summarization_status="pending")
            raise
        except Exception as e:
            return await self._fail(doc.id, e)

        duration_ms = int((time.monotonic() - t0) * 1000)
        coverage = (
            calculate_coverage(result.actual_length, result.target_length)
            if result.actual_length and result.target_length
            else None
        )
        await self._documents.update(
            doc.id,
            summarization_status="completed",
            summary_text=result.summary,
            summary_confidence=result.confidence,
            summary_model_version=result.model_version,
            summary_provider=result.provider or "unknown",
            summary_char_count=result.char_count,
            summary_chunk_count=result.chunk_count,
            summary_tokens_used=result.tokens_used,
            summary_target_length=result.target_length,
            summary_actual_length=result.actual_length,
            summary_coverage_percent=coverage,
            summarization_completed_at=self._clock(),
            summarization_duration_ms=duration_ms,
        )
        if result.errors:
            logger.warning("Summary completed with %d chunk warnings", len(result.errors))
        logger.info(
            "Summarization completed via %s in %dms (confidence %.2f)",
            result.provider or result.model_version, duration_ms, result.confidence,
        )

        await self._emitter.emit(
            SUMMARIZATION_COMPLETED,
            SummarizationCompleted(document_id=doc.id, primary_summary=result.summary),
        )
        return StageOutcome(
            document_id=doc.id,
            stage="summarization",
            status="completed",
            detail={
                "provider": result.provider,
                "confidence": result.confidence,
                "chunk_count": result.chunk_count,
            },
        )

    async def _fail(self, document_id: str, error: Exception) -> StageOutcome:
        error_type, message = classify_summarization_error(error)
        if error_type in RETRYABLE_STAGE_ERRORS:
            logger.warning("Retryable summarization error (%s): %s", error_type, error)
            # Release the lock so the runtime's next attempt can claim it.
            await self._documents.update(
                document_id,
                summarization_status="pending",
                summary_error=message,
                summary_error_type=error_type,
            )
            raise RetryableStageError(message, error_type) from error

        logger.error("Summarization failed (%s): %s", error_type, error)
        await self._documents.update(
            document_id,
            summarization_status="failed",
            summary_error=message,
            summary_error_type=error_type,
            summarization_completed_at=self._clock(),
        )
        return StageOutcome(
            document_id=document_id,
            stage="summarization",
            status="failed",
            detail={"error_type": error_type, "error": str(error)},
        )
