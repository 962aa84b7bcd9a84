# src/pipeline/stages/translation_stage.py
"""Translation stage: primary summary -> second-language summary.

Triggered by ``document.summarization-completed``. An unconfigured
translator marks the document ``skipped`` rather than ``failed``: skipped
means the feature is unavailable, failed means it was attempted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import RETRYABLE_STAGE_ERRORS, StageOutcome, utc_now
from budgetdigest.logging.context import set_document_context, set_stage_context
from budgetdigest.pipeline.errors import RetryableStageError
from budgetdigest.pipeline.events import SummarizationCompleted
from budgetdigest.store.base_document_store import BaseDocumentStore
from budgetdigest.translation.translator import (
    PROVIDER,
    TranslationError,
    Translator,
    classify_translation_error,
)

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Translation service not configured (OPENAI_API_KEY missing)"
NO_SUMMARY = "No summary available to translate"


class TranslationStage:
    """Handler for ``document.summarization-completed``."""

    function_id = "translate-summary"

    def __init__(
        self,
        documents: BaseDocumentStore,
        translator: Translator,
        settings: Settings,
        clock: Callable = utc_now,
    ) -> None:
        self._documents = documents
        self._translator = translator
        self._settings = settings
        self._clock = clock

    async def __call__(self, event: SummarizationCompleted) -> StageOutcome | None:
        return await self.run(event)

    def _outcome(self, document_id: str, status: str, **detail: object) -> StageOutcome:
        return StageOutcome(
            document_id=document_id, stage="translation", status=status, detail=detail
        )

    async def run(self, event: SummarizationCompleted) -> StageOutcome | None:
        """Translate one document's summary.

        Raises:
            RetryableStageError: On timeout, rate limit, connection or API errors.
        """
        set_document_context(event.document_id)
        set_stage_context("translation")

        doc = await self._documents.get(event.document_id)
        if doc.translation_status in ("completed", "translating"):
            logger.info("Translation already %s, skipping", doc.translation_status)
            return None

        if not self._translator.is_available():
            logger.warning("Translator not configured, marking skipped")
            await self._documents.update(
                doc.id, translation_status="skipped", translation_error=NOT_CONFIGURED
            )
            return self._outcome(doc.id, "skipped", reason=NOT_CONFIGURED)

        summary = event.primary_summary or doc.summary_text or ""
        if not summary.strip():
            logger.warning("Empty summary, marking skipped")
            await self._documents.update(
                doc.id,
                translation_status="skipped",
                translation_error=NO_SUMMARY,
                translation_error_type="empty_content",
            )
            return self._outcome(doc.id, "skipped", reason=NO_SUMMARY)

        claimed = await self._documents.claim(
            doc.id,
            "translation_status",
            ("pending", "failed", "skipped"),
            translation_status="translating",
            translation_started_at=self._clock(),
            translation_error=None,
            translation_error_type=None,
        )
        if claimed is None:
            logger.info("Translation claimed by another run, skipping")
            return None

        try:
            outcome = await self._translator.translate(
                summary,
                self._settings.translation_direction,
                self._settings.translation_context,
            )
        except asyncio.CancelledError:
            await self._documents.update(doc.id, translation_status="pending")
            raise
        except Exception as e:
            error_type = classify_translation_error(e)
            message = e.message if isinstance(e, TranslationError) else str(e)
            retryable = error_type in RETRYABLE_STAGE_ERRORS
            logger.error("Translation failed (%s): %s", error_type, message)
            await self._documents.update(
                doc.id,
                translation_status="pending" if retryable else "failed",
                translation_error=message,
                translation_error_type=error_type,
                translation_completed_at=None if retryable else self._clock(),
            )
            if retryable:
                raise RetryableStageError(message, error_type) from e
            return self._outcome(doc.id, "failed", error_type=error_type, error=message)

        await self._documents.update(
            doc.id,
            translation_status="completed",
            translated_summary=outcome.translated_text,
            translation_confidence=outcome.confidence,
            translation_source_char_count=outcome.source_char_count,
            translation_output_char_count=outcome.output_char_count,
            translation_source_word_count=outcome.source_word_count,
            translation_output_word_count=outcome.output_word_count,
            translation_model_version=outcome.model_version,
            translation_provider=PROVIDER,
            translation_duration_ms=outcome.duration_ms,
            translation_completed_at=self._clock(),
        )
        logger.info("Translation completed (confidence %.2f)", outcome.confidence)
        return self._outcome(
            doc.id, "completed", confidence=outcome.confidence, direction=outcome.direction
        )
