# src/pipeline/stages/failure_handler.py
"""Terminal failure bookkeeping.

Consumes ``function.failed`` after the runtime gives up on a stage and
persists the terminal ``failed`` state the stage itself could not write.
"""

from __future__ import annotations

import logging
from typing import Callable

from budgetdigest.core.models import utc_now
from budgetdigest.logging.context import set_document_context, set_stage_context
from budgetdigest.pipeline.events import FunctionFailed
from budgetdigest.pipeline.registry import (
    EXTRACT_FUNCTION,
    SUMMARIZE_FUNCTION,
    TRANSLATE_FUNCTION,
)
from budgetdigest.pipeline.stages.summarization_stage import classify_summarization_error
from budgetdigest.store.base_document_store import BaseDocumentStore, DocumentNotFoundError
from budgetdigest.translation.translator import classify_translation_error

logger = logging.getLogger(__name__)


class FailureHandler:
    """Handler for ``function.failed``."""

    function_id = "handle-function-failure"

    def __init__(self, documents: BaseDocumentStore, clock: Callable = utc_now) -> None:
        self._documents = documents
        self._clock = clock

    async def __call__(self, event: FunctionFailed) -> str | None:
        return await self.run(event)

    async def run(self, event: FunctionFailed) -> str | None:
        """Persist the terminal state. Returns the status field written."""
        document_id = event.event.data.get("document_id")
        if not document_id:
            logger.warning("function.failed for %s without document_id", event.function_id)
            return None
        set_document_context(document_id)
        set_stage_context("failure")

        try:
            doc = await self._documents.get(document_id)
        except DocumentNotFoundError:
            logger.warning("Failed function refers to unknown document")
            return None

        if event.function_id == SUMMARIZE_FUNCTION:
            if doc.summarization_status == "completed":
                return None
            error_type = event.error_type
            if error_type == "unknown":
                error_type, _ = classify_summarization_error(RuntimeError(event.error))
            await self._documents.update(
                document_id,
                summarization_status="failed",
                summary_error=f"Failed after retries: {event.error}",
                summary_error_type=error_type,
                summarization_completed_at=self._clock(),
            )
            logger.error("Summarization marked failed after retries")
            return "summarization_status"

        if event.function_id == TRANSLATE_FUNCTION:
            if doc.translation_status == "completed":
                return None
            error_type = event.error_type
            if error_type == "unknown":
                error_type = classify_translation_error(RuntimeError(event.error))
            await self._documents.update(
                document_id,
                translation_status="failed",
                translation_error=f"Failed after retries: {event.error}",
                translation_error_type=error_type,
                translation_completed_at=self._clock(),
            )
            logger.error("Translation marked failed after retries")
            return "translation_status"

        if event.function_id == EXTRACT_FUNCTION:
            # The stage persists its own failure before raising.
            if doc.extraction_status == "extracting":
                await self._documents.update(
                    document_id,
                    extraction_status="failed",
                    extraction_error=event.error,
                    extraction_error_type="timeout" if "timed out" in event.error else "unknown",
                    extraction_completed_at=self._clock(),
                )
                return "extraction_status"
            return None

        logger.debug("No failure bookkeeping for %s", event.function_id)
        return None
