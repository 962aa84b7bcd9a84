# src/pipeline/stages/extraction_stage.py
"""Extraction stage: PDF binary -> persisted plain text.

Triggered by ``document.uploaded``. Downloads the binary with a bounded
retry, parses text and page count, stores the text under
``extracted-text/<id>.txt`` and hands off to summarization only when the
text is long enough to be worth a provider call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import (
    Document,
    ExtractionErrorType,
    ExtractionOutcome,
    utc_now,
)
from budgetdigest.extraction.pdf_extractor import PdfTextExtractor
from budgetdigest.llm.retry import Sleep
from budgetdigest.logging.context import set_document_context, set_stage_context
from budgetdigest.pipeline.errors import PreconditionError, RetryableStageError, StageError
from budgetdigest.pipeline.events import (
    EXTRACTION_COMPLETED,
    DocumentUploaded,
    EventEmitter,
    ExtractionCompleted,
)
from budgetdigest.storage.base_object_store import BaseObjectStore
from budgetdigest.store.base_document_store import BaseDocumentStore, DocumentNotFoundError

logger = logging.getLogger(__name__)

SCANNED_WARNING = "No text found in PDF. Document may be blank or scanned."
RETRYABLE_EXTRACTION_ERRORS: frozenset[str] = frozenset(
    {"timeout", "download_failed", "unknown"}
)

# Checked in order; first match wins.
_EXTRACTION_RULES: list[tuple[tuple[str, ...], ExtractionErrorType, str]] = [
    (
        ("password", "encrypted", "decrypt"),
        "encrypted",
        "This PDF is password-protected. Please remove password protection and try again.",
    ),
    (
        ("corrupt", "invalid pdf", "not a pdf", "parse error"),
        "corrupt_file",
        "PDF file is damaged or corrupted. Please try re-uploading the document.",
    ),
    (
        ("timeout", "timed out"),
        "timeout",
        "Extraction timed out. File may be too complex. Try compressing the PDF.",
    ),
    (
        ("memory", "heap"),
        "memory_error",
        "File is too large for processing. Please compress or split the PDF.",
    ),
    (
        ("download", "storage", "fetch"),
        "download_failed",
        "Failed to download file from storage. Please try again.",
    ),
    (
        ("pdf", "parse"),
        "parsing_error",
        "Unable to parse PDF. Format may be unsupported.",
    ),
]


def classify_extraction_error(error: BaseException) -> tuple[ExtractionErrorType, str]:
    """Map an exception to (error_type, user-facing message)."""
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "timeout", _EXTRACTION_RULES[2][2]
    if isinstance(error, MemoryError):
        return "memory_error", _EXTRACTION_RULES[3][2]
    lowered = str(error).lower()
    for needles, error_type, message in _EXTRACTION_RULES:
        if any(n in lowered for n in needles):
            return error_type, message
    return "unknown", "An unexpected error occurred during extraction. Please try again."


class ExtractionStage:
    """Handler for ``document.uploaded``."""

    function_id = "extract-document"

    def __init__(
        self,
        documents: BaseDocumentStore,
        objects: BaseObjectStore,
        emitter: EventEmitter,
        settings: Settings,
        extractor: PdfTextExtractor | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable = utc_now,
    ) -> None:
        self._documents = documents
        self._objects = objects
        self._emitter = emitter
        self._settings = settings
        self._extractor = extractor or PdfTextExtractor()
        self._sleep = sleep
        self._clock = clock

    async def __call__(self, event: DocumentUploaded) -> ExtractionOutcome | None:
        return await self.run(event)

    async def run(self, event: DocumentUploaded) -> ExtractionOutcome | None:
        """Extract one document.

        Returns None when the document is already being extracted or done.

        Raises:
            PreconditionError: The document record does not exist.
            StageError: On any extraction failure, after persisting ``failed``.
        """
        set_document_context(event.document_id)
        set_stage_context("extraction")

        try:
            await self._documents.get(event.document_id)
        except DocumentNotFoundError as e:
            raise PreconditionError(str(e), "not_found") from e

        doc = await self._documents.claim(
            event.document_id,
            "extraction_status",
            ("pending", "failed"),
            extraction_status="extracting",
            extraction_started_at=self._clock(),
            extraction_error=None,
            extraction_error_type=None,
            extraction_warning=None,
        )
        if doc is None:
            logger.info("Extraction already in progress or finished, skipping")
            return None

        t0 = time.monotonic()
        try:
            return await self._extract(doc, event, t0)
        except asyncio.CancelledError:
            await self._documents.update(
                doc.id,
                extraction_status="failed",
                extraction_error=_EXTRACTION_RULES[2][2],
                extraction_error_type="timeout",
            )
            raise
        except Exception as e:
            error_type, message = classify_extraction_error(e)
            duration_ms = int((time.monotonic() - t0) * 1000)
            logger.error("Extraction failed (%s): %s", error_type, e)
            await self._documents.update(
                doc.id,
                extraction_status="failed",
                extraction_error=message,
                extraction_error_type=error_type,
                extraction_completed_at=self._clock(),
                extraction_duration_ms=duration_ms,
            )
            error_cls = (
                RetryableStageError
                if error_type in RETRYABLE_EXTRACTION_ERRORS
                else StageError
            )
            raise error_cls(message, error_type) from e

    async def _extract(
        self, doc: Document, event: DocumentUploaded, t0: float
    ) -> ExtractionOutcome:
        path = event.file_reference or doc.file_reference or f"documents/{doc.file_name}"
        content = await self._download(path)
        parsed = await self._extractor.extract(content)
        text = parsed.text
        char_count = len(text)
        logger.info("Extracted %d chars from %d pages", char_count, parsed.page_count)

        if not text.strip():
            duration_ms = int((time.monotonic() - t0) * 1000)
            logger.warning("No extractable text, marking as scanned")
            await self._documents.update(
                doc.id,
                extraction_status="completed_scanned",
                extraction_error_type="empty",
                extraction_warning=SCANNED_WARNING,
                page_count=parsed.page_count,
                char_count=0,
                extraction_completed_at=self._clock(),
                extraction_duration_ms=duration_ms,
            )
            return ExtractionOutcome(
                document_id=doc.id,
                status="completed_scanned",
                page_count=parsed.page_count,
                duration_ms=duration_ms,
                error_type="empty",
            )

        text_path = f"{doc.id}.txt"
        try:
            reference = await self._objects.upload(
                self._settings.extracted_text_bucket,
                text_path,
                text,
                content_type="text/plain",
            )
        except Exception as e:
            raise RuntimeError(f"Storage upload failed: {e}") from e

        duration_ms = int((time.monotonic() - t0) * 1000)
        await self._documents.update(
            doc.id,
            extraction_status="completed",
            extracted_text_reference=reference,
            page_count=parsed.page_count,
            char_count=char_count,
            extraction_completed_at=self._clock(),
            extraction_duration_ms=duration_ms,
            extraction_error=None,
            extraction_error_type=None,
        )

        triggered = char_count > self._settings.min_text_chars
        if triggered:
            await self._emitter.emit(
                EXTRACTION_COMPLETED,
                ExtractionCompleted(document_id=doc.id, extracted_text_reference=reference),
            )
        else:
            logger.info(
                "Text below %d chars, not triggering summarization",
                self._settings.min_text_chars,
            )

        return ExtractionOutcome(
            document_id=doc.id,
            status="completed",
            page_count=parsed.page_count,
            char_count=char_count,
            duration_ms=duration_ms,
            extracted_text_reference=reference,
            triggered_summarization=triggered,
        )

    async def _download(self, path: str) -> bytes:
        attempts = self._settings.download_attempts
        last_error: Exception | None = None
        for attempt in range(attempts):
            if attempt > 0:
                await self._sleep(attempt)
            try:
                return await self._objects.download(self._settings.documents_bucket, path)
            except Exception as e:
                last_error = e
                logger.warning("Download attempt %d/%d failed: %s", attempt + 1, attempts, e)
        raise RuntimeError(
            f"Failed to download PDF after {attempts} attempts: {last_error}"
        ) from last_error
