# src/pipeline/actions.py
"""Manual entry points behind the officials' dashboard.

Each retry resets a stage to ``pending`` and re-emits the event that
triggers it. Nothing in flight is aborted; a reset only affects the next
run.
"""

from __future__ import annotations

import logging

from budgetdigest.core.models import Document, utc_now
from budgetdigest.pipeline.errors import PreconditionError
from budgetdigest.pipeline.events import (
    DOCUMENT_UPLOADED,
    EXTRACTION_COMPLETED,
    SUMMARIZATION_COMPLETED,
    DocumentUploaded,
    EventEmitter,
    ExtractionCompleted,
    SummarizationCompleted,
)
from budgetdigest.store.base_document_store import BaseDocumentStore

logger = logging.getLogger(__name__)


class ActionRejectedError(PreconditionError):
    """The document's current state does not allow the requested action."""


async def retry_extraction(
    documents: BaseDocumentStore, emitter: EventEmitter, document_id: str
) -> Document:
    """Re-run extraction for a failed or scanned document."""
    doc = await documents.get(document_id)
    if doc.extraction_status == "completed":
        raise ActionRejectedError("Extraction already completed. No need to retry.")
    if doc.extraction_status == "extracting":
        raise ActionRejectedError("Extraction is currently in progress. Please wait.")
    if doc.extraction_status == "pending":
        raise ActionRejectedError(
            "Extraction has not started yet. Please wait for it to begin."
        )

    doc = await documents.update(
        document_id,
        extraction_status="pending",
        extraction_error=None,
        extraction_error_type=None,
        extraction_warning=None,
    )
    await emitter.emit(
        DOCUMENT_UPLOADED,
        DocumentUploaded(
            document_id=doc.id,
            file_name=doc.file_name,
            file_size=doc.file_size,
            file_reference=doc.file_reference,
        ),
    )
    logger.info("Extraction retry queued for %s", document_id)
    return doc


async def retry_summarization(
    documents: BaseDocumentStore, emitter: EventEmitter, document_id: str
) -> Document:
    """Re-run summarization. Allowed after success too (regenerate)."""
    doc = await documents.get(document_id)
    if doc.extraction_status != "completed":
        raise ActionRejectedError("Extraction must be completed first")
    if not doc.extracted_text_reference:
        raise ActionRejectedError("No extracted text available")
    if doc.summarization_status == "summarizing":
        raise ActionRejectedError("Summarization already in progress")

    doc = await documents.update(
        document_id,
        summarization_status="pending",
        summary_error=None,
        summary_error_type=None,
    )
    await emitter.emit(
        EXTRACTION_COMPLETED,
        ExtractionCompleted(
            document_id=doc.id,
            extracted_text_reference=doc.extracted_text_reference or "",
        ),
    )
    logger.info("Summarization retry queued for %s", document_id)
    return doc


async def request_translation(
    documents: BaseDocumentStore, emitter: EventEmitter, document_id: str
) -> Document:
    """(Re-)translate an existing summary."""
    doc = await documents.get(document_id)
    if not doc.summary_text:
        raise ActionRejectedError("Document has no summary to translate")
    if doc.translation_status == "translating":
        raise ActionRejectedError("Translation already in progress")

    doc = await documents.update(
        document_id,
        translation_status="pending",
        translation_error=None,
        translation_error_type=None,
    )
    await emitter.emit(
        SUMMARIZATION_COMPLETED,
        SummarizationCompleted(document_id=doc.id, primary_summary=doc.summary_text or ""),
    )
    logger.info("Translation queued for %s", document_id)
    return doc


async def publish(documents: BaseDocumentStore, document_id: str) -> Document:
    """Make a document public. Both language summaries must exist."""
    doc = await documents.get(document_id)
    if doc.publish_status == "published":
        raise ActionRejectedError("Document is already published")
    missing = []
    if not doc.summary_text:
        missing.append("English")
    if not doc.translated_summary:
        missing.append("Swahili")
    if missing:
        raise ActionRejectedError(
            f"Cannot publish: Missing {' and '.join(missing)} summary/translation"
        )
    return await documents.update(
        document_id, publish_status="published", published_at=utc_now()
    )


async def unpublish(documents: BaseDocumentStore, document_id: str) -> Document:
    """Withdraw a published document back to ``processing``."""
    doc = await documents.get(document_id)
    if doc.publish_status != "published":
        raise ActionRejectedError("Document is not published")
    return await documents.update(document_id, publish_status="processing", published_at=None)
