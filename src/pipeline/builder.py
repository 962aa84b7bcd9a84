# src/pipeline/builder.py
"""Assemble collaborators and stages into a runnable local pipeline."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from budgetdigest.config.settings import Settings
from budgetdigest.core.models import Document, utc_now
from budgetdigest.llm.provider_chain import ProviderChain
from budgetdigest.llm.provider_factory import build_default_chain
from budgetdigest.llm.rate_limiter import RateLimiter, get_rate_limiter
from budgetdigest.llm.retry import Sleep
from budgetdigest.pipeline.dispatcher import LocalDispatcher
from budgetdigest.pipeline.events import DOCUMENT_UPLOADED, DocumentUploaded
from budgetdigest.pipeline.registry import (
    EXTRACT_FUNCTION,
    FAILURE_FUNCTION,
    SUMMARIZE_FUNCTION,
    TRANSLATE_FUNCTION,
    stage_configs,
)
from budgetdigest.pipeline.stages.extraction_stage import ExtractionStage
from budgetdigest.pipeline.stages.failure_handler import FailureHandler
from budgetdigest.pipeline.stages.summarization_stage import SummarizationStage
from budgetdigest.pipeline.stages.translation_stage import TranslationStage
from budgetdigest.storage.base_object_store import BaseObjectStore
from budgetdigest.storage.store_factory import create_object_store
from budgetdigest.store.base_document_store import BaseDocumentStore
from budgetdigest.store.factory import create_document_store
from budgetdigest.summarization.engine import SummarizationEngine
from budgetdigest.translation.translator import Translator

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Everything a local run needs, wired together."""

    settings: Settings
    documents: BaseDocumentStore
    objects: BaseObjectStore
    chain: ProviderChain
    engine: SummarizationEngine
    translator: Translator
    rate_limiter: RateLimiter
    dispatcher: LocalDispatcher

    async def upload(
        self, content: bytes | Path, file_name: str | None = None, title: str = ""
    ) -> Document:
        """Store a binary, create its record and emit ``document.uploaded``."""
        if isinstance(content, Path):
            file_name = file_name or content.name
            content = content.read_bytes()
        file_name = file_name or "document.pdf"
        document_id = str(uuid.uuid4())
        path = f"{document_id}/{file_name}"
        await self.objects.upload(
            self.settings.documents_bucket, path, content, content_type="application/pdf"
        )
        doc = await self.documents.create(
            Document(
                id=document_id,
                title=title or Path(file_name).stem,
                file_name=file_name,
                file_reference=path,
                file_size=len(content),
                created_at=utc_now(),
            )
        )
        logger.info("Uploaded %s as %s (%d bytes)", file_name, document_id, len(content))
        await self.dispatcher.emit(
            DOCUMENT_UPLOADED,
            DocumentUploaded(
                document_id=doc.id,
                file_name=file_name,
                file_size=doc.file_size,
                file_reference=path,
            ),
        )
        return doc

    async def process(
        self, content: bytes | Path, file_name: str | None = None, title: str = ""
    ) -> Document:
        """Upload and wait for the whole stage cascade to settle."""
        doc = await self.upload(content, file_name, title)
        await self.dispatcher.drain()
        return await self.documents.get(doc.id)


def build_pipeline(
    settings: Settings,
    documents: BaseDocumentStore | None = None,
    objects: BaseObjectStore | None = None,
    chain: ProviderChain | None = None,
    translator: Translator | None = None,
    rate_limiter: RateLimiter | None = None,
    sleep: Sleep = asyncio.sleep,
) -> Pipeline:
    """Build a pipeline; any collaborator not passed is created from settings."""
    documents = documents or create_document_store(settings)
    objects = objects or create_object_store(settings)
    rate_limiter = rate_limiter or get_rate_limiter(settings)
    chain = chain or build_default_chain(settings, rate_limiter)
    translator = translator or Translator(settings)
    engine = SummarizationEngine(chain, settings=settings, sleep=sleep)

    dispatcher = LocalDispatcher(sleep=sleep)
    configs = stage_configs(settings)
    dispatcher.register(
        configs[EXTRACT_FUNCTION],
        ExtractionStage(documents, objects, dispatcher, settings, sleep=sleep),
    )
    dispatcher.register(
        configs[SUMMARIZE_FUNCTION],
        SummarizationStage(documents, objects, dispatcher, engine, settings),
    )
    dispatcher.register(
        configs[TRANSLATE_FUNCTION],
        TranslationStage(documents, translator, settings),
    )
    dispatcher.register(configs[FAILURE_FUNCTION], FailureHandler(documents))

    return Pipeline(
        settings=settings,
        documents=documents,
        objects=objects,
        chain=chain,
        engine=engine,
        translator=translator,
        rate_limiter=rate_limiter,
        dispatcher=dispatcher,
    )
