# src/pipeline/events.py
"""Pipeline events and the emit interface.

Each stage emits the event that triggers the next one. Payload field
names are an internal contract with the job runtime.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DOCUMENT_UPLOADED = "document.uploaded"
EXTRACTION_COMPLETED = "document.extraction-completed"
SUMMARIZATION_COMPLETED = "document.summarization-completed"
FUNCTION_FAILED = "function.failed"


class DocumentUploaded(BaseModel):
    document_id: str
    file_name: str
    file_size: int = 0
    file_reference: str = ""


class ExtractionCompleted(BaseModel):
    document_id: str
    extracted_text_reference: str


class SummarizationCompleted(BaseModel):
    document_id: str
    primary_summary: str


class EventEnvelope(BaseModel):
    """An event name with its serialized payload."""

    name: str
    data: dict[str, Any] = Field(default_factory=dict)


class FunctionFailed(BaseModel):
    """Emitted by the runtime after a handler exhausts its retries."""

    function_id: str
    error: str
    error_type: str = "unknown"
    event: EventEnvelope


EVENT_PAYLOADS: dict[str, type[BaseModel]] = {
    DOCUMENT_UPLOADED: DocumentUploaded,
    EXTRACTION_COMPLETED: ExtractionCompleted,
    SUMMARIZATION_COMPLETED: SummarizationCompleted,
    FUNCTION_FAILED: FunctionFailed,
}


def parse_event(name: str, data: dict[str, Any]) -> BaseModel:
    """Validate a raw payload against the model registered for ``name``.

    Raises:
        KeyError: For unknown event names.
    """
    return EVENT_PAYLOADS[name].model_validate(data)


class EventEmitter(ABC):
    """Narrow interface stages use to trigger the next stage."""

    @abstractmethod
    async def emit(self, name: str, payload: BaseModel) -> None:
        """Publish an event."""


class RecordingEmitter(EventEmitter):
    """Collects emitted events without delivering them."""

    def __init__(self) -> None:
        self.events: list[tuple[str, BaseModel]] = []

    async def emit(self, name: str, payload: BaseModel) -> None:
        logger.debug("Recorded event %s", name)
        self.events.append((name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> list[BaseModel]:
        return [payload for n, payload in self.events if n == name]
