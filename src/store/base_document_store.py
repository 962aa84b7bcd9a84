# src/store/base_document_store.py
"""Abstract document record store.

The store is the only shared state between stages. Status transitions
that act as re-entry locks go through ``claim`` so that the check and the
write happen as one step.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from budgetdigest.core.models import Document


class DocumentNotFoundError(LookupError):
    """Raised when no record exists for a document id."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


def apply_fields(doc: Document, fields: dict[str, Any]) -> Document:
    """Return a validated copy of ``doc`` with ``fields`` applied.

    Raises:
        ValueError: On unknown field names.
        pydantic.ValidationError: On invalid status or error-type values.
    """
    unknown = set(fields) - set(Document.model_fields)
    if unknown:
        raise ValueError(f"Unknown document fields: {sorted(unknown)}")
    return Document.model_validate({**doc.model_dump(), **fields})


class BaseDocumentStore(ABC):
    """Unified interface for document persistence backends."""

    @abstractmethod
    async def create(self, doc: Document) -> Document:
        """Insert a new record. Raises ValueError if the id exists."""

    @abstractmethod
    async def get(self, document_id: str) -> Document:
        """Fetch a record. Raises DocumentNotFoundError."""

    @abstractmethod
    async def update(self, document_id: str, **fields: Any) -> Document:
        """Apply field updates and return the new record."""

    @abstractmethod
    async def claim(
        self,
        document_id: str,
        status_field: str,
        allowed: Iterable[str],
        **fields: Any,
    ) -> Document | None:
        """Apply ``fields`` only if ``status_field`` is one of ``allowed``.

        Returns the updated record, or None when the current status did not
        match (another run owns the document or it is already done).
        """

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """All records, oldest first."""
