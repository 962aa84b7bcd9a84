# src/store/memory_store.py
"""In-process document store (DOCUMENT_STORE=memory). Used by tests."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from budgetdigest.core.models import Document
from budgetdigest.store.base_document_store import (
    BaseDocumentStore,
    DocumentNotFoundError,
    apply_fields,
)


class MemoryDocumentStore(BaseDocumentStore):
    """Dict-backed store. Every method runs without awaiting, so each call is atomic on the loop."""

    def __init__(self) -> None:
        self._docs: dict[str, Document] = {}

    async def create(self, doc: Document) -> Document:
        if doc.id in self._docs:
            raise ValueError(f"Document already exists: {doc.id}")
        self._docs[doc.id] = doc
        return doc

    async def get(self, document_id: str) -> Document:
        try:
            return self._docs[document_id]
        except KeyError:
            raise DocumentNotFoundError(document_id) from None

    async def update(self, document_id: str, **fields: Any) -> Document:
        doc = apply_fields(await self.get(document_id), fields)
        self._docs[document_id] = doc
        return doc

    async def claim(
        self,
        document_id: str,
        status_field: str,
        allowed: Iterable[str],
        **fields: Any,
    ) -> Document | None:
        current = await self.get(document_id)
        if getattr(current, status_field) not in set(allowed):
            return None
        return await self.update(document_id, **fields)

    async def list_documents(self) -> list[Document]:
        return list(self._docs.values())
