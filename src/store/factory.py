# src/store/factory.py
"""Factory: instantiate document store from configuration."""

from __future__ import annotations

from budgetdigest.config.settings import Settings
from budgetdigest.store.base_document_store import BaseDocumentStore


def create_document_store(settings: Settings) -> BaseDocumentStore:
    """Create the document store selected by DOCUMENT_STORE.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.document_store == "memory":
        from budgetdigest.store.memory_store import MemoryDocumentStore

        return MemoryDocumentStore()

    if settings.document_store == "sqlite":
        from budgetdigest.store.sqlite_store import SqliteDocumentStore

        return SqliteDocumentStore(settings.document_store_path)

    raise ValueError(f"Unsupported document store: {settings.document_store!r}")
