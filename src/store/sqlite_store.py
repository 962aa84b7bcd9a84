# src/store/sqlite_store.py
"""SQLite-backed document store (DOCUMENT_STORE=sqlite).

Uses stdlib sqlite3. Each record is stored as one JSON column next to its
id; status columns are duplicated so claim() can guard its UPDATE on them.
Read-modify-write paths run under BEGIN IMMEDIATE, which takes the
database write lock up front, so several stores (or processes) sharing one
file cannot interleave between the status check and the write.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from budgetdigest.core.models import Document
from budgetdigest.store.base_document_store import (
    BaseDocumentStore,
    DocumentNotFoundError,
    apply_fields,
)

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    extraction_status TEXT,
    summarization_status TEXT,
    translation_status TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_extraction_status ON documents(extraction_status);
"""

_STATUS_COLUMNS = ("extraction_status", "summarization_status", "translation_status")


class SqliteDocumentStore(BaseDocumentStore):
    """Persist documents in a local SQLite database."""

    def __init__(self, db_path: Path | str, timeout: float = 5.0) -> None:
        if str(db_path) == ":memory:":
            target = ":memory:"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            target = str(path)
        # Autocommit; transactions are opened explicitly.
        self._conn = sqlite3.connect(target, timeout=timeout, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @contextmanager
    def _immediate(self) -> Iterator[sqlite3.Connection]:
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")

    def _read(self, document_id: str) -> Document:
        row = self._conn.execute(
            "SELECT data FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        if row is None:
            raise DocumentNotFoundError(document_id)
        return Document.model_validate_json(row[0])

    @staticmethod
    def _row(doc: Document) -> tuple[str, str, str, str]:
        return (
            doc.model_dump_json(),
            doc.extraction_status,
            doc.summarization_status,
            doc.translation_status,
        )

    async def create(self, doc: Document) -> Document:
        try:
            self._conn.execute(
                """INSERT INTO documents
                   (data, extraction_status, summarization_status, translation_status, id)
                   VALUES (?, ?, ?, ?, ?)""",
                (*self._row(doc), doc.id),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Document already exists: {doc.id}") from e
        return doc

    async def get(self, document_id: str) -> Document:
        return self._read(document_id)

    async def update(self, document_id: str, **fields: Any) -> Document:
        with self._immediate() as conn:
            doc = apply_fields(self._read(document_id), fields)
            conn.execute(
                """UPDATE documents
                   SET data = ?, extraction_status = ?, summarization_status = ?,
                       translation_status = ?
                   WHERE id = ?""",
                (*self._row(doc), document_id),
            )
        return doc

    async def claim(
        self,
        document_id: str,
        status_field: str,
        allowed: Iterable[str],
        **fields: Any,
    ) -> Document | None:
        if status_field not in _STATUS_COLUMNS:
            raise ValueError(f"Not a status column: {status_field}")
        allowed = tuple(allowed)
        placeholders = ", ".join("?" * len(allowed))
        with self._immediate() as conn:
            current = self._read(document_id)
            if getattr(current, status_field) not in allowed:
                logger.debug(
                    "Claim rejected for %s: %s=%s",
                    document_id, status_field, getattr(current, status_field),
                )
                return None
            doc = apply_fields(current, fields)
            cursor = conn.execute(
                f"""UPDATE documents
                    SET data = ?, extraction_status = ?, summarization_status = ?,
                        translation_status = ?
                    WHERE id = ? AND {status_field} IN ({placeholders})""",
                (*self._row(doc), document_id, *allowed),
            )
            if cursor.rowcount == 0:
                return None
        return doc

    async def list_documents(self) -> list[Document]:
        rows = self._conn.execute(
            "SELECT data FROM documents ORDER BY created_at, rowid"
        ).fetchall()
        return [Document.model_validate_json(row[0]) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
