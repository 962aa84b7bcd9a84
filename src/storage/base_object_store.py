# src/storage/base_object_store.py
"""Abstract object storage interface.

Binaries and extracted text are addressed by (bucket, path).
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ObjectNotFoundError(FileNotFoundError):
    """Raised when a (bucket, path) pair has no stored object."""


class BaseObjectStore(ABC):
    """Unified interface for object storage backends."""

    @abstractmethod
    async def download(self, bucket: str, path: str) -> bytes:
        """Read an object. Raises ObjectNotFoundError if missing."""

    @abstractmethod
    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes | str,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Write (upsert) an object and return its reference."""

    @abstractmethod
    async def exists(self, bucket: str, path: str) -> bool:
        """Check if an object exists."""

    @staticmethod
    def reference(bucket: str, path: str) -> str:
        """Canonical reference string stored on the document."""
        return f"{bucket}/{path}"
