# src/storage/local_store.py
"""Local filesystem object store (default backend).

Each bucket is a directory under the configured root.
"""

from __future__ import annotations

import logging
from pathlib import Path

from budgetdigest.storage.base_object_store import BaseObjectStore, ObjectNotFoundError

logger = logging.getLogger(__name__)


class LocalObjectStore(BaseObjectStore):
    """Store objects as files under ``root/<bucket>/<path>``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    def _resolve(self, bucket: str, path: str) -> Path:
        return self._root / bucket / path

    async def download(self, bucket: str, path: str) -> bytes:
        p = self._resolve(bucket, path)
        if not p.is_file():
            raise ObjectNotFoundError(f"Object not found in storage: {bucket}/{path}")
        return p.read_bytes()

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes | str,
        content_type: str = "application/octet-stream",
    ) -> str:
        p = self._resolve(bucket, path)
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            p.write_text(data, encoding="utf-8")
        else:
            p.write_bytes(data)
        logger.debug("Stored %s/%s (%s)", bucket, path, content_type)
        return self.reference(bucket, path)

    async def exists(self, bucket: str, path: str) -> bool:
        return self._resolve(bucket, path).is_file()
