# src/storage/store_factory.py
"""Factory: instantiate object store from configuration."""

from __future__ import annotations

from budgetdigest.config.settings import Settings
from budgetdigest.storage.base_object_store import BaseObjectStore
from budgetdigest.storage.local_store import LocalObjectStore


def create_object_store(settings: Settings) -> BaseObjectStore:
    """Create the object store selected by OBJECT_STORE.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.object_store == "local":
        return LocalObjectStore(settings.object_store_root)

    if settings.object_store == "s3":
        from budgetdigest.storage.s3_store import S3ObjectStore

        return S3ObjectStore(
            bucket=settings.s3_bucket,
            prefix=settings.s3_prefix,
            region=settings.s3_region or None,
            endpoint_url=settings.s3_endpoint_url or None,
        )

    raise ValueError(f"Unsupported object store: {settings.object_store!r}")
