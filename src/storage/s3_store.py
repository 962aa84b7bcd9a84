# src/storage/s3_store.py
"""S3-compatible object store (OBJECT_STORE=s3).

Supports AWS S3, MinIO, and other S3-compatible storage. Logical buckets
become key prefixes inside the single configured S3 bucket.
Requires 'boto3' package: pip install boto3.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from budgetdigest.storage.base_object_store import BaseObjectStore, ObjectNotFoundError

logger = logging.getLogger(__name__)


class S3ObjectStore(BaseObjectStore):
    """Read and write objects in S3-compatible storage."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "budgetdigest/",
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        """Initialize S3 store.

        Args:
            bucket: S3 bucket name.
            prefix: Key prefix for all objects (e.g. "budgetdigest/").
            region: AWS region (optional, uses boto3 default if not set).
            endpoint_url: Custom endpoint for MinIO/compatible storage.
            client: Pre-built boto3 S3 client (tests).
        """
        if client is None:
            try:
                import boto3
            except ImportError as e:
                raise ImportError(
                    "boto3 package required for S3 object store: pip install boto3"
                ) from e

            kwargs: dict = {}
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)

        self._s3 = client
        self._bucket = bucket
        self._prefix = prefix.rstrip("/") + "/" if prefix else ""

    def _key(self, bucket: str, path: str) -> str:
        return f"{self._prefix}{bucket}/{path}"

    async def download(self, bucket: str, path: str) -> bytes:
        key = self._key(bucket, path)
        try:
            response = await asyncio.to_thread(
                self._s3.get_object, Bucket=self._bucket, Key=key
            )
        except self._s3.exceptions.NoSuchKey as e:
            raise ObjectNotFoundError(f"Object not found in storage: {bucket}/{path}") from e
        return response["Body"].read()

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes | str,
        content_type: str = "application/octet-stream",
    ) -> str:
        key = self._key(bucket, path)
        body = data.encode("utf-8") if isinstance(data, str) else data
        await asyncio.to_thread(
            self._s3.put_object,
            Bucket=self._bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )
        logger.debug("S3 write: s3://%s/%s (%d bytes)", self._bucket, key, len(body))
        return self.reference(bucket, path)

    async def exists(self, bucket: str, path: str) -> bool:
        key = self._key(bucket, path)
        try:
            await asyncio.to_thread(self._s3.head_object, Bucket=self._bucket, Key=key)
        except self._s3.exceptions.ClientError:
            return False
        return True
