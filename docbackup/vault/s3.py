# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup S3 Store - Backup blobs as objects in an S3 bucket.

A single put_object call is all-or-nothing, so the blob is buffered and
uploaded in one request. Snapshots are expected to fit in memory.
"""

from typing import Any, AsyncIterable, AsyncIterator, List

import structlog
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from docbackup.exceptions import StoreError
from docbackup.vault.base import BlobInfo, validate_key

logger = structlog.get_logger()

READ_CHUNK_SIZE = 64 * 1024


class S3BackupStore:
    """BackupStore backed by an S3 bucket and key prefix."""

    def __init__(
        self,
        bucket: str,
        *,
        prefix: str = "",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        session: Any = None,
    ) -> None:
        self.bucket = bucket
        self.prefix = prefix.rstrip("/") + "/" if prefix else ""
        self.region = region
        self.endpoint_url = endpoint_url
        self._session = session or get_session()

    def _client(self):
        return self._session.create_client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
        )

    def _object_key(self, key: str) -> str:
        return self.prefix + validate_key(key)

    async def create(self, key: str, chunks: AsyncIterable[bytes]) -> int:
        object_key = self._object_key(key)
        buffer = bytearray()
        async for chunk in chunks:
            buffer.extend(chunk)

        try:
            async with self._client() as s3_client:
                await s3_client.put_object(
                    Bucket=self.bucket,
                    Key=object_key,
                    Body=bytes(buffer),
                )
        except (BotoCoreError, ClientError) as e:
            raise StoreError(
                f"Failed to upload backup blob: {e}",
                details={"key": key, "bucket": self.bucket},
            ) from e

        logger.debug("backup_object_uploaded", bucket=self.bucket, key=object_key, size=len(buffer))
        return len(buffer)

    async def open(self, key: str) -> AsyncIterator[bytes]:
        object_key = self._object_key(key)
        try:
            async with self._client() as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket, Key=object_key)
                async with response["Body"] as stream:
                    while True:
                        chunk = await stream.read(READ_CHUNK_SIZE)
                        if not chunk:
                            break
                        yield chunk
        except (BotoCoreError, ClientError) as e:
            raise StoreError(
                f"Failed to read backup blob: {e}",
                details={"key": key, "bucket": self.bucket},
            ) from e

    async def list(self) -> List[BlobInfo]:
        blobs: List[BlobInfo] = []
        try:
            async with self._client() as s3_client:
                paginator = s3_client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
                    for obj in page.get("Contents", []):
                        blobs.append(
                            BlobInfo(
                                key=obj["Key"][len(self.prefix):],
                                size_bytes=obj["Size"],
                            )
                        )
        except (BotoCoreError, ClientError) as e:
            raise StoreError(
                f"Failed to list backup blobs: {e}",
                details={"bucket": self.bucket, "prefix": self.prefix},
            ) from e
        return blobs

    async def delete(self, key: str) -> None:
        object_key = self._object_key(key)
        try:
            async with self._client() as s3_client:
                await s3_client.delete_object(Bucket=self.bucket, Key=object_key)
        except (BotoCoreError, ClientError) as e:
            raise StoreError(
                f"Failed to delete backup blob: {e}",
                details={"key": key, "bucket": self.bucket},
            ) from e

        logger.debug("backup_object_deleted", bucket=self.bucket, key=object_key)
