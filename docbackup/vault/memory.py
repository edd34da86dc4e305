# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Memory Store - In-process blob storage for tests and embedding.
"""

from typing import AsyncIterable, AsyncIterator, Dict, List

from docbackup.exceptions import StoreError
from docbackup.vault.base import BlobInfo, validate_key


class MemoryBackupStore:
    """BackupStore that keeps blobs in a dict. A blob appears only once fully received."""

    def __init__(self) -> None:
        self.blobs: Dict[str, bytes] = {}

    async def create(self, key: str, chunks: AsyncIterable[bytes]) -> int:
        validate_key(key)
        buffer = bytearray()
        async for chunk in chunks:
            buffer.extend(chunk)
        self.blobs[key] = bytes(buffer)
        return len(buffer)

    async def open(self, key: str) -> AsyncIterator[bytes]:
        try:
            data = self.blobs[key]
        except KeyError as e:
            raise StoreError(f"Backup blob not found: {key}", details={"key": key}) from e
        yield data

    async def list(self) -> List[BlobInfo]:
        return [BlobInfo(key=k, size_bytes=len(v)) for k, v in sorted(self.blobs.items())]

    async def delete(self, key: str) -> None:
        self.blobs.pop(key, None)
