# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Backup Store - Durable, key-addressed blob storage.
"""

import re
from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, List, Protocol

from docbackup.exceptions import StoreError

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


@dataclass(frozen=True)
class BlobInfo:
    """A stored blob as reported by BackupStore.list()."""

    key: str
    size_bytes: int


class BackupStore(Protocol):
    """
    Protocol for backup blob storage.

    create() is all-or-nothing: a reader never observes a partially
    written blob under the final key.
    """

    async def create(self, key: str, chunks: AsyncIterable[bytes]) -> int:
        """
        Store a blob from a stream of chunks.

        Args:
            key: Blob key
            chunks: Async stream of byte chunks

        Returns:
            Number of bytes stored
        """
        ...

    def open(self, key: str) -> AsyncIterator[bytes]:
        """Stream a blob's bytes. Raises StoreError if the key is missing."""
        ...

    async def list(self) -> List[BlobInfo]:
        ...

    async def delete(self, key: str) -> None:
        ...


def validate_key(key: str) -> str:
    """
    Reject keys that could escape the store's namespace.

    Backup keys look like 'full_1700000000000.json.zst'.
    """
    if not isinstance(key, str) or not _KEY_PATTERN.match(key) or ".." in key:
        raise StoreError(f"Invalid backup key: {key!r}", details={"key": key})
    return key
