# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Filesystem Store - Backup blobs as files in one directory.

Blobs are written atomically (write to temp, then rename) so a crash
mid-write never leaves a truncated file under the final name.
"""

import os
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, List

import aiofiles
import aiofiles.os
import structlog

from docbackup.exceptions import StoreError
from docbackup.vault.base import BlobInfo, validate_key

logger = structlog.get_logger()

TEMP_SUFFIX = ".tmp"
READ_CHUNK_SIZE = 64 * 1024


class FileSystemBackupStore:
    """BackupStore backed by a local directory."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / validate_key(key)

    async def create(self, key: str, chunks: AsyncIterable[bytes]) -> int:
        path = self._path(key)
        temp_path = path.with_name(path.name + TEMP_SUFFIX)
        written = 0

        try:
            self.root.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
                    written += len(chunk)
                await f.flush()

            # Rename to final path (atomic on POSIX filesystems)
            os.replace(temp_path, path)

        except BaseException as e:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                logger.warning("temp_file_cleanup_failed", path=str(temp_path))
            if isinstance(e, OSError):
                raise StoreError(
                    f"Failed to write backup blob: {e}",
                    details={"key": key, "path": str(path)},
                ) from e
            raise

        logger.debug("backup_blob_written", key=key, path=str(path), size=written)
        return written

    async def open(self, key: str) -> AsyncIterator[bytes]:
        path = self._path(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                while True:
                    chunk = await f.read(READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        except FileNotFoundError as e:
            raise StoreError(
                f"Backup blob not found: {key}",
                details={"key": key, "path": str(path)},
            ) from e
        except OSError as e:
            raise StoreError(
                f"Failed to read backup blob: {e}",
                details={"key": key, "path": str(path)},
            ) from e

    async def list(self) -> List[BlobInfo]:
        if not self.root.exists():
            return []

        blobs: List[BlobInfo] = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_file() or entry.name.endswith(TEMP_SUFFIX):
                continue
            blobs.append(BlobInfo(key=entry.name, size_bytes=entry.stat().st_size))
        return blobs

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            # Already gone
            return
        except OSError as e:
            raise StoreError(
                f"Failed to delete backup blob: {e}",
                details={"key": key, "path": str(path)},
            ) from e

        logger.debug("backup_blob_deleted", key=key)
