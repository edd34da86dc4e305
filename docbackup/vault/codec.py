# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Storage Codec - Snapshot <-> stored bytes.

Write pipeline: JSON encoder -> 64KB chunks -> zstd compressor (optional)
-> SHA-256 -> backup store. Read runs the inverse. Callers see a plain
write/read contract; the streaming happens inside, with the CPU-bound
steps on a thread pool.

Compressed blobs carry the '.json.zst' suffix, plain ones '.json'.
"""

import asyncio
import hashlib
import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import AsyncIterator, Iterator

import structlog
import zstandard as zstd

from docbackup.exceptions import CorruptSnapshotError
from docbackup.models import Snapshot
from docbackup.vault.base import BackupStore

logger = structlog.get_logger()

# Default compression settings
DEFAULT_ZSTD_LEVEL = 19
CHUNK_SIZE = 64 * 1024

PLAIN_SUFFIX = ".json"
COMPRESSED_SUFFIX = ".json.zst"

_ENCODER = json.JSONEncoder(sort_keys=True, separators=(",", ":"), ensure_ascii=False)

# Thread pool for CPU-bound encoding and zstd work
_executor = ThreadPoolExecutor(max_workers=4)


@dataclass(frozen=True)
class StoredBlob:
    """What StorageCodec.write() produced."""

    key: str
    size_bytes: int
    checksum: str  # SHA-256 of the stored bytes


def storage_key_for(backup_id: str, compress: bool) -> str:
    return backup_id + (COMPRESSED_SUFFIX if compress else PLAIN_SUFFIX)


def is_compressed_key(key: str) -> bool:
    return key.endswith(".zst")


class StorageCodec:
    """Serializes snapshots into a BackupStore and reads them back."""

    def __init__(self, store: BackupStore, zstd_level: int = DEFAULT_ZSTD_LEVEL) -> None:
        self.store = store
        self.zstd_level = zstd_level

    async def write(self, snapshot: Snapshot, compress: bool) -> StoredBlob:
        """
        Serialize a snapshot and store it under '<snapshot id>.json[.zst]'.

        Encoding and compression run in a thread pool, one chunk at a time,
        so the event loop keeps serving other tasks during a large backup.

        Args:
            snapshot: Snapshot to persist
            compress: Pipe the encoded bytes through zstd

        Returns:
            StoredBlob with key, stored size and checksum

        Raises:
            StoreError: If the store rejects the blob
            TypeError / ValueError: If the snapshot holds non-JSON data
        """
        key = storage_key_for(snapshot.metadata.id, compress)
        digest = hashlib.sha256()
        loop = asyncio.get_running_loop()

        async def chunks() -> AsyncIterator[bytes]:
            compressor = zstd.ZstdCompressor(level=self.zstd_level).compressobj() if compress else None
            pieces = _encode_chunks(snapshot)
            while True:
                out = await loop.run_in_executor(_executor, _next_block, pieces, compressor)
                if out is None:
                    break
                if out:
                    digest.update(out)
                    yield out
            if compressor:
                tail = await loop.run_in_executor(_executor, compressor.flush)
                if tail:
                    digest.update(tail)
                    yield tail

        size = await self.store.create(key, chunks())
        checksum = digest.hexdigest()

        logger.info(
            "snapshot_written",
            key=key,
            size_bytes=size,
            compressed=compress,
            collections=len(snapshot.collections),
        )

        return StoredBlob(key=key, size_bytes=size, checksum=checksum)

    async def read(self, key: str, expected_checksum: str | None = None) -> Snapshot:
        """
        Load a snapshot from the store.

        Compression is detected from the key suffix.

        Args:
            key: Storage key returned by write()
            expected_checksum: SHA-256 recorded at write time, verified when given

        Returns:
            The deserialized Snapshot

        Raises:
            StoreError: If the blob cannot be read
            CorruptSnapshotError: If the bytes fail checksum, decompression or decoding
        """
        compressed = is_compressed_key(key)
        digest = hashlib.sha256()
        decompressor = zstd.ZstdDecompressor().decompressobj() if compressed else None
        payload = bytearray()
        loop = asyncio.get_running_loop()

        try:
            async for chunk in self.store.open(key):
                digest.update(chunk)
                if decompressor is not None:
                    chunk = await loop.run_in_executor(_executor, decompressor.decompress, chunk)
                payload.extend(chunk)
        except zstd.ZstdError as e:
            raise CorruptSnapshotError(
                f"Failed to decompress snapshot: {e}",
                details={"key": key},
            ) from e

        if decompressor is not None and not decompressor.eof:
            raise CorruptSnapshotError(
                "Compressed snapshot is truncated",
                details={"key": key},
            )

        actual = digest.hexdigest()
        if expected_checksum and actual != expected_checksum:
            raise CorruptSnapshotError(
                "Snapshot checksum mismatch",
                details={"key": key, "expected": expected_checksum, "actual": actual},
            )

        try:
            snapshot = await loop.run_in_executor(_executor, _decode_snapshot_sync, bytes(payload))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CorruptSnapshotError(
                f"Failed to decode snapshot: {e}",
                details={"key": key},
            ) from e

        logger.debug("snapshot_read", key=key, size_bytes=len(payload))
        return snapshot


def _encode_chunks(snapshot: Snapshot) -> Iterator[bytes]:
    """Yield the canonical JSON encoding of a snapshot in ~CHUNK_SIZE byte pieces."""
    buffer = bytearray()
    for piece in _ENCODER.iterencode(snapshot.to_dict()):
        buffer.extend(piece.encode("utf-8"))
        if len(buffer) >= CHUNK_SIZE:
            yield bytes(buffer)
            buffer.clear()
    if buffer:
        yield bytes(buffer)


def _next_block(pieces: Iterator[bytes], compressor) -> bytes | None:
    """Encode (and compress) the next chunk; None once the encoder is drained."""
    raw = next(pieces, None)
    if raw is None:
        return None
    return compressor.compress(raw) if compressor else raw


def _decode_snapshot_sync(payload: bytes) -> Snapshot:
    return Snapshot.from_dict(json.loads(payload.decode("utf-8")))
