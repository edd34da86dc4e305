# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Snapshot Builder - Read collections from the data source into a Snapshot.

A failing collection never aborts the build: it is recorded as degraded
(failure message, no documents) and the next collection is read.
"""

import asyncio
from datetime import datetime
from typing import Callable, List, Sequence

import structlog

from docbackup.config import BackupConfig, BackupKind
from docbackup.models import (
    BackupRecord,
    CollectionSnapshot,
    DocumentRecord,
    Snapshot,
    SnapshotMetadata,
)
from docbackup.source import DataSource, changed_since

logger = structlog.get_logger()

ProgressCallback = Callable[[float, str | None], None]


class SnapshotBuilder:
    """Assembles snapshots from a DataSource."""

    def __init__(
        self,
        source: DataSource,
        config: BackupConfig,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.source = source
        self.config = config
        self.on_progress = on_progress

    async def build(
        self,
        snapshot_id: str,
        created_at: datetime,
        kind: BackupKind,
        baseline: BackupRecord | None = None,
        collections: Sequence[str] | None = None,
    ) -> Snapshot:
        """
        Build a snapshot of the given collections.

        Args:
            snapshot_id: Id of the backup being built
            created_at: Snapshot timestamp
            kind: FULL or INCREMENTAL
            baseline: Newest full backup; required for INCREMENTAL
            collections: Collection names in traversal order (default: all configured)

        Returns:
            Snapshot whose collections appear in traversal order
        """
        if kind == BackupKind.INCREMENTAL and baseline is None:
            raise ValueError("incremental snapshot requires a baseline backup")

        names = list(collections) if collections is not None else self.config.collection_names
        since = baseline.created_at if kind == BackupKind.INCREMENTAL else None

        metadata = SnapshotMetadata(
            id=snapshot_id,
            kind=kind,
            created_at=created_at,
            based_on_id=baseline.id if since is not None else None,
            since=since,
            schema_version=self.config.schema_version,
            environment=self.config.environment,
        )

        semaphore = asyncio.Semaphore(self.config.max_concurrent_collections)
        total = len(names)
        done = 0

        async def read_one(name: str) -> CollectionSnapshot:
            nonlocal done
            async with semaphore:
                result = await self._read_collection(snapshot_id, name, since)
            done += 1
            if self.on_progress:
                self.on_progress(done / total if total else 1.0, name)
            return result

        # gather keeps results in traversal order whatever the completion order
        results: List[CollectionSnapshot] = await asyncio.gather(
            *(read_one(name) for name in names)
        )

        return Snapshot(
            metadata=metadata,
            collections={col.name: col for col in results},
        )

    async def _read_collection(
        self,
        snapshot_id: str,
        name: str,
        since: datetime | None,
    ) -> CollectionSnapshot:
        timeout = self.config.collection_timeout_seconds

        try:
            if timeout is not None:
                documents = await asyncio.wait_for(self.source.list_documents(name), timeout)
            else:
                documents = await self.source.list_documents(name)

            selected = list(documents)
            if since is not None:
                selected = self._filter_changed(name, selected, since)

        except asyncio.TimeoutError:
            error = f"Timed out reading collection after {timeout}s"
            logger.warning(
                "collection_backup_failed",
                backup_id=snapshot_id,
                collection=name,
                error=error,
            )
            return CollectionSnapshot.degraded(name, error)

        except Exception as e:
            logger.warning(
                "collection_backup_failed",
                backup_id=snapshot_id,
                collection=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return CollectionSnapshot.degraded(name, str(e) or type(e).__name__)

        logger.info(
            "collection_backed_up",
            backup_id=snapshot_id,
            collection=name,
            document_count=len(selected),
        )
        return CollectionSnapshot.complete(name, selected)

    def _filter_changed(
        self,
        name: str,
        documents: List[DocumentRecord],
        since: datetime,
    ) -> List[DocumentRecord]:
        spec = self.config.collection_spec(name)
        predicate = spec.change_detector if spec and spec.change_detector else changed_since
        return [doc for doc in documents if predicate(doc, since)]
