# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Backup Coordinator - Full and incremental backup creation.

Flow for one backup:
1. Take the single-flight slot (ConflictError if busy, no queuing)
2. Build the snapshot (degraded collections are data, not errors)
3. Stream it through the storage codec into the backup store
4. Push a BackupRecord to the registry and the audit trail
5. Optionally apply retention

Counters are updated before any BackupFailed propagates.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

import structlog

from docbackup.config import BackupConfig, BackupKind, OperationKind
from docbackup.errors import explain_unknown_backup_kind
from docbackup.exceptions import BackupFailed, ValidationError
from docbackup.models import BackupRecord, BackupRecordStatus, Snapshot
from docbackup.registry import BackupRegistry
from docbackup.backup.retention import RetentionManager
from docbackup.backup.snapshot import SnapshotBuilder
from docbackup.source import DataSource
from docbackup.vault.audit import AuditTrail
from docbackup.vault.codec import StorageCodec

logger = structlog.get_logger()


@dataclass(frozen=True)
class BackupOptions:
    """Per-call overrides; None falls back to the configuration."""

    compress: bool | None = None
    auto_cleanup: bool | None = None
    collections: Sequence[str] | None = None
    requested_by: str = "system"


def parse_backup_kind(kind: BackupKind | str) -> BackupKind:
    """
    Coerce a caller-supplied kind.

    Raises:
        ValidationError: For anything other than 'full' or 'incremental'
    """
    if isinstance(kind, BackupKind):
        return kind
    try:
        return BackupKind(str(kind).lower())
    except ValueError as e:
        raise ValidationError(
            explain_unknown_backup_kind(kind),
            details={"kind": kind},
        ) from e


def elapsed_ms(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() * 1000))


class BackupCoordinator:
    """Orchestrates backup creation."""

    def __init__(
        self,
        config: BackupConfig,
        registry: BackupRegistry,
        source: DataSource,
        codec: StorageCodec,
        retention: RetentionManager,
        clock: Callable[[], datetime],
        audit: AuditTrail | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.source = source
        self.codec = codec
        self.retention = retention
        self.clock = clock
        self.audit = audit

    def _resolve_collections(self, requested: Sequence[str] | None) -> list:
        if requested is None:
            return self.config.collection_names

        names = list(requested)
        unknown = [n for n in names if n not in self.config.collection_names]
        if unknown or not names:
            raise ValidationError(
                "Backup collections must be a non-empty subset of the configured collections",
                details={"unknown": unknown, "configured": self.config.collection_names},
            )
        # Keep configured traversal order
        return [n for n in self.config.collection_names if n in names]

    def _next_backup_id(self, kind: BackupKind, at: datetime) -> str:
        existing = {record.id for record in self.registry.backup_history}
        millis = int(at.timestamp() * 1000)
        while f"{kind.value}_{millis}" in existing:
            millis += 1
        return f"{kind.value}_{millis}"

    async def create_backup(
        self,
        kind: BackupKind | str,
        options: BackupOptions | None = None,
    ) -> BackupRecord:
        """
        Create a backup.

        An incremental backup captures changes since the newest full backup;
        with no full backup in history it is downgraded to full.

        Args:
            kind: BackupKind.FULL / INCREMENTAL (or their string values)
            options: Per-call overrides

        Returns:
            The BackupRecord pushed to the registry

        Raises:
            ValidationError: Unknown kind or collections (before the slot is taken)
            ConflictError: Another operation holds the slot
            BackupFailed: Snapshot could not be serialized or stored
        """
        options = options or BackupOptions()
        requested_kind = parse_backup_kind(kind)
        collections = self._resolve_collections(options.collections)
        compress = self.config.compress if options.compress is None else options.compress
        auto_cleanup = (
            self.config.auto_cleanup if options.auto_cleanup is None else options.auto_cleanup
        )

        started_at = self.clock()
        # Incrementals chain to the newest full backup, never to each other
        baseline = self.registry.latest_backup(BackupKind.FULL)
        effective_kind = requested_kind
        if requested_kind == BackupKind.INCREMENTAL and baseline is None:
            effective_kind = BackupKind.FULL
        backup_id = self._next_backup_id(effective_kind, started_at)

        with self.registry.exclusive(
            OperationKind(requested_kind.value),
            backup_id,
            started_at,
            options.requested_by,
        ):
            if effective_kind != requested_kind:
                logger.info("incremental_downgraded_to_full", backup_id=backup_id)

            logger.info(
                "backup_started",
                backup_id=backup_id,
                kind=effective_kind.value,
                collections=collections,
                compress=compress,
                requested_by=options.requested_by,
            )

            builder = SnapshotBuilder(
                self.source,
                self.config,
                on_progress=lambda p, name: self.registry.report_progress(p * 0.9, name),
            )
            snapshot: Snapshot | None = None

            try:
                snapshot = await builder.build(
                    backup_id,
                    started_at,
                    effective_kind,
                    baseline=baseline if effective_kind == BackupKind.INCREMENTAL else None,
                    collections=collections,
                )
                blob = await self.codec.write(snapshot, compress)

            except Exception as e:
                self.registry.record_backup_failure()
                details = {"kind": effective_kind.value, "error_type": type(e).__name__}
                if snapshot is not None:
                    details["collections_built"] = [
                        name for name, col in snapshot.collections.items() if not col.is_degraded
                    ]
                logger.error("backup_failed", backup_id=backup_id, error=str(e), **details)
                raise BackupFailed(backup_id, f"Backup failed: {e}", details=details) from e

            self.registry.report_progress(1.0, None)

            record = BackupRecord(
                id=backup_id,
                kind=effective_kind,
                created_at=started_at,
                storage_key=blob.key,
                size_bytes=blob.size_bytes,
                collection_names=frozenset(snapshot.collections),
                status=BackupRecordStatus.COMPLETED,
                duration_ms=elapsed_ms(started_at, self.clock()),
                based_on_id=snapshot.metadata.based_on_id,
                checksum=blob.checksum,
                degraded_collections=frozenset(snapshot.degraded_collections),
            )
            self.registry.record_backup(record)

            logger.info(
                "backup_completed",
                backup_id=backup_id,
                kind=effective_kind.value,
                size_bytes=record.size_bytes,
                documents=snapshot.total_documents,
                degraded_collections=sorted(record.degraded_collections),
                duration_ms=record.duration_ms,
            )

            if self.audit:
                await self.audit.backup_completed(record)

            if auto_cleanup:
                try:
                    await self.retention.cleanup()
                except Exception as e:
                    # The backup itself is already durable and recorded
                    logger.error("retention_cleanup_failed", backup_id=backup_id, error=str(e))

            return record
