# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Recovery Coordinator - Restore collections from a stored snapshot.

Protocol:
1. Take the single-flight slot
2. Load the snapshot (checksum verified when recorded)
3. Validate it unless forced; an invalid snapshot is never written back
4. Replay each selected collection, skipping degraded ones
5. Record the outcome

Writes are full overwrites by document id, so replaying the same snapshot
twice leaves the data source in the same state as replaying it once.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Sequence

import structlog
from ulid import ULID

from docbackup.backup.manager import elapsed_ms
from docbackup.backup.validator import IntegrityValidator
from docbackup.config import BackupConfig, OperationKind
from docbackup.exceptions import (
    NotFoundError,
    RecoveryFailed,
    ValidationError,
)
from docbackup.models import (
    BackupRecord,
    CollectionRecoveryResult,
    CollectionSnapshot,
    CollectionStatus,
    RecoveryRecord,
    RecoveryStatus,
    Snapshot,
    ValidationResult,
)
from docbackup.registry import BackupRegistry
from docbackup.source import DataSource, SupportsBatchWrite
from docbackup.vault.audit import AuditTrail
from docbackup.vault.codec import StorageCodec

logger = structlog.get_logger()

# Documents per put_documents call on sources that support batch writes
BATCH_SIZE = 500


@dataclass(frozen=True)
class RecoveryOptions:
    """Options for one recovery."""

    dry_run: bool = False
    collections: Sequence[str] | None = None
    force: bool = False
    requested_by: str = "system"


class RecoveryCoordinator:
    """Orchestrates restores from stored snapshots."""

    def __init__(
        self,
        config: BackupConfig,
        registry: BackupRegistry,
        source: DataSource,
        codec: StorageCodec,
        clock: Callable[[], datetime],
        audit: AuditTrail | None = None,
        validator: IntegrityValidator | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.source = source
        self.codec = codec
        self.clock = clock
        self.audit = audit
        self.validator = validator or IntegrityValidator()

    def find_record(self, backup_id: str) -> BackupRecord:
        record = self.registry.find_backup(backup_id)
        if record is None:
            raise NotFoundError(
                f"Backup not found: {backup_id}",
                details={"backup_id": backup_id},
            )
        return record

    async def load_snapshot(self, record: BackupRecord) -> Snapshot:
        return await self.codec.read(record.storage_key, record.checksum)

    async def validate(self, backup_id: str) -> ValidationResult:
        """
        Load a backup and run the integrity check without restoring anything.

        A snapshot that cannot be read is reported as invalid rather than raised.
        """
        record = self.find_record(backup_id)
        try:
            snapshot = await self.load_snapshot(record)
        except Exception as e:
            return ValidationResult(valid=False, issues=(str(e),))
        return self.validator.validate(snapshot)

    async def recover(
        self,
        backup_id: str,
        options: RecoveryOptions | None = None,
    ) -> RecoveryRecord:
        """
        Restore a backup into the data source.

        Args:
            backup_id: Id of a backup in the registry history
            options: dry_run, collection filter, force, requested_by

        Returns:
            RecoveryRecord (status PARTIAL if any collection failed or was skipped)

        Raises:
            ConflictError: Another operation holds the slot
            NotFoundError: Unknown backup id
            ValidationError: Snapshot failed its integrity check, or the
                collection filter matches nothing in it (nothing written)
            RecoveryFailed: Snapshot could not be read or decoded, for any reason
        """
        options = options or RecoveryOptions()
        recovery_id = str(ULID())
        started_at = self.clock()

        with self.registry.exclusive(
            OperationKind.RECOVERY,
            recovery_id,
            started_at,
            options.requested_by,
        ):
            logger.info(
                "recovery_started",
                recovery_id=recovery_id,
                backup_id=backup_id,
                dry_run=options.dry_run,
                force=options.force,
                requested_by=options.requested_by,
            )

            try:
                record = self.find_record(backup_id)
            except NotFoundError:
                self.registry.record_recovery_failure()
                logger.error("recovery_failed", recovery_id=recovery_id, backup_id=backup_id, error="not found")
                raise

            try:
                snapshot = await self.load_snapshot(record)
            except Exception as e:
                self.registry.record_recovery_failure()
                logger.error("recovery_failed", recovery_id=recovery_id, backup_id=backup_id, error=str(e))
                raise RecoveryFailed(
                    recovery_id,
                    backup_id,
                    f"Failed to load snapshot: {e}",
                    details={"per_collection_result": {}, "error_type": type(e).__name__},
                ) from e

            if not options.force:
                validation = self.validator.validate(snapshot)
                if not validation.valid:
                    self.registry.record_recovery_failure()
                    logger.error(
                        "recovery_failed",
                        recovery_id=recovery_id,
                        backup_id=backup_id,
                        issues=list(validation.issues),
                    )
                    raise ValidationError(
                        f"Snapshot {backup_id} failed integrity check",
                        details={"backup_id": backup_id, "issues": list(validation.issues)},
                    )

            selected = self._select_collections(recovery_id, snapshot, options.collections)
            if not selected:
                self.registry.record_recovery_failure()
                logger.error(
                    "recovery_failed",
                    recovery_id=recovery_id,
                    backup_id=backup_id,
                    error="no collections selected",
                )
                raise ValidationError(
                    "Collection filter selects no collection of the snapshot",
                    details={
                        "backup_id": backup_id,
                        "requested": list(options.collections or ()),
                        "available": sorted(snapshot.collections),
                    },
                )

            results = await self._restore_all(recovery_id, selected, options.dry_run)

            statuses = [result.status for result in results.values()]
            status = (
                RecoveryStatus.COMPLETED
                if all(s == CollectionStatus.SUCCESS for s in statuses)
                else RecoveryStatus.PARTIAL
            )

            recovery = RecoveryRecord(
                id=recovery_id,
                backup_id=backup_id,
                started_at=started_at,
                per_collection_result=results,
                total_documents_restored=sum(r.restored_count for r in results.values()),
                status=status,
                duration_ms=elapsed_ms(started_at, self.clock()),
                dry_run=options.dry_run,
                requested_by=options.requested_by,
            )
            self.registry.record_recovery(recovery)

            logger.info(
                "recovery_completed",
                recovery_id=recovery_id,
                backup_id=backup_id,
                status=status.value,
                documents_restored=recovery.total_documents_restored,
                dry_run=options.dry_run,
                duration_ms=recovery.duration_ms,
            )

            if self.audit:
                await self.audit.recovery_completed(recovery)

            return recovery

    def _select_collections(
        self,
        recovery_id: str,
        snapshot: Snapshot,
        requested: Sequence[str] | None,
    ) -> List[CollectionSnapshot]:
        if requested is None:
            return list(snapshot.collections.values())

        wanted = set(requested)
        unknown = sorted(wanted - set(snapshot.collections))
        if unknown:
            logger.warning(
                "recovery_collections_not_in_snapshot",
                recovery_id=recovery_id,
                collections=unknown,
            )
        return [col for name, col in snapshot.collections.items() if name in wanted]

    async def _restore_all(
        self,
        recovery_id: str,
        collections: List[CollectionSnapshot],
        dry_run: bool,
    ) -> Dict[str, CollectionRecoveryResult]:
        semaphore = asyncio.Semaphore(self.config.max_concurrent_collections)
        total = len(collections)
        done = 0

        async def restore_one(col: CollectionSnapshot) -> CollectionRecoveryResult:
            nonlocal done
            async with semaphore:
                result = await self._restore_collection(recovery_id, col, dry_run)
            done += 1
            self.registry.report_progress(done / total, col.name)
            return result

        results = await asyncio.gather(*(restore_one(col) for col in collections))
        return {col.name: result for col, result in zip(collections, results)}

    async def _restore_collection(
        self,
        recovery_id: str,
        col: CollectionSnapshot,
        dry_run: bool,
    ) -> CollectionRecoveryResult:
        if col.is_degraded:
            logger.warning(
                "collection_skipped_degraded",
                recovery_id=recovery_id,
                collection=col.name,
                failure=col.failure,
            )
            return CollectionRecoveryResult(
                restored_count=0,
                status=CollectionStatus.SKIPPED,
                error=col.failure,
            )

        if dry_run:
            return CollectionRecoveryResult(
                restored_count=col.document_count,
                status=CollectionStatus.SUCCESS,
            )

        written = 0

        async def replay() -> None:
            nonlocal written
            if isinstance(self.source, SupportsBatchWrite):
                for start in range(0, len(col.documents), BATCH_SIZE):
                    batch = [(doc.id, doc.data) for doc in col.documents[start:start + BATCH_SIZE]]
                    await self.source.put_documents(col.name, batch)
                    written += len(batch)
                return
            for doc in col.documents:
                await self.source.put_document(col.name, doc.id, doc.data)
                written += 1

        timeout = self.config.collection_timeout_seconds
        try:
            if timeout is not None:
                await asyncio.wait_for(replay(), timeout)
            else:
                await replay()
        except asyncio.TimeoutError:
            error = f"Timed out restoring collection after {timeout}s"
            logger.error(
                "collection_restore_failed",
                recovery_id=recovery_id,
                collection=col.name,
                restored=written,
                error=error,
            )
            return CollectionRecoveryResult(written, CollectionStatus.FAILED, error)
        except Exception as e:
            logger.error(
                "collection_restore_failed",
                recovery_id=recovery_id,
                collection=col.name,
                restored=written,
                error=str(e),
                error_type=type(e).__name__,
            )
            return CollectionRecoveryResult(
                written, CollectionStatus.FAILED, str(e) or type(e).__name__
            )

        logger.info(
            "collection_restored",
            recovery_id=recovery_id,
            collection=col.name,
            restored=written,
        )
        return CollectionRecoveryResult(written, CollectionStatus.SUCCESS)
