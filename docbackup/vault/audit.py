# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Audit Trail - Append-only SQLite record of backups and recoveries.

The audit trail serves two purposes:
1. Audit trail - Complete history of every backup, deletion and recovery
2. Registry persistence - Backup history is reloaded from it at startup

Rows are never deleted; a removed backup is only marked with deleted_at.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import List, TypedDict

import aiosqlite
import structlog

from docbackup.exceptions import AuditError
from docbackup.models import BackupRecord, RecoveryRecord

logger = structlog.get_logger()


class RecoveryAuditRecord(TypedDict):
    """Audit row for a recovery."""

    id: str  # ULID
    backup_id: str
    started_at: str  # ISO 8601
    status: str
    total_documents_restored: int
    duration_ms: int
    dry_run: bool
    requested_by: str
    per_collection: dict


async def init_audit_db(db_path: Path) -> None:
    """
    Initialize the audit database schema.

    Creates tables if they don't exist. This is idempotent.

    Args:
        db_path: Path to the SQLite database file
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS backups (
                    id TEXT PRIMARY KEY,
                    record TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    size_bytes INTEGER NOT NULL,
                    recorded_at TEXT NOT NULL,
                    deleted_at TEXT
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS recoveries (
                    id TEXT PRIMARY KEY,
                    backup_id TEXT NOT NULL,
                    started_at TEXT NOT NULL,
                    status TEXT NOT NULL,
                    total_documents_restored INTEGER NOT NULL,
                    duration_ms INTEGER NOT NULL,
                    dry_run INTEGER NOT NULL,
                    requested_by TEXT NOT NULL,
                    per_collection TEXT NOT NULL
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_backups_created_at
                ON backups(created_at)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_recoveries_backup_id
                ON recoveries(backup_id)
            """)

            await db.commit()

        logger.info("audit_db_initialized", db_path=str(db_path))

    except (aiosqlite.Error, OSError) as e:
        raise AuditError(
            f"Failed to initialize audit database: {e}",
            details={"db_path": str(db_path)},
        ) from e


async def record_backup(db: aiosqlite.Connection, record: BackupRecord) -> None:
    """
    Record a completed backup.

    Args:
        db: SQLite database connection
        record: The backup record pushed to the registry
    """
    now = datetime.now(UTC).isoformat()

    await db.execute(
        """
        INSERT OR REPLACE INTO backups (id, record, kind, created_at, size_bytes, recorded_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            record.id,
            json.dumps(record.to_dict()),
            record.kind.value,
            record.created_at.isoformat(),
            record.size_bytes,
            now,
        ),
    )
    await db.commit()

    logger.debug("backup_audited", backup_id=record.id)


async def mark_backup_deleted(db: aiosqlite.Connection, backup_id: str) -> bool:
    """
    Mark a backup as deleted.

    Returns:
        True if a live record was updated
    """
    now = datetime.now(UTC).isoformat()

    cursor = await db.execute(
        "UPDATE backups SET deleted_at = ? WHERE id = ? AND deleted_at IS NULL",
        (now, backup_id),
    )
    await db.commit()

    return cursor.rowcount > 0


async def record_recovery(db: aiosqlite.Connection, record: RecoveryRecord) -> None:
    """
    Record a finished recovery.

    Args:
        db: SQLite database connection
        record: The recovery record pushed to the registry
    """
    await db.execute(
        """
        INSERT INTO recoveries
        (id, backup_id, started_at, status, total_documents_restored,
         duration_ms, dry_run, requested_by, per_collection)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.id,
            record.backup_id,
            record.started_at.isoformat(),
            record.status.value,
            record.total_documents_restored,
            record.duration_ms,
            int(record.dry_run),
            record.requested_by,
            json.dumps({
                name: result.to_dict()
                for name, result in record.per_collection_result.items()
            }),
        ),
    )
    await db.commit()

    logger.debug("recovery_audited", recovery_id=record.id, backup_id=record.backup_id)


async def load_backup_history(db: aiosqlite.Connection) -> List[BackupRecord]:
    """
    Load every backup that has not been deleted, most recent first.
    """
    records: List[BackupRecord] = []

    async with db.execute(
        """
        SELECT record FROM backups
        WHERE deleted_at IS NULL
        ORDER BY created_at DESC
        """
    ) as cursor:
        async for row in cursor:
            records.append(BackupRecord.from_dict(json.loads(row[0])))

    return records


async def list_recoveries(
    db: aiosqlite.Connection,
    limit: int = 50,
    backup_id: str | None = None,
) -> List[RecoveryAuditRecord]:
    """
    List recoveries, most recent first.

    Args:
        db: SQLite database connection
        limit: Maximum number of records to return
        backup_id: Optional filter by source backup
    """
    query = """
        SELECT id, backup_id, started_at, status, total_documents_restored,
               duration_ms, dry_run, requested_by, per_collection
        FROM recoveries
    """
    params: List = []

    if backup_id:
        query += " WHERE backup_id = ?"
        params.append(backup_id)

    query += " ORDER BY started_at DESC LIMIT ?"
    params.append(limit)

    records: List[RecoveryAuditRecord] = []

    async with db.execute(query, params) as cursor:
        async for row in cursor:
            records.append(
                RecoveryAuditRecord(
                    id=row[0],
                    backup_id=row[1],
                    started_at=row[2],
                    status=row[3],
                    total_documents_restored=row[4],
                    duration_ms=row[5],
                    dry_run=bool(row[6]),
                    requested_by=row[7],
                    per_collection=json.loads(row[8]),
                )
            )

    return records


async def get_audit_stats(db: aiosqlite.Connection) -> dict:
    """
    Get audit trail statistics.

    Returns:
        Dict with audit statistics
    """
    stats = {}

    async with db.execute("SELECT COUNT(*) FROM backups") as cursor:
        row = await cursor.fetchone()
        stats["total_backups"] = row[0] if row else 0

    async with db.execute(
        "SELECT COUNT(*) FROM backups WHERE deleted_at IS NOT NULL"
    ) as cursor:
        row = await cursor.fetchone()
        stats["deleted_backups"] = row[0] if row else 0

    async with db.execute(
        "SELECT kind, COUNT(*) FROM backups WHERE deleted_at IS NULL GROUP BY kind"
    ) as cursor:
        stats["live_backups_by_kind"] = {row[0]: row[1] async for row in cursor}

    async with db.execute(
        "SELECT SUM(size_bytes) FROM backups WHERE deleted_at IS NULL"
    ) as cursor:
        row = await cursor.fetchone()
        stats["live_bytes"] = row[0] or 0

    async with db.execute(
        "SELECT status, COUNT(*) FROM recoveries GROUP BY status"
    ) as cursor:
        stats["recoveries_by_status"] = {row[0]: row[1] async for row in cursor}

    return stats


class AuditTrail:
    """
    Fire-and-forget writer used by the coordinators.

    Each call opens its own connection. A failed write is logged as
    audit_write_failed and never raised: the operation being audited
    has already completed.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    async def backup_completed(self, record: BackupRecord) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await record_backup(db, record)
        except (aiosqlite.Error, OSError) as e:
            logger.error("audit_write_failed", event_type="backup", backup_id=record.id, error=str(e))

    async def backup_deleted(self, backup_id: str) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await mark_backup_deleted(db, backup_id)
        except (aiosqlite.Error, OSError) as e:
            logger.error("audit_write_failed", event_type="delete", backup_id=backup_id, error=str(e))

    async def recovery_completed(self, record: RecoveryRecord) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await record_recovery(db, record)
        except (aiosqlite.Error, OSError) as e:
            logger.error("audit_write_failed", event_type="recovery", recovery_id=record.id, error=str(e))

    async def load_history(self) -> List[BackupRecord]:
        async with aiosqlite.connect(self.db_path) as db:
            return await load_backup_history(db)

    async def recoveries(self, limit: int = 50, backup_id: str | None = None) -> List[RecoveryAuditRecord]:
        async with aiosqlite.connect(self.db_path) as db:
            return await list_recoveries(db, limit=limit, backup_id=backup_id)

    async def stats(self) -> dict:
        async with aiosqlite.connect(self.db_path) as db:
            return await get_audit_stats(db)
