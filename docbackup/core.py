# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Core - Engine wiring and the operational surface.

initialize_engine() builds one registry and one set of coordinators per
process and returns them as an EngineState. Every other function here
takes that state and is what a host application (HTTP layer, CLI, job
runner) calls.
"""

from datetime import UTC, datetime
from typing import Any, Callable, Sequence, TypedDict

import structlog
from ulid import ULID

from docbackup.backup import (
    BackupCoordinator,
    BackupOptions,
    IntegrityValidator,
    RecoveryCoordinator,
    RecoveryOptions,
    RetentionManager,
    parse_backup_kind,
)
from docbackup.config import BackupConfig, BackupKind, OperationKind, RetentionPolicy, SortOrder
from docbackup.exceptions import NotFoundError, ValidationError
from docbackup.models import (
    BackupListing,
    BackupRecord,
    CleanupResult,
    EngineStatus,
    RecoveryRecord,
    ValidationResult,
)
from docbackup.registry import BackupRegistry
from docbackup.source import DataSource
from docbackup.vault import (
    AuditTrail,
    BackupStore,
    FileSystemBackupStore,
    StorageCodec,
    init_audit_db,
)

logger = structlog.get_logger()

Clock = Callable[[], datetime]


class EngineState(TypedDict):
    """Runtime state for the backup & recovery engine."""

    config: BackupConfig
    clock: Clock
    registry: BackupRegistry
    source: DataSource
    store: BackupStore
    codec: StorageCodec
    retention: RetentionManager
    backups: BackupCoordinator
    recoveries: RecoveryCoordinator
    audit: AuditTrail | None
    scheduler: Any  # APScheduler AsyncIOScheduler when scheduled backups run


def _utc_now() -> datetime:
    return datetime.now(UTC)


async def initialize_engine(
    config: BackupConfig,
    source: DataSource,
    store: BackupStore | None = None,
    clock: Clock | None = None,
    registry: BackupRegistry | None = None,
) -> EngineState:
    """
    Initialize runtime state for backup and recovery.

    Creates the audit database when configured and reloads backup history
    from it, so the registry survives restarts.

    Args:
        config: Engine configuration
        source: Data source backed up and restored into
        store: Backup store (default: FileSystemBackupStore at config.backup_path)
        clock: Wall-clock source (default: UTC now)
        registry: Registry to use (default: a fresh one)

    Returns:
        Initialized EngineState dictionary
    """
    clock = clock or _utc_now
    registry = registry or BackupRegistry()
    store = store or FileSystemBackupStore(config.backup_path)
    codec = StorageCodec(store, zstd_level=config.compression_level)

    audit = None
    if config.audit_db_path is not None:
        await init_audit_db(config.audit_db_path)
        audit = AuditTrail(config.audit_db_path)
        history = await audit.load_history()
        registry.load_history(history)
        logger.info("backup_history_restored", backups=len(history))

    retention = RetentionManager(registry, store, config.retention, clock, audit)

    state = EngineState(
        config=config,
        clock=clock,
        registry=registry,
        source=source,
        store=store,
        codec=codec,
        retention=retention,
        backups=BackupCoordinator(config, registry, source, codec, retention, clock, audit),
        recoveries=RecoveryCoordinator(
            config, registry, source, codec, clock, audit, IntegrityValidator()
        ),
        audit=audit,
        scheduler=None,
    )

    if config.schedule_interval_hours is not None:
        from docbackup.scheduler import start_backup_schedule

        start_backup_schedule(state, config.schedule_interval_hours)

    logger.info(
        "engine_initialized",
        collections=config.collection_names,
        environment=config.environment,
        audit=audit is not None,
    )
    return state


async def shutdown_engine(state: EngineState) -> None:
    """Stop background work."""
    if state["scheduler"] is not None:
        from docbackup.scheduler import stop_backup_schedule

        stop_backup_schedule(state)

    logger.info("engine_shutdown_complete")


# ============================================================================
# Backups
# ============================================================================

async def create_backup(
    state: EngineState,
    kind: BackupKind | str = BackupKind.FULL,
    *,
    compress: bool | None = None,
    auto_cleanup: bool | None = None,
    collections: Sequence[str] | None = None,
    requested_by: str = "system",
) -> BackupRecord:
    """
    Create a full or incremental backup.

    Args:
        state: Engine state
        kind: "full" or "incremental"
        compress: Override config.compress
        auto_cleanup: Override config.auto_cleanup
        collections: Back up only these configured collections
        requested_by: Recorded on the current operation

    Returns:
        The completed BackupRecord
    """
    return await state["backups"].create_backup(
        kind,
        BackupOptions(
            compress=compress,
            auto_cleanup=auto_cleanup,
            collections=collections,
            requested_by=requested_by,
        ),
    )


def list_backups(
    state: EngineState,
    *,
    kind: BackupKind | str | None = None,
    limit: int | None = 50,
    sort: SortOrder | str = SortOrder.NEWEST,
) -> BackupListing:
    """
    List backups from the registry history.

    Args:
        state: Engine state
        kind: Only backups of this kind
        limit: Maximum number of records (None for all)
        sort: newest | oldest | largest | smallest

    Returns:
        BackupListing with the page, the filtered total and the overall total
    """
    history = list(state["registry"].backup_history)

    try:
        order = SortOrder(sort)
    except ValueError as e:
        raise ValidationError(
            f"Unknown sort order: {sort!r}",
            details={"sort": sort, "allowed": [o.value for o in SortOrder]},
        ) from e

    if limit is not None and limit < 0:
        raise ValidationError(f"limit must be >= 0, got {limit}", details={"limit": limit})

    filtered = history
    if kind is not None:
        wanted = parse_backup_kind(kind)
        filtered = [r for r in history if r.kind == wanted]

    if order == SortOrder.NEWEST:
        filtered = sorted(filtered, key=lambda r: r.created_at, reverse=True)
    elif order == SortOrder.OLDEST:
        filtered = sorted(filtered, key=lambda r: r.created_at)
    elif order == SortOrder.LARGEST:
        filtered = sorted(filtered, key=lambda r: r.size_bytes, reverse=True)
    else:
        filtered = sorted(filtered, key=lambda r: r.size_bytes)

    page = filtered if limit is None else filtered[:limit]
    return BackupListing(backups=page, total=len(filtered), total_all_kinds=len(history))


def get_backup_info(state: EngineState, backup_id: str) -> BackupRecord:
    """
    Look up one backup record.

    Raises:
        NotFoundError: Unknown backup id
    """
    record = state["registry"].find_backup(backup_id)
    if record is None:
        raise NotFoundError(f"Backup not found: {backup_id}", details={"backup_id": backup_id})
    return record


async def validate_backup(state: EngineState, backup_id: str) -> ValidationResult:
    """Load a backup and run the integrity check on it."""
    return await state["recoveries"].validate(backup_id)


async def delete_backup(
    state: EngineState,
    backup_id: str,
    *,
    requested_by: str = "system",
) -> BackupRecord:
    """
    Delete one backup: first its blob, then its record.

    If the blob cannot be deleted the record stays and StoreError propagates.

    Returns:
        The removed BackupRecord
    """
    registry = state["registry"]

    with registry.exclusive(OperationKind.DELETE, str(ULID()), state["clock"](), requested_by):
        record = get_backup_info(state, backup_id)
        await state["store"].delete(record.storage_key)
        registry.remove_backup(backup_id)

        logger.info(
            "backup_deleted",
            backup_id=backup_id,
            storage_key=record.storage_key,
            requested_by=requested_by,
        )

        if state["audit"]:
            await state["audit"].backup_deleted(backup_id)

        return record


async def cleanup(
    state: EngineState,
    policy: RetentionPolicy | None = None,
    *,
    dry_run: bool = False,
    requested_by: str = "system",
) -> CleanupResult:
    """
    Apply a retention policy (default: the configured one).

    A dry run reports what would be deleted and does not take the operation slot.
    """
    retention = state["retention"]
    if dry_run:
        return await retention.cleanup(policy, dry_run=True)

    with state["registry"].exclusive(
        OperationKind.CLEANUP, str(ULID()), state["clock"](), requested_by
    ):
        return await retention.cleanup(policy)


# ============================================================================
# Recovery
# ============================================================================

async def recover(
    state: EngineState,
    backup_id: str,
    *,
    dry_run: bool = False,
    collections: Sequence[str] | None = None,
    force: bool = False,
    requested_by: str = "system",
) -> RecoveryRecord:
    """
    Restore a backup into the data source.

    Args:
        state: Engine state
        backup_id: Backup to restore
        dry_run: Count what would be restored without writing
        collections: Restore only these collections (unknown names are ignored;
            a filter matching no collection of the snapshot is a ValidationError)
        force: Skip the integrity check
        requested_by: Recorded on the recovery record

    Returns:
        RecoveryRecord
    """
    return await state["recoveries"].recover(
        backup_id,
        RecoveryOptions(
            dry_run=dry_run,
            collections=collections,
            force=force,
            requested_by=requested_by,
        ),
    )


# ============================================================================
# Status
# ============================================================================

def _rate(successful: int, total: int) -> float | None:
    return round(successful / total * 100, 2) if total else None


def get_status(state: EngineState, recent: int = 5) -> EngineStatus:
    """
    Summarize the engine for operators.

    Success rates are percentages, None until the first attempt.
    """
    view = state["registry"].view()
    history = view.backup_history
    counters = view.counters
    created = [r.created_at for r in history]

    return EngineStatus(
        in_progress=view.current_operation is not None,
        current_operation=view.current_operation,
        last_backup=view.last_backup,
        counters=counters,
        total_backups=len(history),
        full_backups=sum(1 for r in history if r.kind == BackupKind.FULL),
        incremental_backups=sum(1 for r in history if r.kind == BackupKind.INCREMENTAL),
        total_size_bytes=sum(r.size_bytes for r in history),
        oldest_backup=min(created) if created else None,
        newest_backup=max(created) if created else None,
        backup_success_rate=_rate(counters.successful_backups, counters.total_backups),
        recovery_success_rate=_rate(counters.successful_recoveries, counters.total_recoveries),
        recent_backups=list(history[:recent]),
        recent_recoveries=list(view.recovery_history[:recent]),
    )
