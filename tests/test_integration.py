# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Integration tests for docbackup.

Tests the complete workflow with the storage codec, the filesystem, memory
and S3 stores, the SQLite audit trail and data source, configuration
helpers and the scheduler.
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from docbackup.config import BackupKind, RetentionPolicy
from docbackup.core import (
    create_backup,
    delete_backup,
    get_backup_info,
    get_status,
    initialize_engine,
    list_backups,
    recover,
    shutdown_engine,
    validate_backup,
)
from docbackup.exceptions import (
    ConfigurationError,
    CorruptSnapshotError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from docbackup.models import (
    CollectionSnapshot,
    RecoveryStatus,
    Snapshot,
    SnapshotMetadata,
)
from docbackup.registry import BackupRegistry
from docbackup.source import SqliteDataSource
from docbackup.vault import FileSystemBackupStore, MemoryBackupStore, StorageCodec

from tests.conftest import START, make_doc


def sample_snapshot(snapshot_id: str = "full_1") -> Snapshot:
    return Snapshot(
        metadata=SnapshotMetadata(
            id=snapshot_id,
            kind=BackupKind.FULL,
            created_at=START,
            environment="test",
        ),
        collections={
            "products": CollectionSnapshot.complete(
                "products",
                [
                    make_doc("p1", name="Clavier", tags=["azerty", "sans fil"]),
                    make_doc("p2", name="Écran 27\"", price=229.5, stock=None),
                ],
            ),
            "categories": CollectionSnapshot.degraded("categories", "connection refused"),
        },
    )


# ============================================================================
# Storage codec
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("compress", [True, False])
async def test_codec_round_trip_on_filesystem(temp_dir: Path, compress: bool):
    """Snapshots read back equal to what was written, compressed or not."""
    codec = StorageCodec(FileSystemBackupStore(temp_dir / "backups"), zstd_level=3)
    snapshot = sample_snapshot()

    blob = await codec.write(snapshot, compress=compress)

    assert blob.key == ("full_1.json.zst" if compress else "full_1.json")
    assert (temp_dir / "backups" / blob.key).stat().st_size == blob.size_bytes
    assert len(blob.checksum) == 64

    restored = await codec.read(blob.key, blob.checksum)
    assert restored == snapshot
    assert list(restored.collections) == ["products", "categories"]


@pytest.mark.asyncio
async def test_codec_compression_shrinks_repetitive_snapshots():
    store = MemoryBackupStore()
    codec = StorageCodec(store)
    docs = [make_doc(f"p{i}", description="the same long description " * 10) for i in range(200)]
    snapshot = Snapshot(
        metadata=SnapshotMetadata(id="full_2", kind=BackupKind.FULL, created_at=START),
        collections={"products": CollectionSnapshot.complete("products", docs)},
    )

    plain = await codec.write(snapshot, compress=False)
    packed = await StorageCodec(store).write(
        Snapshot(
            metadata=SnapshotMetadata(id="full_3", kind=BackupKind.FULL, created_at=START),
            collections=snapshot.collections,
        ),
        compress=True,
    )

    assert packed.size_bytes < plain.size_bytes / 5


@pytest.mark.asyncio
async def test_codec_detects_checksum_mismatch():
    store = MemoryBackupStore()
    codec = StorageCodec(store)
    blob = await codec.write(sample_snapshot(), compress=False)

    with pytest.raises(CorruptSnapshotError):
        await codec.read(blob.key, "0" * 64)


@pytest.mark.asyncio
async def test_codec_rejects_truncated_compressed_blob():
    store = MemoryBackupStore()
    codec = StorageCodec(store)
    blob = await codec.write(sample_snapshot(), compress=True)
    store.blobs[blob.key] = store.blobs[blob.key][: blob.size_bytes // 2]

    with pytest.raises(CorruptSnapshotError):
        await codec.read(blob.key)


@pytest.mark.asyncio
async def test_codec_rejects_undecodable_json():
    store = MemoryBackupStore()
    store.blobs["full_9.json"] = b'{"metadata": {"id": "full_9"}}'

    with pytest.raises(CorruptSnapshotError):
        await StorageCodec(store).read("full_9.json")


@pytest.mark.asyncio
async def test_codec_missing_blob_raises_store_error():
    with pytest.raises(StoreError):
        await StorageCodec(MemoryBackupStore()).read("full_404.json.zst")


@pytest.mark.asyncio
async def test_codec_keeps_event_loop_responsive():
    """Other tasks keep running while a large snapshot is encoded and decoded."""
    store = MemoryBackupStore()
    codec = StorageCodec(store, zstd_level=3)
    docs = [make_doc(f"p{i}", description=f"item {i} " * 50) for i in range(2000)]
    snapshot = Snapshot(
        metadata=SnapshotMetadata(id="full_4", kind=BackupKind.FULL, created_at=START),
        collections={"products": CollectionSnapshot.complete("products", docs)},
    )
    ticks = 0
    stop = asyncio.Event()

    async def ticker():
        nonlocal ticks
        while not stop.is_set():
            ticks += 1
            await asyncio.sleep(0)

    task = asyncio.create_task(ticker())
    blob = await codec.write(snapshot, compress=True)
    ticks_during_write = ticks
    restored = await codec.read(blob.key, blob.checksum)
    stop.set()
    await task

    assert ticks_during_write > 0
    assert ticks > ticks_during_write
    assert restored.collections["products"].document_count == 2000


# ============================================================================
# Backup stores
# ============================================================================

@pytest.mark.asyncio
async def test_filesystem_store_list_and_delete(temp_dir: Path):
    store = FileSystemBackupStore(temp_dir / "backups")

    async def stream(payload: bytes):
        yield payload

    await store.create("full_1.json", stream(b"{}"))
    await store.create("full_2.json.zst", stream(b"abcdef"))

    blobs = await store.list()
    assert [(b.key, b.size_bytes) for b in blobs] == [("full_1.json", 2), ("full_2.json.zst", 6)]

    await store.delete("full_1.json")
    await store.delete("full_1.json")  # already gone is not an error

    assert [b.key for b in await store.list()] == ["full_2.json.zst"]


@pytest.mark.asyncio
async def test_store_rejects_path_escaping_keys(temp_dir: Path):
    store = FileSystemBackupStore(temp_dir / "backups")

    for key in ["../etc/passwd", "a/b.json", "", ".hidden"]:
        with pytest.raises(StoreError):
            await store.delete(key)


@pytest.mark.asyncio
async def test_s3_store_uses_prefix_and_wraps_client_errors():
    """S3 store talks to the bucket under its prefix and maps botocore errors."""
    from unittest.mock import AsyncMock, MagicMock

    from botocore.exceptions import ClientError

    from docbackup.vault import S3BackupStore

    client = AsyncMock()
    session = MagicMock()
    session.create_client.return_value.__aenter__.return_value = client

    store = S3BackupStore("my-backups", prefix="prod/docs", session=session)

    async def stream():
        yield b"abc"
        yield b"def"

    size = await store.create("full_1.json", stream())

    assert size == 6
    client.put_object.assert_awaited_once_with(
        Bucket="my-backups",
        Key="prod/docs/full_1.json",
        Body=b"abcdef",
    )

    client.delete_object.side_effect = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}},
        "DeleteObject",
    )
    with pytest.raises(StoreError):
        await store.delete("full_1.json")


# ============================================================================
# Incremental backups
# ============================================================================

@pytest.mark.asyncio
async def test_incremental_contains_only_changed_documents(engine, source, clock):
    full = await create_backup(engine, "full")

    clock.advance(hours=1)
    await source.put_document("products", "p2", {"name": "Mouse", "price": 15})
    clock.advance(hours=1)

    incremental = await create_backup(engine, "incremental")

    assert incremental.kind == BackupKind.INCREMENTAL
    assert incremental.based_on_id == full.id

    snapshot = await engine["codec"].read(incremental.storage_key, incremental.checksum)
    assert snapshot.metadata.since == full.created_at
    assert [d.id for d in snapshot.collections["products"].documents] == ["p2"]
    assert snapshot.collections["categories"].document_count == 0


@pytest.mark.asyncio
async def test_incremental_without_baseline_downgrades_to_full(engine):
    record = await create_backup(engine, "incremental")

    assert record.kind == BackupKind.FULL
    assert record.id.startswith("full_")
    assert record.based_on_id is None


@pytest.mark.asyncio
async def test_custom_change_detector_overrides_timestamps(source, store, clock, temp_dir):
    from docbackup.builder import create_config
    from docbackup.config import CollectionSpec

    config = create_config(
        [
            CollectionSpec("products", change_detector=lambda doc, since: doc.data.get("price", 0) > 100),
            "categories",
        ],
        backup_path=temp_dir,
        auto_cleanup=False,
    )
    state = await initialize_engine(config, source, store=store, clock=clock)

    await create_backup(state, "full")
    clock.advance(minutes=1)
    incremental = await create_backup(state, "incremental")

    snapshot = await state["codec"].read(incremental.storage_key)
    assert [d.id for d in snapshot.collections["products"].documents] == ["p3"]


@pytest.mark.asyncio
async def test_backup_of_collection_subset(engine):
    record = await create_backup(engine, "full", collections=["categories"])

    assert record.collection_names == frozenset({"categories"})

    with pytest.raises(ValidationError):
        await create_backup(engine, "full", collections=["orders"])


@pytest.mark.asyncio
async def test_concurrent_collections_keep_traversal_order(source, store, clock, test_config):
    config = test_config.with_updates(max_concurrent_collections=4)
    state = await initialize_engine(config, source, store=store, clock=clock)

    record = await create_backup(state, "full")
    snapshot = await state["codec"].read(record.storage_key)

    assert list(snapshot.collections) == ["products", "categories"]


# ============================================================================
# Recovery
# ============================================================================

@pytest.mark.asyncio
async def test_recover_selected_collections_ignores_unknown(engine, source):
    backup = await create_backup(engine, "full")
    await source.put_document("categories", "c1", {"name": "Changed"})

    result = await recover(engine, backup.id, collections=["products", "ghost"])

    assert list(result.per_collection_result) == ["products"]
    assert result.status == RecoveryStatus.COMPLETED
    assert source.dump()["categories"]["c1"] == {"name": "Changed"}


@pytest.mark.asyncio
async def test_validate_backup_reports_corruption(engine, store):
    backup = await create_backup(engine, "full")

    result = await validate_backup(engine, backup.id)
    assert result.valid is True
    assert result.issues == ()

    store.blobs[backup.storage_key] = b"\x00\x01garbage"

    result = await validate_backup(engine, backup.id)
    assert result.valid is False
    assert result.issues

    with pytest.raises(NotFoundError):
        await validate_backup(engine, "full_404")


@pytest.mark.asyncio
async def test_sqlite_source_backup_and_restore(temp_dir: Path, store, clock, test_config):
    """Backup and restore against a real SQLite document store."""
    db = SqliteDataSource(temp_dir / "documents.db", clock=clock)
    await db.init()
    await db.init()  # idempotent

    await db.put_document("products", "p1", {"name": "Keyboard", "price": 49})
    await db.put_document("products", "p2", {"name": "Mouse", "price": 19})
    await db.put_document("categories", "c1", {"name": "Peripherals"})

    state = await initialize_engine(test_config, db, store=store, clock=clock)
    backup = await create_backup(state, "full")

    await db.put_document("products", "p1", {"name": "Keyboard", "price": 1})
    clock.advance(minutes=1)

    result = await recover(state, backup.id)

    assert result.status == RecoveryStatus.COMPLETED
    assert result.total_documents_restored == 3
    docs = {d.id: d for d in await db.list_documents("products")}
    assert docs["p1"].data == {"name": "Keyboard", "price": 49}
    assert docs["p1"].source_timestamps.created_at == START
    assert await db.count("products") == 2


@pytest.mark.asyncio
async def test_sqlite_recovery_writes_in_batches(temp_dir: Path, store, clock, test_config, monkeypatch):
    """Restoring into SQLite uses one transaction per batch, not one per document."""
    monkeypatch.setattr("docbackup.backup.restore.BATCH_SIZE", 2)
    db = SqliteDataSource(temp_dir / "documents.db", clock=clock)
    await db.init()
    await db.put_documents(
        "products", [(f"p{i}", {"name": f"Item {i}", "price": i}) for i in range(5)]
    )
    await db.put_documents("categories", [("c1", {"name": "Peripherals"})])

    state = await initialize_engine(test_config, db, store=store, clock=clock)
    backup = await create_backup(state, "full")
    await db.put_documents("products", [("p0", {"name": "Changed", "price": 0})])

    db.put_document = AsyncMock()
    batch_write = AsyncMock(wraps=db.put_documents)
    db.put_documents = batch_write

    result = await recover(state, backup.id)

    assert result.status == RecoveryStatus.COMPLETED
    assert result.total_documents_restored == 6
    db.put_document.assert_not_called()
    assert batch_write.await_count == 4
    docs = {d.id: d.data for d in await db.list_documents("products")}
    assert docs["p0"] == {"name": "Item 0", "price": 0}


@pytest.mark.asyncio
async def test_sqlite_failed_batch_fails_only_that_collection(temp_dir: Path, store, clock, test_config):
    from docbackup.exceptions import CollectionOperationFailure
    from docbackup.models import CollectionStatus

    db = SqliteDataSource(temp_dir / "documents.db", clock=clock)
    await db.init()
    await db.put_documents("products", [("p1", {"name": "Keyboard"})])
    await db.put_documents("categories", [("c1", {"name": "Peripherals"})])

    state = await initialize_engine(test_config, db, store=store, clock=clock)
    backup = await create_backup(state, "full")

    real_batch = db.put_documents

    async def flaky_batch(collection, documents):
        if collection == "products":
            raise CollectionOperationFailure(collection, "database is locked")
        await real_batch(collection, documents)

    db.put_documents = AsyncMock(side_effect=flaky_batch)

    result = await recover(state, backup.id)

    assert result.status == RecoveryStatus.PARTIAL
    assert result.per_collection_result["products"].status == CollectionStatus.FAILED
    assert result.per_collection_result["products"].restored_count == 0
    assert result.per_collection_result["categories"].status == CollectionStatus.SUCCESS


# ============================================================================
# Listing, info, deletion and status
# ============================================================================

@pytest.mark.asyncio
async def test_list_backups_sort_limit_and_kind(engine, clock):
    first = await create_backup(engine, "full")
    clock.advance(hours=1)
    second = await create_backup(engine, "incremental")
    clock.advance(hours=1)
    third = await create_backup(engine, "full", compress=False)

    newest = list_backups(engine)
    assert [r.id for r in newest.backups] == [third.id, second.id, first.id]
    assert newest.total == 3

    oldest = list_backups(engine, sort="oldest", limit=2)
    assert [r.id for r in oldest.backups] == [first.id, second.id]
    assert oldest.total == 3

    largest = list_backups(engine, sort="largest")
    sizes = [r.size_bytes for r in largest.backups]
    assert sizes == sorted(sizes, reverse=True)

    incrementals = list_backups(engine, kind="incremental")
    assert [r.id for r in incrementals.backups] == [second.id]
    assert incrementals.total == 1
    assert incrementals.total_all_kinds == 3

    with pytest.raises(ValidationError):
        list_backups(engine, sort="random")
    with pytest.raises(ValidationError):
        list_backups(engine, limit=-1)


@pytest.mark.asyncio
async def test_delete_backup_moves_last_backup(engine, store, clock):
    older = await create_backup(engine, "full")
    clock.advance(hours=1)
    newer = await create_backup(engine, "full")

    removed = await delete_backup(engine, newer.id)

    assert removed.id == newer.id
    assert newer.storage_key not in store.blobs
    assert engine["registry"].last_backup.id == older.id
    assert get_backup_info(engine, older.id) == older

    with pytest.raises(NotFoundError):
        get_backup_info(engine, newer.id)
    with pytest.raises(NotFoundError):
        await delete_backup(engine, newer.id)
    assert engine["registry"].in_progress is None


@pytest.mark.asyncio
async def test_status_reports_success_rates(engine, store, clock):
    from unittest.mock import AsyncMock

    from docbackup.exceptions import BackupFailed

    status = get_status(engine)
    assert status.backup_success_rate is None
    assert status.recovery_success_rate is None
    assert status.total_backups == 0

    backup = await create_backup(engine, "full")
    clock.advance(hours=1)
    await create_backup(engine, "incremental")

    real_create = store.create
    store.create = AsyncMock(side_effect=StoreError("quota exceeded"))
    with pytest.raises(BackupFailed):
        await create_backup(engine, "full")
    store.create = real_create

    await recover(engine, backup.id)

    status = get_status(engine)
    assert status.total_backups == 2
    assert status.full_backups == 1
    assert status.incremental_backups == 1
    assert status.backup_success_rate == 66.67
    assert status.recovery_success_rate == 100.0
    assert status.oldest_backup == START
    assert status.newest_backup == START.replace(hour=1)
    assert status.total_size_bytes == sum(r.size_bytes for r in engine["registry"].backup_history)
    assert len(status.recent_recoveries) == 1


# ============================================================================
# Integrity validator
# ============================================================================

def test_validator_reports_issues_in_check_order():
    from docbackup.backup import IntegrityValidator

    snapshot = Snapshot(
        metadata=SnapshotMetadata(id="", kind=BackupKind.INCREMENTAL, created_at=None),
        collections={
            "products": CollectionSnapshot(name="products", document_count=2, documents=()),
            "orders": CollectionSnapshot(name="categories", document_count=0),
        },
    )

    result = IntegrityValidator().validate(snapshot)

    assert result.valid is False
    assert result.issues[0] == "metadata.id is missing"
    assert result.issues[1] == "metadata.created_at is missing"
    assert "document_count 2" in result.issues[2]
    assert "does not match name" in result.issues[3]
    assert "incremental" in result.issues[4]
    assert len(result.issues) == 5


def test_validator_flags_unknown_kind():
    from docbackup.backup import IntegrityValidator

    snapshot = Snapshot(
        metadata=SnapshotMetadata(id="weird_1", kind="differential", created_at=START),
        collections={},
    )

    result = IntegrityValidator().validate(snapshot)

    assert result.issues == ("unknown snapshot kind 'differential'",)


# ============================================================================
# Audit trail
# ============================================================================

@pytest.mark.asyncio
async def test_audit_trail_persists_history_across_restarts(temp_dir: Path, source, store, clock, test_config):
    """Backup history is reloaded from the audit trail at startup."""
    config = test_config.with_updates(audit_db_path=temp_dir / "audit" / "docbackup.db")

    state = await initialize_engine(config, source, store=store, clock=clock)
    first = await create_backup(state, "full")
    clock.advance(hours=1)
    second = await create_backup(state, "full")
    clock.advance(hours=1)
    third = await create_backup(state, "incremental")
    await delete_backup(state, third.id)
    await recover(state, second.id, dry_run=True)

    stats = await state["audit"].stats()
    assert stats["total_backups"] == 3
    assert stats["deleted_backups"] == 1
    assert stats["live_backups_by_kind"] == {"full": 2}
    assert stats["recoveries_by_status"] == {"completed": 1}

    recoveries = await state["audit"].recoveries(backup_id=second.id)
    assert len(recoveries) == 1
    assert recoveries[0]["dry_run"] is True
    assert recoveries[0]["per_collection"]["products"]["restored_count"] == 3

    # Simulated restart: fresh registry, same audit database
    restarted = await initialize_engine(
        config, source, store=store, clock=clock, registry=BackupRegistry()
    )

    assert [r.id for r in restarted["registry"].backup_history] == [second.id, first.id]
    assert restarted["registry"].last_backup == second
    assert restarted["registry"].counters.total_backups == 0


@pytest.mark.asyncio
async def test_audit_init_failure_is_configuration_time_error(temp_dir: Path):
    from docbackup.exceptions import AuditError
    from docbackup.vault import init_audit_db

    blocker = temp_dir / "not_a_dir"
    blocker.write_text("file")

    with pytest.raises(AuditError):
        await init_audit_db(blocker / "audit.db")


# ============================================================================
# Configuration
# ============================================================================

def test_builder_steps():
    """Test the functional builder steps."""
    from docbackup.builder import (
        build_from_steps,
        disable_compression,
        enable_audit,
        expire_after_days,
        full_backup_every_hours,
        keep_at_most,
        track_collection,
        with_max_concurrent_collections,
    )

    config = build_from_steps(
        lambda c: track_collection(c, "products"),
        lambda c: track_collection(c, "categories"),
        lambda c: keep_at_most(c, 5),
        lambda c: expire_after_days(c, None),
        disable_compression,
        lambda c: enable_audit(c, "/tmp/audit.db"),
        lambda c: with_max_concurrent_collections(c, 2),
        lambda c: full_backup_every_hours(c, 12),
    )

    assert config.collection_names == ["products", "categories"]
    assert config.retention == RetentionPolicy(max_backups=5, max_age_ms=None)
    assert config.compress is False
    assert config.audit_db_path == Path("/tmp/audit.db")
    assert config.max_concurrent_collections == 2
    assert config.full_backup_interval_hours == 12

    with pytest.raises(ValueError):
        keep_at_most({}, -1)
    with pytest.raises(ValueError):
        full_backup_every_hours({}, 0)


def test_create_config_defaults_and_overrides():
    from docbackup.builder import create_config
    from docbackup.config import DAY_MS

    config = create_config(
        ["products"],
        max_age_days=7,
        environment="staging",
        compression_level=3,
    )

    assert config.retention.max_backups == 10
    assert config.retention.max_age_ms == 7 * DAY_MS
    assert config.environment == "staging"
    assert config.compression_level == 3
    assert config.auto_cleanup is True
    assert config.backup_path == Path("./backups")
    assert config.full_backup_interval_hours == 24


def test_create_config_rejects_unknown_options():
    """A misspelt option is an error, not a silently ignored keyword."""
    from docbackup.builder import create_config

    with pytest.raises(ConfigurationError) as exc_info:
        create_config(["products"], max_concurrent_collection=4)

    assert exc_info.value.details["unknown"] == ["max_concurrent_collection"]
    assert "max_concurrent_collections" in str(exc_info.value)


def test_config_validation():
    """Invalid configurations are rejected with every problem listed."""
    from docbackup.builder import create_config

    with pytest.raises(ConfigurationError):
        create_config([])

    with pytest.raises(ConfigurationError) as exc_info:
        create_config(["products", "products", "a/b"], compression_level=40)

    errors = exc_info.value.details["errors"]
    assert any("Duplicate" in e for e in errors)
    assert any("Invalid collection name" in e for e in errors)
    assert any("compression_level" in e for e in errors)

    with pytest.raises(ConfigurationError):
        RetentionPolicy(max_backups=-1)


def test_config_from_env(monkeypatch, temp_dir: Path):
    from docbackup.config import DAY_MS
    from docbackup.env import create_config_from_env

    monkeypatch.setenv("DOCBACKUP_PATH", str(temp_dir))
    monkeypatch.setenv("DOCBACKUP_COMPRESS", "no")
    monkeypatch.setenv("DOCBACKUP_MAX_BACKUPS", "4")
    monkeypatch.setenv("DOCBACKUP_MAX_AGE_DAYS", "2.5")
    monkeypatch.delenv("DOCBACKUP_ENVIRONMENT", raising=False)
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("DOCBACKUP_AUDIT_DB", raising=False)
    monkeypatch.delenv("DOCBACKUP_SCHEDULE_HOURS", raising=False)
    monkeypatch.delenv("DOCBACKUP_SCHEMA_VERSION", raising=False)
    monkeypatch.setenv("DOCBACKUP_FULL_BACKUP_HOURS", "off")

    config = create_config_from_env(collections=["products"])

    assert config.backup_path == temp_dir
    assert config.compress is False
    assert config.retention.max_backups == 4
    assert config.retention.max_age_ms == int(2.5 * DAY_MS)
    assert config.environment == "production"
    assert config.schedule_interval_hours is None
    assert config.full_backup_interval_hours is None


@pytest.mark.parametrize(
    "name,value",
    [
        ("DOCBACKUP_COMPRESS", "maybe"),
        ("DOCBACKUP_MAX_BACKUPS", "ten"),
        ("DOCBACKUP_MAX_BACKUPS", "-2"),
        ("DOCBACKUP_MAX_AGE_DAYS", "forever"),
        ("DOCBACKUP_SCHEDULE_HOURS", "0"),
        ("DOCBACKUP_FULL_BACKUP_HOURS", "-1"),
    ],
)
def test_config_from_env_rejects_bad_values(monkeypatch, name, value):
    from docbackup.env import create_config_from_env

    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError) as exc_info:
        create_config_from_env(collections=["products"])

    assert name in str(exc_info.value)


def test_config_from_env_requires_collections():
    from docbackup.env import create_config_from_env

    with pytest.raises(ConfigurationError) as exc_info:
        create_config_from_env(collections=[])

    assert "collections" in str(exc_info.value)


def test_retention_profiles():
    from docbackup.builder import create_config
    from docbackup.config import DAY_MS
    from docbackup.env import conservative_retention, space_saver

    base = create_config(["products"], compress=False, auto_cleanup=False, max_backups=5)

    conservative = conservative_retention(base)
    assert conservative.retention.max_backups == 30
    assert conservative.retention.max_age_ms == 90 * DAY_MS
    assert conservative.compress is True

    saver = space_saver(base)
    assert saver.retention.max_backups == 3
    assert saver.retention.max_age_ms == 7 * DAY_MS
    assert saver.auto_cleanup is True


# ============================================================================
# Scheduler
# ============================================================================

@pytest.mark.asyncio
async def test_first_scheduled_backup_is_full(engine):
    from docbackup.scheduler import run_scheduled_backup

    await run_scheduled_backup(engine)

    history = engine["registry"].backup_history
    assert len(history) == 1
    # No baseline yet, so the first scheduled run is a full backup
    assert history[0].kind == BackupKind.FULL


@pytest.mark.asyncio
async def test_scheduled_backup_takes_full_once_interval_elapsed(engine, clock):
    from docbackup.scheduler import run_scheduled_backup, scheduled_backup_kind

    await run_scheduled_backup(engine)
    full = engine["registry"].last_backup

    clock.advance(hours=6)
    assert scheduled_backup_kind(engine) == BackupKind.INCREMENTAL
    await run_scheduled_backup(engine)
    incremental = engine["registry"].last_backup
    assert incremental.kind == BackupKind.INCREMENTAL
    assert incremental.based_on_id == full.id

    clock.advance(hours=18)
    assert scheduled_backup_kind(engine) == BackupKind.FULL
    await run_scheduled_backup(engine)
    assert engine["registry"].last_backup.kind == BackupKind.FULL


@pytest.mark.asyncio
async def test_scheduled_backup_stays_incremental_without_full_interval(source, store, clock, test_config):
    from docbackup.scheduler import scheduled_backup_kind

    config = test_config.with_updates(full_backup_interval_hours=None)
    state = await initialize_engine(config, source, store=store, clock=clock)

    assert scheduled_backup_kind(state) == BackupKind.FULL
    await create_backup(state, "full")
    clock.advance(days=30)

    assert scheduled_backup_kind(state) == BackupKind.INCREMENTAL


@pytest.mark.asyncio
async def test_scheduled_backup_skips_on_conflict(engine):
    from docbackup.config import OperationKind
    from docbackup.scheduler import run_scheduled_backup

    with engine["registry"].exclusive(OperationKind.RECOVERY, "op-1", START):
        await run_scheduled_backup(engine)  # must not raise

    assert engine["registry"].backup_history == ()
    assert engine["registry"].counters.total_backups == 0


@pytest.mark.asyncio
async def test_schedule_start_and_stop(engine):
    from docbackup.scheduler import JOB_ID, start_backup_schedule, stop_backup_schedule

    scheduler = start_backup_schedule(engine, 6)

    assert engine["scheduler"] is scheduler
    assert scheduler.get_job(JOB_ID) is not None

    stop_backup_schedule(engine)
    assert engine["scheduler"] is None

    with pytest.raises(ValueError):
        start_backup_schedule(engine, 0)


@pytest.mark.asyncio
async def test_engine_starts_schedule_from_config(source, store, clock, test_config):
    config = test_config.with_updates(schedule_interval_hours=12)

    state = await initialize_engine(config, source, store=store, clock=clock)
    assert state["scheduler"] is not None

    await shutdown_engine(state)
    assert state["scheduler"] is None
