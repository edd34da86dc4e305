# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Models - Snapshot and bookkeeping data structures.

Snapshots are immutable once built. Their JSON form (to_dict/from_dict)
is what the storage codec writes; from_dict is deliberately lenient about
structure so the integrity validator can report problems instead of the
decoder crashing on them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple

from docbackup.config import BackupKind, OperationKind


class BackupRecordStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class RecoveryStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"


class CollectionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


def _dt_to_str(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str_to_dt(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_kind(value: Any) -> BackupKind | str:
    """Known kinds become BackupKind; anything else is kept for the validator to flag."""
    try:
        return BackupKind(value)
    except ValueError:
        return value


# ============================================================================
# Snapshot model
# ============================================================================

@dataclass(frozen=True)
class SourceTimestamps:
    """Timestamps reported by the data source for a document."""

    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class DocumentRecord:
    """A single document. The data payload is opaque to the engine."""

    id: str
    data: Dict[str, Any]
    source_timestamps: SourceTimestamps = field(default_factory=SourceTimestamps)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "data": self.data,
            "source_timestamps": {
                "created_at": _dt_to_str(self.source_timestamps.created_at),
                "updated_at": _dt_to_str(self.source_timestamps.updated_at),
            },
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DocumentRecord":
        stamps = raw.get("source_timestamps") or {}
        return cls(
            id=raw["id"],
            data=raw["data"],
            source_timestamps=SourceTimestamps(
                created_at=_str_to_dt(stamps.get("created_at")),
                updated_at=_str_to_dt(stamps.get("updated_at")),
            ),
        )


@dataclass(frozen=True)
class SnapshotMetadata:
    """Identity and provenance of a snapshot."""

    id: str
    kind: BackupKind
    created_at: datetime
    based_on_id: str | None = None
    since: datetime | None = None
    schema_version: str = "1.0.0"
    environment: str = "development"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value if isinstance(self.kind, BackupKind) else self.kind,
            "created_at": _dt_to_str(self.created_at),
            "based_on_id": self.based_on_id,
            "since": _dt_to_str(self.since),
            "schema_version": self.schema_version,
            "environment": self.environment,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "SnapshotMetadata":
        return cls(
            id=raw.get("id"),
            kind=_parse_kind(raw.get("kind")),
            created_at=_str_to_dt(raw.get("created_at")),
            based_on_id=raw.get("based_on_id"),
            since=_str_to_dt(raw.get("since")),
            schema_version=raw.get("schema_version", ""),
            environment=raw.get("environment", ""),
        )


@dataclass(frozen=True)
class CollectionSnapshot:
    """
    One collection inside a snapshot.

    A degraded collection (failure set) has no documents and a count of 0;
    the snapshot around it is still usable.
    """

    name: str
    document_count: int
    documents: Tuple[DocumentRecord, ...] = ()
    failure: str | None = None

    @classmethod
    def complete(cls, name: str, documents: List[DocumentRecord]) -> "CollectionSnapshot":
        return cls(name=name, document_count=len(documents), documents=tuple(documents))

    @classmethod
    def degraded(cls, name: str, error: str) -> "CollectionSnapshot":
        return cls(name=name, document_count=0, documents=(), failure=error)

    @property
    def is_degraded(self) -> bool:
        return self.failure is not None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "document_count": self.document_count,
            "documents": [doc.to_dict() for doc in self.documents],
            "failure": self.failure,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CollectionSnapshot":
        return cls(
            name=raw["name"],
            document_count=int(raw["document_count"]),
            documents=tuple(DocumentRecord.from_dict(doc) for doc in raw["documents"]),
            failure=raw.get("failure"),
        )


@dataclass(frozen=True)
class Snapshot:
    """Complete in-memory representation of one backup's data and metadata."""

    metadata: SnapshotMetadata
    collections: Dict[str, CollectionSnapshot]

    @property
    def degraded_collections(self) -> List[str]:
        return [name for name, col in self.collections.items() if col.is_degraded]

    @property
    def total_documents(self) -> int:
        return sum(col.document_count for col in self.collections.values())

    def to_dict(self) -> dict:
        # Collections are stored as an ordered list to keep traversal order
        return {
            "metadata": self.metadata.to_dict(),
            "collections": [col.to_dict() for col in self.collections.values()],
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Snapshot":
        collections: Dict[str, CollectionSnapshot] = {}
        for entry in raw["collections"]:
            col = CollectionSnapshot.from_dict(entry)
            if col.name in collections:
                raise ValueError(f"Duplicate collection in snapshot: {col.name}")
            collections[col.name] = col
        return cls(
            metadata=SnapshotMetadata.from_dict(raw["metadata"]),
            collections=collections,
        )


# ============================================================================
# Bookkeeping records
# ============================================================================

@dataclass(frozen=True)
class BackupRecord:
    """Registry entry for a stored backup. Never mutated once created."""

    id: str
    kind: BackupKind
    created_at: datetime
    storage_key: str
    size_bytes: int
    collection_names: FrozenSet[str]
    status: BackupRecordStatus
    duration_ms: int
    based_on_id: str | None = None
    checksum: str | None = None
    degraded_collections: FrozenSet[str] = frozenset()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "created_at": _dt_to_str(self.created_at),
            "storage_key": self.storage_key,
            "size_bytes": self.size_bytes,
            "collection_names": sorted(self.collection_names),
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "based_on_id": self.based_on_id,
            "checksum": self.checksum,
            "degraded_collections": sorted(self.degraded_collections),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "BackupRecord":
        return cls(
            id=raw["id"],
            kind=BackupKind(raw["kind"]),
            created_at=_str_to_dt(raw["created_at"]),
            storage_key=raw["storage_key"],
            size_bytes=int(raw["size_bytes"]),
            collection_names=frozenset(raw["collection_names"]),
            status=BackupRecordStatus(raw["status"]),
            duration_ms=int(raw["duration_ms"]),
            based_on_id=raw.get("based_on_id"),
            checksum=raw.get("checksum"),
            degraded_collections=frozenset(raw.get("degraded_collections") or ()),
        )


@dataclass(frozen=True)
class CollectionRecoveryResult:
    """Outcome of restoring one collection."""

    restored_count: int
    status: CollectionStatus
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "restored_count": self.restored_count,
            "status": self.status.value,
            "error": self.error,
        }


@dataclass(frozen=True)
class RecoveryRecord:
    """Outcome of a recovery. Appended to history and never mutated."""

    id: str
    backup_id: str
    started_at: datetime
    per_collection_result: Dict[str, CollectionRecoveryResult]
    total_documents_restored: int
    status: RecoveryStatus
    duration_ms: int
    dry_run: bool
    requested_by: str = "system"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "backup_id": self.backup_id,
            "started_at": _dt_to_str(self.started_at),
            "per_collection_result": {
                name: result.to_dict()
                for name, result in self.per_collection_result.items()
            },
            "total_documents_restored": self.total_documents_restored,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "dry_run": self.dry_run,
            "requested_by": self.requested_by,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Structured result of an integrity check."""

    valid: bool
    issues: Tuple[str, ...] = ()


@dataclass
class CleanupResult:
    """Result of a retention cleanup."""

    deleted: List[BackupRecord] = field(default_factory=list)
    failed: List[BackupRecord] = field(default_factory=list)
    protected: List[BackupRecord] = field(default_factory=list)
    dry_run: bool = False


@dataclass
class BackupListing:
    """Filtered, sorted, limited view of the backup history."""

    backups: List[BackupRecord]
    total: int
    total_all_kinds: int


# ============================================================================
# Registry views
# ============================================================================

@dataclass(frozen=True)
class CurrentOperation:
    """The operation currently holding the single-flight slot."""

    kind: OperationKind
    operation_id: str
    started_at: datetime
    requested_by: str = "system"
    progress: float = 0.0
    current_collection: str | None = None


@dataclass(frozen=True)
class RegistryCounters:
    total_backups: int = 0
    successful_backups: int = 0
    failed_backups: int = 0
    total_recoveries: int = 0
    successful_recoveries: int = 0
    failed_recoveries: int = 0


@dataclass(frozen=True)
class RegistryView:
    """Consistent point-in-time copy of the registry, safe to read concurrently."""

    current_operation: CurrentOperation | None
    last_backup: BackupRecord | None
    backup_history: Tuple[BackupRecord, ...]
    recovery_history: Tuple[RecoveryRecord, ...]
    counters: RegistryCounters

    @property
    def in_progress(self) -> OperationKind | None:
        return self.current_operation.kind if self.current_operation else None


@dataclass
class EngineStatus:
    """Status report for operators."""

    in_progress: bool
    current_operation: CurrentOperation | None
    last_backup: BackupRecord | None
    counters: RegistryCounters
    total_backups: int
    full_backups: int
    incremental_backups: int
    total_size_bytes: int
    oldest_backup: datetime | None
    newest_backup: datetime | None
    backup_success_rate: float | None
    recovery_success_rate: float | None
    recent_backups: List[BackupRecord] = field(default_factory=list)
    recent_recoveries: List[RecoveryRecord] = field(default_factory=list)
