# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation to prevent
accidental modification while a backup or recovery is running.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Tuple

if TYPE_CHECKING:
    from docbackup.models import DocumentRecord

DAY_MS = 24 * 60 * 60 * 1000


class BackupKind(str, Enum):
    """Kind of snapshot."""

    FULL = "full"  # Every document in every configured collection
    INCREMENTAL = "incremental"  # Only documents changed since the baseline


class OperationKind(str, Enum):
    """Kind of operation holding the single-flight slot."""

    FULL = "full"
    INCREMENTAL = "incremental"
    RECOVERY = "recovery"
    CLEANUP = "cleanup"
    DELETE = "delete"


class SortOrder(str, Enum):
    """Sort order for backup listings."""

    NEWEST = "newest"
    OLDEST = "oldest"
    LARGEST = "largest"
    SMALLEST = "smallest"


# Predicate deciding whether a document changed since a baseline time
ChangeDetector = Callable[["DocumentRecord", datetime], bool]


@dataclass(frozen=True)
class CollectionSpec:
    """A collection to back up, with an optional change-detection override."""

    name: str
    change_detector: ChangeDetector | None = None


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Keep at most max_backups backups and discard anything older than max_age_ms.

    None disables the corresponding rule.
    """

    max_backups: int | None = 10
    max_age_ms: int | None = 30 * DAY_MS

    def __post_init__(self) -> None:
        errors: List[str] = []
        if self.max_backups is not None and self.max_backups < 0:
            errors.append(f"max_backups must be >= 0, got {self.max_backups}")
        if self.max_age_ms is not None and self.max_age_ms < 0:
            errors.append(f"max_age_ms must be >= 0, got {self.max_age_ms}")
        if errors:
            from docbackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Retention policy validation failed",
                details={"errors": errors},
            )


def _validate_collection_name(name: str) -> bool:
    """Collection names are non-empty and carry no path separators."""
    if not isinstance(name, str) or not name.strip():
        return False
    return "/" not in name and "\\" not in name


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for the backup & recovery engine.

    Frozen after creation so a running backup always sees the
    configuration it started with.
    """

    # Required: collections to back up, in the order they are traversed
    collections: Tuple[CollectionSpec, ...]

    # Directory used by the filesystem backup store
    backup_path: Path = field(default_factory=lambda: Path("./backups"))

    # Compress snapshots using zstd
    compress: bool = True

    # zstd compression level (1-22)
    compression_level: int = 19

    # Run retention cleanup after every successful backup
    auto_cleanup: bool = True

    # Retention rules applied by cleanup
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    # Written into every snapshot's metadata
    schema_version: str = "1.0.0"
    environment: str = "development"

    # Collections read/written concurrently (1 = strictly sequential)
    max_concurrent_collections: int = 1

    # Per-collection timeout; a timeout counts as a collection failure
    collection_timeout_seconds: float | None = None

    # SQLite audit trail (disabled when None)
    audit_db_path: Path | None = None

    # Automatic scheduled backups every N hours (disabled when None)
    schedule_interval_hours: float | None = None

    # Scheduled runs take a full backup when the newest one is this old
    # (None: scheduled runs are always incremental once a full exists)
    full_backup_interval_hours: float | None = 24

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.collections:
            errors.append("At least one collection is required")

        seen: set = set()
        for spec in self.collections:
            if not isinstance(spec, CollectionSpec):
                errors.append(f"Invalid collection spec: {spec!r}")
                continue
            if not _validate_collection_name(spec.name):
                errors.append(f"Invalid collection name: {spec.name!r}")
            if spec.name in seen:
                errors.append(f"Duplicate collection name: {spec.name}")
            seen.add(spec.name)

        if not 1 <= self.compression_level <= 22:
            errors.append(
                f"compression_level must be 1-22, got {self.compression_level}"
            )

        if self.max_concurrent_collections < 1:
            errors.append(
                f"max_concurrent_collections must be >= 1, got {self.max_concurrent_collections}"
            )

        if self.collection_timeout_seconds is not None and self.collection_timeout_seconds <= 0:
            errors.append(
                f"collection_timeout_seconds must be > 0, got {self.collection_timeout_seconds}"
            )

        if self.schedule_interval_hours is not None and self.schedule_interval_hours <= 0:
            errors.append(
                f"schedule_interval_hours must be > 0, got {self.schedule_interval_hours}"
            )

        if self.full_backup_interval_hours is not None and self.full_backup_interval_hours <= 0:
            errors.append(
                f"full_backup_interval_hours must be > 0, got {self.full_backup_interval_hours}"
            )

        if not self.schema_version:
            errors.append("schema_version must not be empty")

        # Raise all errors at once
        if errors:
            from docbackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def collection_names(self) -> List[str]:
        return [spec.name for spec in self.collections]

    def collection_spec(self, name: str) -> CollectionSpec | None:
        for spec in self.collections:
            if spec.name == name:
                return spec
        return None

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new (re-validated) instance.
        """
        return replace(self, **kwargs)
