# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Snapshot building, backup, recovery and retention.
"""

from docbackup.backup.snapshot import SnapshotBuilder
from docbackup.backup.validator import IntegrityValidator
from docbackup.backup.retention import (
    RetentionManager,
    protected_backup_ids,
    select_for_deletion,
)
from docbackup.backup.manager import (
    BackupCoordinator,
    BackupOptions,
    parse_backup_kind,
)
from docbackup.backup.restore import (
    RecoveryCoordinator,
    RecoveryOptions,
)

__all__ = [
    # Snapshot
    "SnapshotBuilder",
    "IntegrityValidator",
    # Retention
    "RetentionManager",
    "protected_backup_ids",
    "select_for_deletion",
    # Backup
    "BackupCoordinator",
    "BackupOptions",
    "parse_backup_kind",
    # Recovery
    "RecoveryCoordinator",
    "RecoveryOptions",
]
