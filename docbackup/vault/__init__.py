# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Vault - Blob storage backends, the storage codec and the audit trail.
"""

from docbackup.vault.base import BackupStore, BlobInfo, validate_key
from docbackup.vault.filesystem import FileSystemBackupStore
from docbackup.vault.memory import MemoryBackupStore
from docbackup.vault.s3 import S3BackupStore
from docbackup.vault.codec import (
    StorageCodec,
    StoredBlob,
    storage_key_for,
    is_compressed_key,
    DEFAULT_ZSTD_LEVEL,
)
from docbackup.vault.audit import (
    AuditTrail,
    RecoveryAuditRecord,
    init_audit_db,
    record_backup,
    record_recovery,
    mark_backup_deleted,
    load_backup_history,
    list_recoveries,
    get_audit_stats,
)

__all__ = [
    # Stores
    "BackupStore",
    "BlobInfo",
    "validate_key",
    "FileSystemBackupStore",
    "MemoryBackupStore",
    "S3BackupStore",
    # Codec
    "StorageCodec",
    "StoredBlob",
    "storage_key_for",
    "is_compressed_key",
    "DEFAULT_ZSTD_LEVEL",
    # Audit trail
    "AuditTrail",
    "RecoveryAuditRecord",
    "init_audit_db",
    "record_backup",
    "record_recovery",
    "mark_backup_deleted",
    "load_backup_history",
    "list_recoveries",
    "get_audit_stats",
]
