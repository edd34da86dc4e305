# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Exceptions - Error taxonomy for the backup & recovery engine.

Per-collection failures are recorded as data on snapshots and recovery
records. Only the fatal errors below ever reach the caller.
"""


class DocBackupError(Exception):
    """Base exception for all docbackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(DocBackupError):
    """Raised when configuration is invalid."""

    pass


class ConflictError(DocBackupError):
    """Raised when another backup or recovery already holds the operation slot."""

    pass


class NotFoundError(DocBackupError):
    """Raised when a backup id is not present in the registry."""

    pass


class ValidationError(DocBackupError):
    """Raised when a snapshot fails its integrity check or a backup kind is unknown."""

    pass


class CorruptSnapshotError(DocBackupError):
    """Raised when stored bytes cannot be decompressed or deserialized."""

    pass


class CollectionOperationFailure(DocBackupError):
    """
    Raised for a single collection read or write.

    Always caught by the builder / recovery coordinator and turned
    into data; never propagated to the caller.
    """

    def __init__(self, collection: str, message: str, details: dict | None = None):
        self.collection = collection
        super().__init__(message, details={"collection": collection, **(details or {})})


class BackupFailed(DocBackupError):
    """Raised when a backup run aborts (codec, store, or serialization failure)."""

    def __init__(self, backup_id: str, message: str, details: dict | None = None):
        self.backup_id = backup_id
        super().__init__(message, details={"backup_id": backup_id, **(details or {})})


class RecoveryFailed(DocBackupError):
    """Raised when a recovery aborts before producing a recovery record."""

    def __init__(
        self,
        recovery_id: str,
        backup_id: str,
        message: str,
        details: dict | None = None,
    ):
        self.recovery_id = recovery_id
        self.backup_id = backup_id
        super().__init__(
            message,
            details={"recovery_id": recovery_id, "backup_id": backup_id, **(details or {})},
        )


class StoreError(DocBackupError):
    """Raised when a backup store operation fails."""

    pass


class AuditError(DocBackupError):
    """Raised when audit trail operations fail."""

    pass
