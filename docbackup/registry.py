# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Backup Registry - Process-wide operation state and history.

The registry owns the single-flight slot: at most one backup, recovery,
cleanup or delete runs at a time. All history and counter mutations happen
while that slot is held, so there is only ever one writer. Readers get a
RegistryView, an immutable copy swapped in under a short lock, so a status
query never observes a half-applied update.

Create one registry per process at startup and pass it to the coordinators;
tests create a fresh one per test.
"""

import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Iterator, Tuple

import structlog

from docbackup.config import BackupKind, OperationKind
from docbackup.exceptions import ConflictError
from docbackup.models import (
    BackupRecord,
    CurrentOperation,
    RecoveryRecord,
    RecoveryStatus,
    RegistryCounters,
    RegistryView,
)

logger = structlog.get_logger()


class BackupRegistry:
    """In-memory backup/recovery state shared by the coordinators."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._view = RegistryView(
            current_operation=None,
            last_backup=None,
            backup_history=(),
            recovery_history=(),
            counters=RegistryCounters(),
        )

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def view(self) -> RegistryView:
        """Return a consistent, possibly stale, snapshot of the registry."""
        with self._lock:
            return self._view

    @property
    def in_progress(self) -> OperationKind | None:
        return self.view().in_progress

    @property
    def last_backup(self) -> BackupRecord | None:
        return self.view().last_backup

    @property
    def backup_history(self) -> Tuple[BackupRecord, ...]:
        """Backup records, most recent first."""
        return self.view().backup_history

    @property
    def recovery_history(self) -> Tuple[RecoveryRecord, ...]:
        return self.view().recovery_history

    @property
    def counters(self) -> RegistryCounters:
        return self.view().counters

    def latest_backup(self, kind: BackupKind) -> BackupRecord | None:
        """Newest backup of the given kind still in history."""
        for record in self.backup_history:
            if record.kind == kind:
                return record
        return None

    def find_backup(self, backup_id: str) -> BackupRecord | None:
        for record in self.backup_history:
            if record.id == backup_id:
                return record
        return None

    # ------------------------------------------------------------------
    # Single-flight slot
    # ------------------------------------------------------------------

    @contextmanager
    def exclusive(
        self,
        kind: OperationKind,
        operation_id: str,
        started_at: datetime,
        requested_by: str = "system",
    ) -> Iterator[CurrentOperation]:
        """
        Hold the operation slot for the duration of the block.

        Raises ConflictError immediately if another operation holds it.
        The slot is released exactly once, whether the block succeeds or raises.
        """
        operation = CurrentOperation(
            kind=kind,
            operation_id=operation_id,
            started_at=started_at,
            requested_by=requested_by,
        )

        with self._lock:
            current = self._view.current_operation
            if current is not None:
                raise ConflictError(
                    f"A {current.kind.value} operation is already in progress",
                    details={
                        "in_progress": current.kind.value,
                        "operation_id": current.operation_id,
                        "requested": kind.value,
                    },
                )
            self._view = replace(self._view, current_operation=operation)

        logger.debug("operation_slot_acquired", kind=kind.value, operation_id=operation_id)

        try:
            yield operation
        finally:
            with self._lock:
                self._view = replace(self._view, current_operation=None)
            logger.debug("operation_slot_released", kind=kind.value, operation_id=operation_id)

    def report_progress(self, progress: float, current_collection: str | None) -> None:
        """Update progress of the running operation (no-op when idle)."""
        with self._lock:
            current = self._view.current_operation
            if current is None:
                return
            self._view = replace(
                self._view,
                current_operation=replace(
                    current,
                    progress=max(0.0, min(1.0, progress)),
                    current_collection=current_collection,
                ),
            )

    # ------------------------------------------------------------------
    # Writers (call only while holding the slot)
    # ------------------------------------------------------------------

    def record_backup(self, record: BackupRecord) -> None:
        """Push a completed backup to the front of history and make it the last backup."""
        with self._lock:
            counters = self._view.counters
            self._view = replace(
                self._view,
                last_backup=record,
                backup_history=(record,) + self._view.backup_history,
                counters=replace(
                    counters,
                    total_backups=counters.total_backups + 1,
                    successful_backups=counters.successful_backups + 1,
                ),
            )

    def record_backup_failure(self) -> None:
        with self._lock:
            counters = self._view.counters
            self._view = replace(
                self._view,
                counters=replace(
                    counters,
                    total_backups=counters.total_backups + 1,
                    failed_backups=counters.failed_backups + 1,
                ),
            )

    def record_recovery(self, record: RecoveryRecord) -> None:
        with self._lock:
            counters = self._view.counters
            successful = counters.successful_recoveries
            if record.status == RecoveryStatus.COMPLETED:
                successful += 1
            self._view = replace(
                self._view,
                recovery_history=(record,) + self._view.recovery_history,
                counters=replace(
                    counters,
                    total_recoveries=counters.total_recoveries + 1,
                    successful_recoveries=successful,
                ),
            )

    def record_recovery_failure(self) -> None:
        with self._lock:
            counters = self._view.counters
            self._view = replace(
                self._view,
                counters=replace(
                    counters,
                    total_recoveries=counters.total_recoveries + 1,
                    failed_recoveries=counters.failed_recoveries + 1,
                ),
            )

    def remove_backup(self, backup_id: str) -> BackupRecord | None:
        """
        Remove a backup record from history.

        If it was the last backup, the newest remaining record takes its place.
        """
        with self._lock:
            history = self._view.backup_history
            removed = next((r for r in history if r.id == backup_id), None)
            if removed is None:
                return None

            remaining = tuple(r for r in history if r.id != backup_id)
            last_backup = self._view.last_backup
            if last_backup is not None and last_backup.id == backup_id:
                last_backup = remaining[0] if remaining else None

            self._view = replace(
                self._view,
                backup_history=remaining,
                last_backup=last_backup,
            )
            return removed

    def load_history(self, records: Iterable[BackupRecord]) -> None:
        """
        Seed backup history (e.g. from the audit trail at startup).

        Records are ordered most recent first; counters are left untouched.
        """
        ordered = tuple(sorted(records, key=lambda r: r.created_at, reverse=True))
        with self._lock:
            self._view = replace(
                self._view,
                backup_history=ordered,
                last_backup=ordered[0] if ordered else None,
            )
