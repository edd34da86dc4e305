# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Retention Manager - Keep at most N backups, none older than T.

The last backup and the full backup it is based on are protected and
always occupy retention slots. The remaining slots go to the newest
unprotected backups; every other unprotected backup, and any unprotected
backup older than max_age_ms, is eligible for deletion. Since incrementals
are always based on a full backup, history never exceeds max(N, 2).

A record is removed from history only after its blob was deleted; a failed
blob deletion keeps the record so the blob is not forgotten.
"""

from datetime import datetime
from typing import Callable, List, Sequence, Set, Tuple

import structlog

from docbackup.config import RetentionPolicy
from docbackup.models import BackupRecord, CleanupResult
from docbackup.registry import BackupRegistry
from docbackup.vault.audit import AuditTrail
from docbackup.vault.base import BackupStore

logger = structlog.get_logger()


def protected_backup_ids(
    last_backup: BackupRecord | None,
    history: Sequence[BackupRecord],
) -> Set[str]:
    """Ids of the last backup and the baselines it transitively depends on."""
    by_id = {record.id: record for record in history}
    protected: Set[str] = set()
    current = last_backup
    while current is not None and current.id not in protected:
        protected.add(current.id)
        current = by_id.get(current.based_on_id) if current.based_on_id else None
    return protected


def select_for_deletion(
    history: Sequence[BackupRecord],
    policy: RetentionPolicy,
    now: datetime,
    protected_ids: Set[str],
) -> Tuple[List[BackupRecord], List[BackupRecord]]:
    """
    Apply the retention rule to a most-recent-first history.

    Returns:
        (eligible, protected): eligible records oldest first, and protected
        records that would otherwise have been over the count or age limit
    """
    eligible: List[BackupRecord] = []
    protected: List[BackupRecord] = []

    slots = None
    if policy.max_backups is not None:
        held = sum(1 for record in history if record.id in protected_ids)
        slots = max(0, policy.max_backups - held)

    unprotected_rank = 0
    for rank, record in enumerate(history):
        age_ms = (now - record.created_at).total_seconds() * 1000
        too_old = policy.max_age_ms is not None and age_ms > policy.max_age_ms

        if record.id in protected_ids:
            if too_old or (policy.max_backups is not None and rank >= policy.max_backups):
                protected.append(record)
            continue

        over_count = slots is not None and unprotected_rank >= slots
        unprotected_rank += 1
        if over_count or too_old:
            eligible.append(record)

    eligible.reverse()
    return eligible, protected


class RetentionManager:
    """Deletes expired backups from the store and the registry."""

    def __init__(
        self,
        registry: BackupRegistry,
        store: BackupStore,
        policy: RetentionPolicy,
        clock: Callable[[], datetime],
        audit: AuditTrail | None = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.policy = policy
        self.clock = clock
        self.audit = audit

    async def cleanup(
        self,
        policy: RetentionPolicy | None = None,
        dry_run: bool = False,
    ) -> CleanupResult:
        """
        Delete every eligible backup, oldest first.

        Must run while the caller holds the registry's operation slot
        (unless dry_run, which changes nothing).

        Args:
            policy: Override the configured policy for this run
            dry_run: Only report what would be deleted

        Returns:
            CleanupResult with deleted, failed and protected records
        """
        policy = policy or self.policy
        view = self.registry.view()
        eligible, protected = select_for_deletion(
            view.backup_history,
            policy,
            self.clock(),
            protected_backup_ids(view.last_backup, view.backup_history),
        )

        result = CleanupResult(protected=protected, dry_run=dry_run)

        for record in protected:
            logger.info("retention_backup_protected", backup_id=record.id)

        if dry_run:
            result.deleted = eligible
            logger.info(
                "retention_cleanup_complete",
                would_delete=len(eligible),
                protected=len(protected),
                dry_run=True,
            )
            return result

        for record in eligible:
            try:
                await self.store.delete(record.storage_key)
            except Exception as e:
                logger.error(
                    "retention_delete_failed",
                    backup_id=record.id,
                    storage_key=record.storage_key,
                    error=str(e),
                )
                result.failed.append(record)
                continue

            self.registry.remove_backup(record.id)
            result.deleted.append(record)
            logger.info(
                "retention_backup_deleted",
                backup_id=record.id,
                storage_key=record.storage_key,
                size_bytes=record.size_bytes,
            )
            if self.audit:
                await self.audit.backup_deleted(record.id)

        logger.info(
            "retention_cleanup_complete",
            deleted=len(result.deleted),
            failed=len(result.failed),
            protected=len(protected),
            dry_run=False,
        )
        return result
