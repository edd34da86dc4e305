# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Scheduler - Automatic backups on a fixed interval.

A scheduled run takes a full backup when there is none in history or the
newest one is at least full_backup_interval_hours old, and an incremental
based on that full otherwise. Every run applies retention afterwards.

A scheduled run that collides with another operation, or fails, is logged
and skipped; the next interval tries again.
"""

from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from docbackup.config import BackupKind
from docbackup.exceptions import ConflictError, DocBackupError

if TYPE_CHECKING:
    from docbackup.core import EngineState

logger = structlog.get_logger()

JOB_ID = "docbackup_scheduled_backup"


def scheduled_backup_kind(state: "EngineState") -> BackupKind:
    """Kind of backup the next scheduled run should take."""
    interval = state["config"].full_backup_interval_hours
    newest_full = state["registry"].latest_backup(BackupKind.FULL)
    if newest_full is None:
        return BackupKind.FULL
    if interval is None:
        return BackupKind.INCREMENTAL
    age = state["clock"]() - newest_full.created_at
    if age >= timedelta(hours=interval):
        return BackupKind.FULL
    return BackupKind.INCREMENTAL


async def run_scheduled_backup(state: "EngineState") -> None:
    """Run one scheduled backup with auto-cleanup, never raising."""
    from docbackup.core import create_backup

    kind = scheduled_backup_kind(state)
    logger.info("scheduled_backup_starting", kind=kind.value)
    try:
        record = await create_backup(
            state,
            kind,
            auto_cleanup=True,
            requested_by="scheduler",
        )
    except ConflictError as e:
        logger.warning("scheduled_backup_skipped", reason="operation_in_progress", error=str(e))
        return
    except DocBackupError as e:
        logger.error("scheduled_backup_failed", error=str(e))
        return

    logger.info(
        "scheduled_backup_completed",
        backup_id=record.id,
        kind=record.kind.value,
        size_bytes=record.size_bytes,
    )


def start_backup_schedule(state: "EngineState", interval_hours: float) -> AsyncIOScheduler:
    """
    Start running scheduled backups every interval_hours.

    Must be called from within a running event loop. Replaces any
    schedule already attached to the state.
    """
    if interval_hours <= 0:
        raise ValueError(f"interval_hours must be > 0, got {interval_hours}")

    if state["scheduler"] is not None:
        stop_backup_schedule(state)

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_scheduled_backup,
        trigger=IntervalTrigger(hours=interval_hours),
        args=[state],
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    state["scheduler"] = scheduler

    job = scheduler.get_job(JOB_ID)
    logger.info(
        "scheduled_backup_started",
        interval_hours=interval_hours,
        next_run=job.next_run_time.isoformat() if job and job.next_run_time else None,
    )
    return scheduler


def stop_backup_schedule(state: "EngineState") -> None:
    scheduler = state["scheduler"]
    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    state["scheduler"] = None
    logger.info("scheduled_backup_stopped")
