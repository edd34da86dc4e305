# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup - Backup & recovery engine for multi-collection document stores.

Snapshots every configured collection (full or incremental), stores the
snapshot as one optionally zstd-compressed blob, validates and restores it
idempotently, and prunes old backups under a retention policy. At most one
backup, recovery, cleanup or delete runs at a time.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from docbackup.builder import create_config
from docbackup.config import BackupConfig, BackupKind, CollectionSpec, RetentionPolicy

# Core functions
from docbackup.core import (
    EngineState,
    initialize_engine,
    shutdown_engine,
    create_backup,
    list_backups,
    get_status,
    get_backup_info,
    recover,
    validate_backup,
    delete_backup,
    cleanup,
)

# Environment-based configuration and profiles (additional helpers)
from docbackup.env import (
    create_config_from_env,
    conservative_retention,
    space_saver,
)

from docbackup.scheduler import start_backup_schedule, stop_backup_schedule

__all__ = [
    # Version
    "__version__",
    # Configuration
    "create_config",
    "create_config_from_env",
    "conservative_retention",
    "space_saver",
    "BackupConfig",
    "BackupKind",
    "CollectionSpec",
    "RetentionPolicy",
    # Engine lifecycle
    "EngineState",
    "initialize_engine",
    "shutdown_engine",
    # Operations
    "create_backup",
    "list_backups",
    "get_status",
    "get_backup_info",
    "recover",
    "validate_backup",
    "delete_backup",
    "cleanup",
    # Scheduling
    "start_backup_schedule",
    "stop_backup_schedule",
]
