# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and retention profiles.

These helpers are small, convenient wrappers around create_config() and
BackupConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables
- Apply ready-made retention profiles
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from docbackup.builder import create_config
from docbackup.config import DAY_MS, BackupConfig, CollectionSpec, RetentionPolicy
from docbackup.errors import (
    explain_invalid_bool_env,
    explain_invalid_full_backup_hours_env,
    explain_invalid_max_age_days_env,
    explain_invalid_max_backups_env,
    explain_invalid_schedule_hours_env,
    explain_missing_collections_argument,
)
from docbackup.exceptions import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def _parse_max_backups(value: str | None) -> int:
    if not value:
        return 10
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_max_backups_env(value)) from exc
    if count < 0:
        raise ConfigurationError(explain_invalid_max_backups_env(value))
    return count


def _parse_max_age_days(value: str | None) -> float:
    if not value:
        return 30
    try:
        days = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_max_age_days_env(value)) from exc
    if days < 0:
        raise ConfigurationError(explain_invalid_max_age_days_env(value))
    return days


def _parse_schedule_hours(value: str | None) -> float | None:
    if not value:
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_schedule_hours_env(value)) from exc
    if hours <= 0:
        raise ConfigurationError(explain_invalid_schedule_hours_env(value))
    return hours


def _parse_full_backup_hours(value: str | None) -> float | None:
    if not value:
        return 24
    if value.strip().lower() in _FALSE:
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_full_backup_hours_env(value)) from exc
    if hours <= 0:
        raise ConfigurationError(explain_invalid_full_backup_hours_env(value))
    return hours


def create_config_from_env(*, collections: Iterable[str | CollectionSpec]) -> BackupConfig:
    """
    Create a BackupConfig from environment variables plus explicit collections.

    The collection list is never read from the environment: you must
    still provide it explicitly.

    Optional environment variables:
        - DOCBACKUP_PATH: Backup directory (default: ./backups)
        - DOCBACKUP_COMPRESS: true/false (default: true)
        - DOCBACKUP_MAX_BACKUPS: Non-negative integer (default: 10)
        - DOCBACKUP_MAX_AGE_DAYS: Non-negative number of days (default: 30)
        - DOCBACKUP_ENVIRONMENT: Environment label (falls back to APP_ENV, then "development")
        - DOCBACKUP_SCHEMA_VERSION: Schema version label (default: 1.0.0)
        - DOCBACKUP_AUDIT_DB: SQLite audit trail path (optional)
        - DOCBACKUP_SCHEDULE_HOURS: Automatic backup interval in hours (optional)
        - DOCBACKUP_FULL_BACKUP_HOURS: Hours between scheduled full backups
          (default: 24, "off" disables)
    """

    collections = list(collections or [])
    if not collections:
        raise ConfigurationError(explain_missing_collections_argument())

    path_env = os.getenv("DOCBACKUP_PATH")
    backup_path = Path(path_env) if path_env else Path("./backups")
    compress = _parse_bool("DOCBACKUP_COMPRESS", os.getenv("DOCBACKUP_COMPRESS"), True)
    max_backups = _parse_max_backups(os.getenv("DOCBACKUP_MAX_BACKUPS"))
    max_age_days = _parse_max_age_days(os.getenv("DOCBACKUP_MAX_AGE_DAYS"))
    environment = (
        os.getenv("DOCBACKUP_ENVIRONMENT") or os.getenv("APP_ENV") or "development"
    )
    schema_version = os.getenv("DOCBACKUP_SCHEMA_VERSION") or "1.0.0"
    audit_db = os.getenv("DOCBACKUP_AUDIT_DB")
    schedule_hours = _parse_schedule_hours(os.getenv("DOCBACKUP_SCHEDULE_HOURS"))
    full_backup_hours = _parse_full_backup_hours(os.getenv("DOCBACKUP_FULL_BACKUP_HOURS"))

    return create_config(
        collections,
        backup_path=backup_path,
        compress=compress,
        max_backups=max_backups,
        max_age_days=max_age_days,
        audit_db_path=Path(audit_db) if audit_db else None,
        schedule_interval_hours=schedule_hours,
        full_backup_interval_hours=full_backup_hours,
        environment=environment,
        schema_version=schema_version,
    )


# ============================================================================
# Profiles
# ============================================================================

def conservative_retention(config: BackupConfig) -> BackupConfig:
    """
    Apply a keep-more-for-longer retention profile.

    - At least 30 backups
    - At least 90 days of history
    - Compression enabled
    """

    policy = config.retention
    max_backups = policy.max_backups
    if max_backups is not None:
        max_backups = max(max_backups, 30)
    max_age_ms = policy.max_age_ms
    if max_age_ms is not None:
        max_age_ms = max(max_age_ms, 90 * DAY_MS)

    return config.with_updates(
        compress=True,
        retention=RetentionPolicy(max_backups=max_backups, max_age_ms=max_age_ms),
    )


def space_saver(config: BackupConfig) -> BackupConfig:
    """
    Apply a small-footprint retention profile.

    - At most 3 backups
    - At most 7 days of history
    - Compression and auto-cleanup enabled
    """

    policy = config.retention
    max_backups = 3 if policy.max_backups is None else min(policy.max_backups, 3)
    max_age_ms = 7 * DAY_MS if policy.max_age_ms is None else min(policy.max_age_ms, 7 * DAY_MS)

    return config.with_updates(
        compress=True,
        auto_cleanup=True,
        retention=RetentionPolicy(max_backups=max_backups, max_age_ms=max_age_ms),
    )
