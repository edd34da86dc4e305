# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
docbackup Builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict, Iterable

from docbackup.config import (
    DAY_MS,
    BackupConfig,
    ChangeDetector,
    CollectionSpec,
    RetentionPolicy,
)
from docbackup.errors import explain_unknown_config_options


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "collections": (),
        "backup_path": Path("./backups"),
        "compress": True,
        "compression_level": 19,
        "auto_cleanup": True,
        "max_backups": 10,
        "max_age_ms": 30 * DAY_MS,
        "schema_version": "1.0.0",
        "environment": "development",
        "max_concurrent_collections": 1,
        "collection_timeout_seconds": None,
        "audit_db_path": None,
        "schedule_interval_hours": None,
        "full_backup_interval_hours": 24,
    }


def track_collection(
    config: ConfigDict,
    name: str,
    change_detector: ChangeDetector | None = None,
) -> ConfigDict:
    """
    Add a collection to back up. Collections are traversed in the order added.

    Args:
        config: Current configuration dictionary
        name: Collection name
        change_detector: Optional predicate deciding whether a document
            changed since a baseline (incremental backups only)

    Returns:
        New configuration dictionary with the collection appended
    """
    spec = CollectionSpec(name=name, change_detector=change_detector)
    return {**config, "collections": tuple(config["collections"]) + (spec,)}


def with_backup_path(config: ConfigDict, path: Path | str) -> ConfigDict:
    """
    Set the directory used by the filesystem backup store.

    Args:
        config: Current configuration dictionary
        path: Backup directory

    Returns:
        New configuration dictionary with backup path set
    """
    return {**config, "backup_path": Path(path)}


def keep_at_most(config: ConfigDict, max_backups: int | None) -> ConfigDict:
    """
    Keep at most N backups (None disables the count rule).

    Args:
        config: Current configuration dictionary
        max_backups: Maximum number of backups retained by cleanup

    Returns:
        New configuration dictionary with the count limit set
    """
    if max_backups is not None and max_backups < 0:
        raise ValueError(f"max_backups must be >= 0, got {max_backups}")
    return {**config, "max_backups": max_backups}


def expire_after_days(config: ConfigDict, days: float | None) -> ConfigDict:
    """
    Discard backups older than the given number of days (None disables the age rule).

    Args:
        config: Current configuration dictionary
        days: Maximum backup age in days

    Returns:
        New configuration dictionary with the age limit set
    """
    if days is None:
        return {**config, "max_age_ms": None}
    if days < 0:
        raise ValueError(f"retention days must be >= 0, got {days}")
    return {**config, "max_age_ms": int(days * DAY_MS)}


def disable_compression(config: ConfigDict) -> ConfigDict:
    """
    Store snapshots as plain JSON.

    Args:
        config: Current configuration dictionary

    Returns:
        New configuration dictionary with compression disabled
    """
    return {**config, "compress": False}


def with_compression_level(config: ConfigDict, level: int) -> ConfigDict:
    """
    Set the zstd compression level (1-22).
    """
    if not 1 <= level <= 22:
        raise ValueError(f"compression_level must be 1-22, got {level}")
    return {**config, "compress": True, "compression_level": level}


def disable_auto_cleanup(config: ConfigDict) -> ConfigDict:
    """
    Do not run retention cleanup after each backup.

    Args:
        config: Current configuration dictionary

    Returns:
        New configuration dictionary with auto-cleanup disabled
    """
    return {**config, "auto_cleanup": False}


def enable_audit(config: ConfigDict, db_path: Path | str) -> ConfigDict:
    """
    Record every backup, deletion and recovery in an SQLite audit trail.

    Args:
        config: Current configuration dictionary
        db_path: Path to the audit database

    Returns:
        New configuration dictionary with auditing enabled
    """
    return {**config, "audit_db_path": Path(db_path)}


def run_every_hours(config: ConfigDict, hours: float) -> ConfigDict:
    """
    Schedule an automatic backup every N hours.

    Args:
        config: Current configuration dictionary
        hours: Interval between scheduled backups

    Returns:
        New configuration dictionary with the schedule set
    """
    if hours <= 0:
        raise ValueError(f"schedule interval must be > 0 hours, got {hours}")
    return {**config, "schedule_interval_hours": hours}


def full_backup_every_hours(config: ConfigDict, hours: float | None) -> ConfigDict:
    """
    Make a scheduled run take a full backup once the newest full is N hours old.

    None keeps scheduled runs incremental once any full backup exists.
    """
    if hours is not None and hours <= 0:
        raise ValueError(f"full backup interval must be > 0 hours, got {hours}")
    return {**config, "full_backup_interval_hours": hours}


def with_max_concurrent_collections(config: ConfigDict, max_collections: int) -> ConfigDict:
    """
    Set how many collections are read or restored concurrently.

    Args:
        config: Current configuration dictionary
        max_collections: Maximum concurrent collections (1 = sequential)

    Returns:
        New configuration dictionary with max_concurrent_collections set
    """
    if max_collections < 1:
        raise ValueError(f"max_concurrent_collections must be >= 1, got {max_collections}")
    return {**config, "max_concurrent_collections": max_collections}


def with_collection_timeout(config: ConfigDict, seconds: float) -> ConfigDict:
    """
    Bound every per-collection read and write; a timeout is a collection failure.
    """
    if seconds <= 0:
        raise ValueError(f"collection timeout must be > 0 seconds, got {seconds}")
    return {**config, "collection_timeout_seconds": seconds}


def build_config(config_dict: ConfigDict) -> BackupConfig:
    """
    Validate and build an immutable BackupConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable BackupConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    if not config_dict.get("collections"):
        from docbackup.exceptions import ConfigurationError

        raise ConfigurationError("at least one collection is required")

    fields = dict(config_dict)
    retention = RetentionPolicy(
        max_backups=fields.pop("max_backups"),
        max_age_ms=fields.pop("max_age_ms"),
    )
    return BackupConfig(retention=retention, **fields)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

    This allows a more readable pipeline style:

        config = pipe(
            lambda c: track_collection(c, "products"),
            lambda c: keep_at_most(c, 5),
            disable_compression,
        )(create_empty_config())

    Args:
        *funcs: Builder functions to compose

    Returns:
        A single function that applies all functions in sequence
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> BackupConfig:
    """
    Build config by applying a sequence of builder functions.

    This is a convenience function that combines pipe() and build_config().

    Example:
        config = build_from_steps(
            lambda c: track_collection(c, "products"),
            lambda c: track_collection(c, "categories"),
            lambda c: expire_after_days(c, 14),
        )

    Args:
        *steps: Builder functions to apply in sequence

    Returns:
        Validated, immutable BackupConfig instance
    """
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    collections: Iterable[str | CollectionSpec],
    *,
    backup_path: str | Path | None = None,
    compress: bool = True,
    auto_cleanup: bool = True,
    max_backups: int | None = 10,
    max_age_days: float | None = 30,
    audit_db_path: str | Path | None = None,
    schedule_interval_hours: float | None = None,
    full_backup_interval_hours: float | None = 24,
    **kwargs: Any,
) -> BackupConfig:
    """
    Create docbackup configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        collections: Collection names or CollectionSpec objects, in traversal order
        backup_path: Directory for the filesystem store (default: "./backups")
        compress: Compress snapshots with zstd (default: True)
        auto_cleanup: Apply retention after every backup (default: True)
        max_backups: Keep at most this many backups (default: 10)
        max_age_days: Discard backups older than this (default: 30)
        audit_db_path: SQLite audit trail path (optional)
        schedule_interval_hours: Automatic backup interval (optional)
        full_backup_interval_hours: Hours between scheduled full backups
            (default: 24, None disables)
        **kwargs: Additional configuration options (schema_version,
            environment, compression_level, max_concurrent_collections,
            collection_timeout_seconds)

    Raises:
        ConfigurationError: Unknown option in kwargs, or validation failure

    Returns:
        Validated, immutable BackupConfig instance

    Example:
        config = create_config(
            ["products", "categories"],
            backup_path="/var/lib/docbackup",
            max_backups=7,
            environment="production",
        )
    """
    config_dict = create_empty_config()

    for entry in collections:
        if isinstance(entry, CollectionSpec):
            config_dict = track_collection(config_dict, entry.name, entry.change_detector)
        else:
            config_dict = track_collection(config_dict, entry)

    if backup_path:
        config_dict = with_backup_path(config_dict, backup_path)

    if not compress:
        config_dict = disable_compression(config_dict)

    if not auto_cleanup:
        config_dict = disable_auto_cleanup(config_dict)

    config_dict = keep_at_most(config_dict, max_backups)
    config_dict = expire_after_days(config_dict, max_age_days)

    if audit_db_path:
        config_dict = enable_audit(config_dict, audit_db_path)

    if schedule_interval_hours is not None:
        config_dict = run_every_hours(config_dict, schedule_interval_hours)

    config_dict = full_backup_every_hours(config_dict, full_backup_interval_hours)

    unknown = [key for key in kwargs if key not in config_dict]
    if unknown:
        from docbackup.exceptions import ConfigurationError

        raise ConfigurationError(
            explain_unknown_config_options(unknown, list(config_dict)),
            details={"unknown": sorted(unknown)},
        )

    config_dict.update(kwargs)

    return build_config(config_dict)
