# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for docbackup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_collections_argument() -> str:
    """
    Explain that collections configuration is required.
    """

    return (
        "collections configuration is required but was not provided. "
        "docbackup cannot guess which collections to back up. "
        "Pass collections=[\"products\", \"categories\", ...] to create_config_from_env() or create_config()."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    """
    Explain that a boolean environment variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "Expected one of: 'true', 'false', '1', '0', 'yes', 'no'."
    )


def explain_invalid_max_backups_env(value: str | None) -> str:
    """
    Explain that DOCBACKUP_MAX_BACKUPS is invalid.
    """

    return (
        f"Invalid DOCBACKUP_MAX_BACKUPS value: {value!r}. "
        "It must be a non-negative integer number of backups to keep."
    )


def explain_invalid_max_age_days_env(value: str | None) -> str:
    """
    Explain that DOCBACKUP_MAX_AGE_DAYS is invalid.
    """

    return (
        f"Invalid DOCBACKUP_MAX_AGE_DAYS value: {value!r}. "
        "It must be a non-negative number of days."
    )


def explain_invalid_schedule_hours_env(value: str | None) -> str:
    """
    Explain that DOCBACKUP_SCHEDULE_HOURS is invalid.
    """

    return (
        f"Invalid DOCBACKUP_SCHEDULE_HOURS value: {value!r}. "
        "It must be a positive number of hours, or leave unset to disable scheduled backups."
    )


def explain_unknown_backup_kind(value: object) -> str:
    """
    Explain that a requested backup kind is not supported.
    """

    return (
        f"Unknown backup kind: {value!r}. "
        "Expected 'full' or 'incremental'."
    )


def explain_invalid_full_backup_hours_env(value: str | None) -> str:
    """
    Explain that DOCBACKUP_FULL_BACKUP_HOURS is invalid.
    """

    return (
        f"Invalid DOCBACKUP_FULL_BACKUP_HOURS value: {value!r}. "
        "It must be a positive number of hours, or 'off' to keep scheduled backups incremental."
    )


def explain_unknown_config_options(unknown: list, known: list) -> str:
    """
    Explain that create_config() received options it does not recognise.
    """

    return (
        f"Unknown configuration option(s): {', '.join(sorted(unknown))}. "
        f"Valid options are: {', '.join(sorted(known))}."
    )
