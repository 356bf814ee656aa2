# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for edubackup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_invalid_mongo_url(value: str | None) -> str:
    """
    Explain that the MongoDB connection URL is invalid.
    """

    return (
        f"Invalid MONGODB_URI value: {value!r}. "
        "It must start with 'mongodb://' or 'mongodb+srv://'."
    )


def explain_invalid_retention_count_env(value: str | None) -> str:
    """
    Explain that EDUBACKUP_RETENTION_COUNT is invalid.
    """

    return (
        f"Invalid EDUBACKUP_RETENTION_COUNT value: {value!r}. "
        "It must be a positive integer number of backups to keep."
    )


def explain_invalid_interval_env(value: str | None) -> str:
    """
    Explain that EDUBACKUP_INTERVAL_HOURS is invalid.
    """

    return (
        f"Invalid EDUBACKUP_INTERVAL_HOURS value: {value!r}. "
        "It must be a positive number of hours, e.g. '24' or '0.5'."
    )


def explain_invalid_initial_delay_env(value: str | None) -> str:
    """
    Explain that EDUBACKUP_INITIAL_DELAY_SECONDS is invalid.
    """

    return (
        f"Invalid EDUBACKUP_INITIAL_DELAY_SECONDS value: {value!r}. "
        "It must be a non-negative number of seconds."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    """
    Explain that a boolean environment variable could not be parsed.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "Expected one of: '1', 'true', 'yes', 'on', '0', 'false', 'no', 'off'."
    )


def explain_invalid_artifact_name(file_name: str) -> str:
    """
    Explain that a restore was requested for something that is not a backup file.
    """

    return (
        f"{file_name!r} is not a backup file name. "
        "Expected 'backup-<timestamp>.json' as listed by the backup history."
    )
