# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

Builds a BackupConfig from the environment variables the admin server
already uses for its database connection, plus a few backup-specific ones.
"""

from __future__ import annotations

import os
from pathlib import Path

from edubackup.builder import create_config
from edubackup.config import BackupConfig
from edubackup.errors import (
    explain_invalid_bool_env,
    explain_invalid_initial_delay_env,
    explain_invalid_interval_env,
    explain_invalid_mongo_url,
    explain_invalid_retention_count_env,
)
from edubackup.exceptions import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_retention_count(value: str | None) -> int | None:
    if not value:
        return None
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_retention_count_env(value)) from exc
    if count < 1:
        raise ConfigurationError(explain_invalid_retention_count_env(value))
    return count


def _parse_interval_hours(value: str | None) -> float | None:
    if not value:
        return None
    try:
        hours = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_interval_env(value)) from exc
    if hours <= 0:
        raise ConfigurationError(explain_invalid_interval_env(value))
    return hours


def _parse_initial_delay(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_initial_delay_env(value)) from exc
    if seconds < 0:
        raise ConfigurationError(explain_invalid_initial_delay_env(value))
    return seconds


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def create_config_from_env() -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    Optional environment variables:
        - EDUBACKUP_DIR: Backup directory (default: ./backups)
        - EDUBACKUP_RECORDS_DB: SQLite file for backup records
        - MONGODB_URI: MongoDB URL (default: mongodb://localhost:27017)
        - MONGODB_DATABASE: Database name (default: school_admin)
        - EDUBACKUP_RETENTION_COUNT: Positive integer (default: 10)
        - EDUBACKUP_INITIAL_DELAY_SECONDS: Non-negative number (default: 5)
        - EDUBACKUP_INTERVAL_HOURS: Positive number (default: 24)
        - EDUBACKUP_SCHEDULE_ENABLED: true/false (default: true)
    """

    mongo_url = os.getenv("MONGODB_URI")
    if mongo_url is not None and not mongo_url.startswith(("mongodb://", "mongodb+srv://")):
        raise ConfigurationError(explain_invalid_mongo_url(mongo_url))

    backup_dir_env = os.getenv("EDUBACKUP_DIR")
    records_db_env = os.getenv("EDUBACKUP_RECORDS_DB")

    return create_config(
        backup_dir=Path(backup_dir_env) if backup_dir_env else None,
        records_db_path=Path(records_db_env) if records_db_env else None,
        mongo_url=mongo_url,
        database_name=os.getenv("MONGODB_DATABASE"),
        retention_count=_parse_retention_count(os.getenv("EDUBACKUP_RETENTION_COUNT")),
        interval_hours=_parse_interval_hours(os.getenv("EDUBACKUP_INTERVAL_HOURS")),
        initial_delay_seconds=_parse_initial_delay(
            os.getenv("EDUBACKUP_INITIAL_DELAY_SECONDS")
        ),
        schedule_enabled=_parse_bool(
            "EDUBACKUP_SCHEDULE_ENABLED",
            os.getenv("EDUBACKUP_SCHEDULE_ENABLED"),
            default=True,
        ),
    )
