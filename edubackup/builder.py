# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict

from edubackup.config import BackupConfig


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "backup_dir": Path("./backups"),
        "records_db_path": None,
        "mongo_url": "mongodb://localhost:27017",
        "database_name": "school_admin",
        "retention_count": 10,
        "initial_delay_seconds": 5.0,
        "interval_hours": 24.0,
        "schedule_enabled": True,
        "compression_level": 9,
        "server_timeout_ms": 5000,
    }


def with_backup_dir(config: ConfigDict, backup_dir: Path | str) -> ConfigDict:
    """
    Set the directory where snapshot artifacts are written.

    Args:
        config: Current configuration dictionary
        backup_dir: Backup directory

    Returns:
        New configuration dictionary with backup_dir set
    """
    return {**config, "backup_dir": Path(backup_dir)}


def with_records_db(config: ConfigDict, db_path: Path | str) -> ConfigDict:
    """
    Store backup records in a specific SQLite file.

    Args:
        config: Current configuration dictionary
        db_path: Path to the SQLite database file

    Returns:
        New configuration dictionary with records_db_path set
    """
    return {**config, "records_db_path": Path(db_path)}


def with_database(config: ConfigDict, mongo_url: str, database_name: str) -> ConfigDict:
    """
    Set the MongoDB database to back up.

    Args:
        config: Current configuration dictionary
        mongo_url: MongoDB connection URL
        database_name: Database name

    Returns:
        New configuration dictionary with the database set
    """
    return {**config, "mongo_url": mongo_url, "database_name": database_name}


def keep_last(config: ConfigDict, count: int) -> ConfigDict:
    """
    Set how many of the most recent backups cleanup keeps.

    Args:
        config: Current configuration dictionary
        count: Number of backups to keep

    Returns:
        New configuration dictionary with retention_count set
    """
    if count < 1:
        raise ValueError(f"retention count must be >= 1, got {count}")
    return {**config, "retention_count": count}


def run_every(
    config: ConfigDict,
    hours: float,
    initial_delay_seconds: float | None = None,
) -> ConfigDict:
    """
    Set the backup schedule.

    Args:
        config: Current configuration dictionary
        hours: Interval between scheduled backups
        initial_delay_seconds: Delay of the first backup after start

    Returns:
        New configuration dictionary with the schedule set
    """
    if hours <= 0:
        raise ValueError(f"interval hours must be > 0, got {hours}")
    updated = {**config, "interval_hours": hours, "schedule_enabled": True}
    if initial_delay_seconds is not None:
        if initial_delay_seconds < 0:
            raise ValueError(
                f"initial delay must be >= 0, got {initial_delay_seconds}"
            )
        updated["initial_delay_seconds"] = initial_delay_seconds
    return updated


def disable_schedule(config: ConfigDict) -> ConfigDict:
    """
    Disable the initial and recurring backups.

    Backups then only happen when create_backup() is called directly.
    """
    return {**config, "schedule_enabled": False}


def build_config(config_dict: ConfigDict) -> BackupConfig:
    """
    Validate and build an immutable BackupConfig from a configuration dictionary.

    Raises:
        ConfigurationError: If validation fails
    """
    return BackupConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

        config = pipe(
            lambda c: with_backup_dir(c, "/var/backups/school"),
            lambda c: keep_last(c, 5),
            disable_schedule,
        )(create_empty_config())
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def create_config(
    *,
    backup_dir: str | Path | None = None,
    records_db_path: str | Path | None = None,
    mongo_url: str | None = None,
    database_name: str | None = None,
    retention_count: int | None = None,
    interval_hours: float | None = None,
    initial_delay_seconds: float | None = None,
    schedule_enabled: bool = True,
    **kwargs: Any,
) -> BackupConfig:
    """
    Create backup configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        backup_dir: Directory for snapshot artifacts (default: "./backups")
        records_db_path: SQLite file for backup records
                         (default: "<backup_dir>/backup_records.db")
        mongo_url: MongoDB URL (default: "mongodb://localhost:27017")
        database_name: Database to back up (default: "school_admin")
        retention_count: Snapshots kept by cleanup (default: 10)
        interval_hours: Hours between scheduled backups (default: 24)
        initial_delay_seconds: Delay of the initial backup (default: 5)
        schedule_enabled: Whether the scheduler runs (default: True)
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable BackupConfig instance

    Example:
        config = create_config(
            backup_dir="/var/lib/school/backups",
            mongo_url="mongodb://db:27017",
            database_name="school_admin",
            interval_hours=12,
        )
    """
    config_dict = create_empty_config()

    if backup_dir:
        config_dict = with_backup_dir(config_dict, backup_dir)

    if records_db_path:
        config_dict = with_records_db(config_dict, records_db_path)

    if mongo_url or database_name:
        config_dict = with_database(
            config_dict,
            mongo_url or config_dict["mongo_url"],
            database_name or config_dict["database_name"],
        )

    if retention_count is not None:
        config_dict = keep_last(config_dict, retention_count)

    if interval_hours is not None:
        config_dict = run_every(config_dict, interval_hours, initial_delay_seconds)
    elif initial_delay_seconds is not None:
        config_dict = run_every(
            config_dict, config_dict["interval_hours"], initial_delay_seconds
        )

    if not schedule_enabled:
        config_dict = disable_schedule(config_dict)

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
