# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so a running
scheduler and concurrent admin requests always see the same settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List


class BackupType(str, Enum):
    """What triggered a backup attempt."""

    MANUAL = "manual"  # Admin pressed the button
    SCHEDULED = "scheduled"  # Recurring timer
    INITIAL = "initial"  # Shortly after process start


class BackupStatus(str, Enum):
    """Lifecycle of a backup record. Moves forward only."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


def _validate_mongo_url(url: str) -> bool:
    """Validate that the URL uses a MongoDB scheme."""
    if not url:
        return False
    return url.startswith(("mongodb://", "mongodb+srv://"))


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for the backup subsystem.

    This configuration is frozen after creation to ensure the scheduler
    and request handlers never observe a half-updated config.
    """

    # Directory holding backup-*.json and backup-*.json.gz
    backup_dir: Path = field(default_factory=lambda: Path("./backups"))

    # SQLite file for backup records (default: <backup_dir>/backup_records.db)
    records_db_path: Path | None = None

    # MongoDB connection URL
    mongo_url: str = "mongodb://localhost:27017"

    # Database to back up
    database_name: str = "school_admin"

    # Number of most recent snapshots kept by cleanup
    retention_count: int = 10

    # Delay before the "initial" backup after process start
    initial_delay_seconds: float = 5.0

    # Period of "scheduled" backups
    interval_hours: float = 24.0

    # Run the scheduler at all
    schedule_enabled: bool = True

    # gzip compression level (1-9)
    compression_level: int = 9

    # MongoDB server selection timeout
    server_timeout_ms: int = 5000

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not _validate_mongo_url(self.mongo_url):
            errors.append(f"Invalid mongo_url: {self.mongo_url}")

        if not self.database_name:
            errors.append("database_name must not be empty")

        if self.retention_count < 1:
            errors.append(f"retention_count must be >= 1, got {self.retention_count}")

        if self.initial_delay_seconds < 0:
            errors.append(
                f"initial_delay_seconds must be >= 0, got {self.initial_delay_seconds}"
            )

        if self.interval_hours <= 0:
            errors.append(f"interval_hours must be > 0, got {self.interval_hours}")

        if not 1 <= self.compression_level <= 9:
            errors.append(
                f"compression_level must be 1-9, got {self.compression_level}"
            )

        if self.server_timeout_ms < 1:
            errors.append(
                f"server_timeout_ms must be >= 1, got {self.server_timeout_ms}"
            )

        # Raise all errors at once
        if errors:
            from edubackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def resolved_records_db_path(self) -> Path:
        """Path of the backup record database."""
        if self.records_db_path is not None:
            return self.records_db_path
        return self.backup_dir / "backup_records.db"

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return BackupConfig(**current)
