# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Snapshot artifacts, directory lifecycle, and restore.
"""

from edubackup.backup.snapshot import (
    artifact_name_for,
    create_snapshot,
    read_snapshot,
    list_collections,
    SnapshotInfo,
)

from edubackup.backup.manager import (
    prune_old_backups,
    delete_latest_backup,
    delete_all_backups,
    get_backup_history,
    get_backup_stats,
    verify_backup,
    BackupHistoryEntry,
    BackupStats,
)

from edubackup.backup.restore import (
    restore_snapshot_file,
    RestoreResult,
)

__all__ = [
    # Snapshot
    "artifact_name_for",
    "create_snapshot",
    "read_snapshot",
    "list_collections",
    "SnapshotInfo",
    # Manager
    "prune_old_backups",
    "delete_latest_backup",
    "delete_all_backups",
    "get_backup_history",
    "get_backup_stats",
    "verify_backup",
    "BackupHistoryEntry",
    "BackupStats",
    # Restore
    "restore_snapshot_file",
    "RestoreResult",
]
