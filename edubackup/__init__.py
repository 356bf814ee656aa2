# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup - Full-database backup and restore for the school admin server.

Dumps every collection of the MongoDB database into a versioned JSON
snapshot with a gzip copy, keeps the last ten, records each attempt in a
SQLite audit trail, restores a snapshot on request, and runs an initial
and a recurring backup on a timer.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from edubackup.builder import create_config
from edubackup.env import create_config_from_env

# Core functions
from edubackup.core import (
    initialize_backup_state,
    create_backup,
    restore_backup,
    get_backup_history,
    get_backup_stats,
    delete_latest_backup,
    delete_all_backups,
    verify_backup,
    list_backup_attempts,
    get_metrics,
    shutdown_backup_state,
)

__all__ = [
    # Version
    "__version__",
    # Configuration creation
    "create_config",
    "create_config_from_env",
    # Core orchestration functions
    "initialize_backup_state",
    "create_backup",
    "restore_backup",
    "get_backup_history",
    "get_backup_stats",
    "delete_latest_backup",
    "delete_all_backups",
    "verify_backup",
    "list_backup_attempts",
    "get_metrics",
    "shutdown_backup_state",
]
