# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Vault - Backup record audit trail and artifact compression.
"""

from edubackup.vault.records import (
    init_records_db,
    check_records_db,
    create_backup_record,
    complete_backup_record,
    fail_backup_record,
    get_backup_record,
    get_latest_backup_record,
    list_backup_records,
    get_record_stats,
    BackupRecord,
    CollectionCount,
)

from edubackup.vault.compressor import (
    compress_file,
    decompress_file,
)

__all__ = [
    # Record store
    "init_records_db",
    "check_records_db",
    "create_backup_record",
    "complete_backup_record",
    "fail_backup_record",
    "get_backup_record",
    "get_latest_backup_record",
    "list_backup_records",
    "get_record_stats",
    # Types
    "BackupRecord",
    "CollectionCount",
    # Compressor
    "compress_file",
    "decompress_file",
]
