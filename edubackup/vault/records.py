# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Record Store - Audit trail of backup attempts.

One row per attempted backup file name. A row is created as in_progress
before any file is written and is finalized exactly once, to completed
(with sizes and per-collection counts) or to failed (with the error).
Finalizing an already-final row is refused, so a stale failure can never
overwrite a completed backup.

The backup directory stays the source of truth for what can be restored;
these rows are only history and statistics.
"""

import json
import sqlite3
from datetime import datetime, UTC
from pathlib import Path
from typing import List, TypedDict

import aiosqlite
import structlog
from ulid import ULID

from edubackup.config import BackupStatus
from edubackup.exceptions import RecordStoreError

logger = structlog.get_logger()


class CollectionCount(TypedDict):
    """Document count of one collection inside a snapshot."""

    name: str
    count: int


class BackupRecord(TypedDict):
    """Record of one backup attempt."""

    id: str  # ULID
    file_name: str
    original_file_name: str
    file_path: str
    compressed_path: str
    size: int | None
    compressed_size: int | None
    document_count: int | None
    collections: List[CollectionCount]
    status: str  # in_progress, completed, failed
    backup_type: str  # manual, scheduled, initial
    triggered_by: str
    error: str | None
    created_at: str  # ISO 8601
    completed_at: str | None  # ISO 8601 or None


_RECORD_COLUMNS = """
    id, file_name, original_file_name, file_path, compressed_path, size,
    compressed_size, document_count, collections, status, backup_type,
    triggered_by, error, created_at, completed_at
"""


def _row_to_record(row) -> BackupRecord:
    return BackupRecord(
        id=row[0],
        file_name=row[1],
        original_file_name=row[2],
        file_path=row[3],
        compressed_path=row[4],
        size=row[5],
        compressed_size=row[6],
        document_count=row[7],
        collections=json.loads(row[8]) if row[8] else [],
        status=row[9],
        backup_type=row[10],
        triggered_by=row[11],
        error=row[12],
        created_at=row[13],
        completed_at=row[14],
    )


async def init_records_db(db_path: Path) -> None:
    """
    Initialize the backup record schema.

    Creates tables if they don't exist. This is idempotent.

    Args:
        db_path: Path to the SQLite database file
    """
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS backups (
                    id TEXT PRIMARY KEY,
                    file_name TEXT NOT NULL UNIQUE,
                    original_file_name TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    compressed_path TEXT NOT NULL,
                    size INTEGER,
                    compressed_size INTEGER,
                    document_count INTEGER,
                    collections TEXT,
                    status TEXT NOT NULL,
                    backup_type TEXT NOT NULL,
                    triggered_by TEXT NOT NULL,
                    error TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_backups_created_at
                ON backups(created_at)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_backups_status
                ON backups(status)
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_backups_backup_type
                ON backups(backup_type)
            """)

            await db.commit()

        logger.info("records_db_initialized", db_path=str(db_path))

    except Exception as e:
        raise RecordStoreError(
            f"Failed to initialize backup record database: {e}",
            details={"db_path": str(db_path)},
        )


async def check_records_db(db_path: Path) -> bool:
    """
    Check whether the record store can be opened and queried.

    Returns:
        True if the backups table answers a query
    """
    if not db_path.exists():
        return False
    try:
        async with aiosqlite.connect(db_path) as db:
            async with db.execute("SELECT COUNT(*) FROM backups") as cursor:
                await cursor.fetchone()
        return True
    except Exception as e:
        logger.warning("records_db_unavailable", db_path=str(db_path), error=str(e))
        return False


async def create_backup_record(
    db: aiosqlite.Connection,
    file_name: str,
    file_path: str,
    compressed_path: str,
    backup_type: str,
    triggered_by: str,
) -> str:
    """
    Record the start of a backup attempt.

    Must be called before any artifact is written.

    Args:
        db: SQLite database connection
        file_name: Snapshot artifact name (unique per attempt)
        file_path: Full path of the snapshot artifact
        compressed_path: Full path of the compressed sibling
        backup_type: manual, scheduled, or initial
        triggered_by: Who started the backup

    Returns:
        Record ID (ULID)

    Raises:
        RecordStoreError: If a record for file_name already exists
    """
    record_id = str(ULID())
    now = datetime.now(UTC).isoformat()

    try:
        await db.execute(
            """
            INSERT INTO backups
            (id, file_name, original_file_name, file_path, compressed_path,
             collections, status, backup_type, triggered_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record_id,
                file_name,
                file_name,
                file_path,
                compressed_path,
                json.dumps([]),
                BackupStatus.IN_PROGRESS.value,
                backup_type,
                triggered_by,
                now,
            ),
        )
        await db.commit()
    except sqlite3.IntegrityError as e:
        raise RecordStoreError(
            f"Backup record already exists: {file_name}",
            details={"file_name": file_name, "error": str(e)},
        )

    logger.info(
        "backup_record_created",
        backup_id=record_id,
        file_name=file_name,
        backup_type=backup_type,
    )

    return record_id


async def complete_backup_record(
    db: aiosqlite.Connection,
    file_name: str,
    size: int,
    compressed_size: int,
    document_count: int,
    collections: List[CollectionCount],
) -> bool:
    """
    Mark an in_progress record as completed with its statistics.

    Returns:
        True if the record moved to completed, False if it was not
        in_progress (missing or already final)
    """
    now = datetime.now(UTC).isoformat()

    cursor = await db.execute(
        """
        UPDATE backups
        SET status = ?, size = ?, compressed_size = ?, document_count = ?,
            collections = ?, completed_at = ?
        WHERE file_name = ? AND status = ?
        """,
        (
            BackupStatus.COMPLETED.value,
            size,
            compressed_size,
            document_count,
            json.dumps(collections),
            now,
            file_name,
            BackupStatus.IN_PROGRESS.value,
        ),
    )
    await db.commit()

    return _check_transition(cursor.rowcount, file_name, BackupStatus.COMPLETED)


async def fail_backup_record(
    db: aiosqlite.Connection,
    file_name: str,
    error: str,
) -> bool:
    """
    Mark an in_progress record as failed.

    Returns:
        True if the record moved to failed, False if it was not
        in_progress (missing or already final)
    """
    now = datetime.now(UTC).isoformat()

    cursor = await db.execute(
        """
        UPDATE backups
        SET status = ?, error = ?, completed_at = ?
        WHERE file_name = ? AND status = ?
        """,
        (
            BackupStatus.FAILED.value,
            error,
            now,
            file_name,
            BackupStatus.IN_PROGRESS.value,
        ),
    )
    await db.commit()

    return _check_transition(cursor.rowcount, file_name, BackupStatus.FAILED)


def _check_transition(rowcount: int, file_name: str, target: BackupStatus) -> bool:
    if rowcount > 0:
        logger.info("backup_record_finalized", file_name=file_name, status=target.value)
        return True

    logger.warning(
        "backup_record_transition_rejected",
        file_name=file_name,
        target_status=target.value,
    )
    return False


async def get_backup_record(
    db: aiosqlite.Connection,
    file_name: str,
) -> BackupRecord | None:
    """
    Get the record for a snapshot file name.

    Returns:
        Backup record or None if not found
    """
    async with db.execute(
        f"SELECT {_RECORD_COLUMNS} FROM backups WHERE file_name = ?",
        (file_name,),
    ) as cursor:
        row = await cursor.fetchone()
        return _row_to_record(row) if row else None


async def get_latest_backup_record(
    db: aiosqlite.Connection,
    status: str | None = None,
) -> BackupRecord | None:
    """
    Get the most recently created record, optionally filtered by status.
    """
    records = await list_backup_records(db, limit=1, status=status)
    return records[0] if records else None


async def list_backup_records(
    db: aiosqlite.Connection,
    limit: int = 50,
    offset: int = 0,
    status: str | None = None,
) -> List[BackupRecord]:
    """
    List backup records newest-first with pagination.

    Args:
        db: SQLite database connection
        limit: Maximum number of records to return
        offset: Number of records to skip
        status: Optional filter by status

    Returns:
        List of backup records
    """
    query = f"SELECT {_RECORD_COLUMNS} FROM backups"
    params: List = []

    if status:
        query += " WHERE status = ?"
        params.append(status)

    query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    records: List[BackupRecord] = []

    async with db.execute(query, params) as cursor:
        async for row in cursor:
            records.append(_row_to_record(row))

    return records


async def get_record_stats(db: aiosqlite.Connection) -> dict:
    """
    Get statistics over all backup records.

    Returns:
        Dict with totals by status and type and the last completed record
    """
    stats = {}

    async with db.execute("SELECT COUNT(*) FROM backups") as cursor:
        row = await cursor.fetchone()
        stats["total_records"] = row[0] if row else 0

    async with db.execute(
        "SELECT status, COUNT(*) FROM backups GROUP BY status"
    ) as cursor:
        stats["records_by_status"] = {row[0]: row[1] async for row in cursor}

    async with db.execute(
        "SELECT backup_type, COUNT(*) FROM backups GROUP BY backup_type"
    ) as cursor:
        stats["records_by_type"] = {row[0]: row[1] async for row in cursor}

    async with db.execute(
        "SELECT SUM(size), SUM(compressed_size) FROM backups WHERE status = ?",
        (BackupStatus.COMPLETED.value,),
    ) as cursor:
        row = await cursor.fetchone()
        stats["total_completed_bytes"] = row[0] or 0
        stats["total_completed_compressed_bytes"] = row[1] or 0

    stats["last_completed"] = await get_latest_backup_record(
        db, status=BackupStatus.COMPLETED.value
    )

    return stats
