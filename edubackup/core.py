# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Core - Backup orchestrator.

This module coordinates all the components: the document database,
snapshot writer, compressor, record store, and retention cleanup.

create_backup() takes one of two paths:

- full path: the record store is reachable. The newest existing backup is
  deleted, an in_progress record is created, the snapshot is written and
  compressed, the record is completed, and old backups beyond the retention
  window are removed.
- degraded (file-only) path: the record store is unreachable. Every
  existing backup is deleted first, then the snapshot is written and
  compressed without a record.

Only one create or restore runs at a time per BackupState; a second caller
is turned away instead of racing on the backup directory.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, List, Tuple, TypedDict

import aiosqlite
import structlog

from edubackup.backup import manager
from edubackup.backup.restore import RestoreResult, restore_snapshot_file
from edubackup.backup.snapshot import (
    artifact_name_for,
    compressed_path_for,
    create_snapshot,
)
from edubackup.config import BackupConfig, BackupType
from edubackup.database import DocumentDatabase, MotorDatabase
from edubackup.exceptions import BackupError, EduBackupError, RecordStoreError
from edubackup.vault.compressor import compress_file
from edubackup.vault.records import (
    BackupRecord,
    check_records_db,
    complete_backup_record,
    create_backup_record,
    fail_backup_record,
    get_record_stats,
    init_records_db,
    list_backup_records,
)

logger = structlog.get_logger()

BACKUP_IN_PROGRESS = "backup already in progress"


@dataclass
class BackupResult:
    """Result of a backup attempt."""

    success: bool
    backup_type: str
    triggered_by: str
    file_name: str | None = None
    size: int | None = None
    compressed_size: int | None = None
    document_count: int | None = None
    backup_id: str | None = None
    degraded: bool = False
    error: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "fileName": self.file_name,
            "size": self.size,
            "compressedSize": self.compressed_size,
            "documentCount": self.document_count,
            "backupId": self.backup_id,
        }


@dataclass
class BackupMetrics:
    """Metrics for backup operations."""

    total_backups: int
    total_failures: int
    total_restores: int
    last_backup_at: datetime | None
    last_error: str | None
    backups_on_disk: int
    bytes_on_disk: int
    records: dict


class BackupState(TypedDict):
    """Runtime state for backup operations."""

    backup_dir: Path
    records_db_path: Path
    database: Any  # DocumentDatabase
    lock: asyncio.Lock
    scheduler: Any  # AsyncIOScheduler when started
    last_backup_at: datetime | None
    total_backups: int
    total_failures: int
    total_restores: int
    last_error: str | None
    last_file_name: str | None


async def initialize_backup_state(
    config: BackupConfig,
    database: DocumentDatabase | None = None,
) -> BackupState:
    """
    Initialize runtime state for backup operations.

    Creates the backup directory and the record schema and connects to the
    document database. A record store that cannot be initialized is not
    fatal: backups then take the file-only path.

    Args:
        config: Backup configuration
        database: Document database; a MotorDatabase is created from the
                  config when omitted

    Returns:
        Initialized BackupState dictionary
    """
    config.backup_dir.mkdir(parents=True, exist_ok=True)
    records_db_path = config.resolved_records_db_path

    try:
        await init_records_db(records_db_path)
    except RecordStoreError as e:
        logger.warning("records_db_init_failed", error=str(e))

    if database is None:
        motor_db = MotorDatabase.from_config(config)
        await motor_db.connect()
        database = motor_db

    return BackupState(
        backup_dir=config.backup_dir,
        records_db_path=records_db_path,
        database=database,
        lock=asyncio.Lock(),
        scheduler=None,
        last_backup_at=None,
        total_backups=0,
        total_failures=0,
        total_restores=0,
        last_error=None,
        last_file_name=None,
    )


async def check_storage(state: BackupState) -> bool:
    """
    Check whether the metadata-backed path can be used.

    Both the document database and the record store must answer. A record
    store whose file went missing is re-created here.
    """
    database_ok = await state["database"].ping()

    records_ok = False
    try:
        await init_records_db(state["records_db_path"])
        records_ok = await check_records_db(state["records_db_path"])
    except RecordStoreError as e:
        logger.warning("records_db_reinit_failed", error=str(e))

    if not (database_ok and records_ok):
        logger.warning(
            "backup_storage_unavailable",
            database_reachable=database_ok,
            records_reachable=records_ok,
        )
        return False
    return True


def _error_message(error: Exception) -> str:
    if isinstance(error, EduBackupError):
        return error.message
    return str(error)


async def create_backup(
    config: BackupConfig,
    state: BackupState,
    backup_type: str | BackupType = BackupType.MANUAL,
    triggered_by: str = "system",
) -> BackupResult:
    """
    Create a full database backup.

    This is the main entry point for backups. It never raises: every
    failure is reported as BackupResult(success=False, error=...).

    Args:
        config: Backup configuration
        state: Runtime state
        backup_type: manual, scheduled, or initial
        triggered_by: Who started the backup (user name or "system")

    Returns:
        BackupResult with file name, sizes, and record ID
    """
    try:
        kind = BackupType(backup_type)
    except ValueError:
        return BackupResult(
            success=False,
            backup_type=str(backup_type),
            triggered_by=triggered_by,
            error=f"Invalid backup type: {backup_type}",
        )

    if state["lock"].locked():
        logger.warning(
            "backup_rejected_in_progress",
            backup_type=kind.value,
            triggered_by=triggered_by,
        )
        return BackupResult(
            success=False,
            backup_type=kind.value,
            triggered_by=triggered_by,
            error=BACKUP_IN_PROGRESS,
        )

    async with state["lock"]:
        logger.info("backup_started", backup_type=kind.value, triggered_by=triggered_by)

        if not await check_storage(state):
            return await _create_backup_file_only(config, state, kind, triggered_by)

        return await _create_backup_with_record(config, state, kind, triggered_by)


async def _create_backup_with_record(
    config: BackupConfig,
    state: BackupState,
    kind: BackupType,
    triggered_by: str,
) -> BackupResult:
    """Full path: backup tracked by a record, followed by retention cleanup."""
    await manager.delete_latest_backup(state["backup_dir"])

    start_time, file_name = await _next_artifact_name(state)
    snapshot_path = state["backup_dir"] / file_name
    compressed_path = compressed_path_for(snapshot_path)

    try:
        async with aiosqlite.connect(state["records_db_path"]) as db:
            backup_id = await create_backup_record(
                db,
                file_name,
                str(snapshot_path),
                str(compressed_path),
                kind.value,
                triggered_by,
            )
    except Exception as e:
        logger.warning("backup_record_create_failed", file=file_name, error=str(e))
        return await _create_backup_file_only(config, state, kind, triggered_by)

    try:
        info = await create_snapshot(state["database"], snapshot_path, start_time)
        compressed_size = await compress_file(
            snapshot_path, compressed_path, config.compression_level
        )

        async with aiosqlite.connect(state["records_db_path"]) as db:
            finalized = await complete_backup_record(
                db,
                file_name,
                info.size,
                compressed_size,
                info.document_count,
                info.collections,
            )
        if not finalized:
            raise BackupError(
                "Backup record is no longer in progress",
                details={"file_name": file_name},
            )

        await manager.prune_old_backups(state["backup_dir"], config.retention_count)

    except Exception as e:
        message = _error_message(e)
        _discard_artifacts(snapshot_path)

        try:
            async with aiosqlite.connect(state["records_db_path"]) as db:
                await fail_backup_record(db, file_name, message)
        except Exception as record_error:
            logger.error(
                "backup_record_update_failed",
                file=file_name,
                error=str(record_error),
            )

        _record_failure(state, message)
        logger.error("backup_failed", file=file_name, backup_id=backup_id, error=message)

        return BackupResult(
            success=False,
            backup_type=kind.value,
            triggered_by=triggered_by,
            file_name=file_name,
            backup_id=backup_id,
            error=message,
        )

    duration = (datetime.now(UTC) - start_time).total_seconds()
    _record_success(state)

    logger.info(
        "backup_completed",
        file=file_name,
        backup_id=backup_id,
        size=info.size,
        compressed_size=compressed_size,
        documents=info.document_count,
        duration=duration,
    )

    return BackupResult(
        success=True,
        backup_type=kind.value,
        triggered_by=triggered_by,
        file_name=file_name,
        size=info.size,
        compressed_size=compressed_size,
        document_count=info.document_count,
        backup_id=backup_id,
        duration_seconds=duration,
    )


async def _create_backup_file_only(
    config: BackupConfig,
    state: BackupState,
    kind: BackupType,
    triggered_by: str,
) -> BackupResult:
    """
    Degraded path: no record store.

    Without records there is no way to reconcile history with the
    directory, so the directory is cleared and only the new backup is kept.
    """
    start_time, file_name = await _next_artifact_name(state)
    snapshot_path = state["backup_dir"] / file_name
    compressed_path = compressed_path_for(snapshot_path)

    logger.warning("backup_degraded_path", file=file_name)

    await manager.delete_all_backups(state["backup_dir"])

    try:
        info = await create_snapshot(state["database"], snapshot_path, start_time)
        compressed_size = await compress_file(
            snapshot_path, compressed_path, config.compression_level
        )
    except Exception as e:
        message = _error_message(e)
        _discard_artifacts(snapshot_path)
        _record_failure(state, message)
        logger.error("backup_failed", file=file_name, degraded=True, error=message)
        return BackupResult(
            success=False,
            backup_type=kind.value,
            triggered_by=triggered_by,
            file_name=file_name,
            degraded=True,
            error=message,
        )

    duration = (datetime.now(UTC) - start_time).total_seconds()
    _record_success(state)

    logger.info(
        "backup_completed",
        file=file_name,
        degraded=True,
        size=info.size,
        compressed_size=compressed_size,
        documents=info.document_count,
        duration=duration,
    )

    return BackupResult(
        success=True,
        backup_type=kind.value,
        triggered_by=triggered_by,
        file_name=file_name,
        size=info.size,
        compressed_size=compressed_size,
        document_count=info.document_count,
        backup_id=None,
        degraded=True,
        duration_seconds=duration,
    )


async def _next_artifact_name(state: BackupState) -> Tuple[datetime, str]:
    """Capture time and file name. Two attempts within one millisecond never share a name."""
    while True:
        moment = datetime.now(UTC)
        file_name = artifact_name_for(moment)
        if file_name != state["last_file_name"]:
            state["last_file_name"] = file_name
            return moment, file_name
        await asyncio.sleep(0.001)


def _discard_artifacts(snapshot_path: Path) -> None:
    """Remove what a failed attempt wrote."""
    try:
        manager.delete_artifact_pair(snapshot_path)
    except Exception as e:
        logger.warning("failed_backup_cleanup_failed", file=snapshot_path.name, error=str(e))


def _record_success(state: BackupState) -> None:
    state["last_backup_at"] = datetime.now(UTC)
    state["total_backups"] += 1


def _record_failure(state: BackupState, message: str) -> None:
    state["last_error"] = message
    state["total_failures"] += 1


async def restore_backup(
    config: BackupConfig,
    state: BackupState,
    file_name: str,
) -> RestoreResult:
    """
    Restore the database from a backup file.

    Every collection named in the file is emptied and refilled. Never
    raises: failures come back as RestoreResult(success=False, error=...).

    Args:
        config: Backup configuration
        state: Runtime state
        file_name: Backup file name as listed by get_backup_history()

    Returns:
        RestoreResult with restored collections and document total
    """
    if state["lock"].locked():
        logger.warning("restore_rejected_in_progress", file=file_name)
        return RestoreResult(success=False, file_name=file_name, error=BACKUP_IN_PROGRESS)

    async with state["lock"]:
        try:
            result = await restore_snapshot_file(
                state["database"], config.backup_dir, file_name
            )
        except Exception as e:
            message = _error_message(e)
            state["last_error"] = message
            logger.error("restore_failed", file=file_name, error=message)
            return RestoreResult(success=False, file_name=file_name, error=message)

    state["total_restores"] += 1
    return result


async def get_backup_history(config: BackupConfig) -> List[manager.BackupHistoryEntry]:
    """Restorable backups in the directory, newest first."""
    return await manager.get_backup_history(config.backup_dir)


async def get_backup_stats(config: BackupConfig) -> manager.BackupStats:
    """Count, latest entry, and total size of the backups in the directory."""
    return await manager.get_backup_stats(config.backup_dir)


async def delete_latest_backup(config: BackupConfig) -> None:
    """Delete the newest backup and its compressed copy. Never raises."""
    await manager.delete_latest_backup(config.backup_dir)


async def delete_all_backups(config: BackupConfig) -> None:
    """Delete every backup and compressed copy. Never raises."""
    await manager.delete_all_backups(config.backup_dir)


async def verify_backup(config: BackupConfig, file_name: str) -> bool:
    """Check that a backup parses and matches its compressed copy."""
    is_valid, _ = await manager.verify_backup(config.backup_dir, file_name)
    return is_valid


async def list_backup_attempts(
    state: BackupState,
    limit: int = 50,
    offset: int = 0,
    status: str | None = None,
) -> List[BackupRecord]:
    """
    Backup records newest first.

    Returns an empty list when the record store is unavailable.
    """
    try:
        async with aiosqlite.connect(state["records_db_path"]) as db:
            return await list_backup_records(db, limit, offset, status)
    except Exception as e:
        logger.error("backup_records_unavailable", error=str(e))
        return []


async def get_metrics(config: BackupConfig, state: BackupState) -> BackupMetrics:
    """Get current backup metrics."""
    stats = await manager.get_backup_stats(config.backup_dir)

    records: dict = {}
    try:
        async with aiosqlite.connect(state["records_db_path"]) as db:
            records = await get_record_stats(db)
    except Exception as e:
        logger.warning("record_stats_unavailable", error=str(e))

    return BackupMetrics(
        total_backups=state["total_backups"],
        total_failures=state["total_failures"],
        total_restores=state["total_restores"],
        last_backup_at=state["last_backup_at"],
        last_error=state["last_error"],
        backups_on_disk=stats.total_backups,
        bytes_on_disk=stats.total_size,
        records=records,
    )


async def shutdown_backup_state(state: BackupState) -> None:
    """Cleanup resources."""
    scheduler = state["scheduler"]
    if scheduler is not None:
        try:
            scheduler.shutdown(wait=False)
        except Exception as e:
            logger.warning("scheduler_stop_failed", error=str(e))
        state["scheduler"] = None

    close = getattr(state["database"], "close", None)
    if close is not None:
        try:
            await close()
        except Exception as e:
            logger.warning("database_close_failed", error=str(e))

    logger.info("backup_state_shutdown_complete")
