# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Backup Manager - Backup directory lifecycle.

This module owns everything that looks at the backup directory as a whole:
retention cleanup, delete-latest, delete-all, and the history and stats
views. The directory listing is the source of truth for which backups
can be restored.

Maintenance functions here log failures and return an empty result
instead of raising.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import List, Tuple

import aiofiles
import structlog

from edubackup.backup.snapshot import (
    ARTIFACT_PREFIX,
    COMPRESSED_SUFFIX,
    compressed_path_for,
    decode_snapshot,
    is_snapshot_name,
)
from edubackup.vault.compressor import decompress_file

logger = structlog.get_logger()

DEFAULT_RETENTION_COUNT = 10


@dataclass
class SnapshotFile:
    """A backup-*.json file found in the backup directory."""

    name: str
    path: Path
    mtime: float
    size: int


@dataclass
class BackupHistoryEntry:
    """One restorable backup as seen in the directory."""

    file_name: str
    created_at: datetime
    size: int
    compressed_size: int | None

    def to_dict(self) -> dict:
        return {
            "fileName": self.file_name,
            "createdAt": self.created_at.isoformat(),
            "size": self.size,
            "compressedSize": self.compressed_size,
        }


@dataclass
class BackupStats:
    """Summary of the backup directory."""

    total_backups: int
    latest_backup: BackupHistoryEntry | None
    total_size: int
    backup_enabled: bool

    def to_dict(self) -> dict:
        latest = None
        if self.latest_backup is not None:
            latest = {
                "fileName": self.latest_backup.file_name,
                "createdAt": self.latest_backup.created_at.isoformat(),
                "size": self.latest_backup.size,
            }
        return {
            "totalBackups": self.total_backups,
            "latestBackup": latest,
            "totalSize": self.total_size,
            "backupEnabled": self.backup_enabled,
        }


def list_snapshot_files(backup_dir: Path) -> List[SnapshotFile]:
    """
    List snapshot artifacts newest-first.

    Sorted by modification time descending; equal times fall back to the
    file name (descending) so the order is reproducible. Temp files and
    compressed siblings are not snapshots and are skipped.

    Raises:
        OSError: If the directory cannot be read
    """
    if not backup_dir.exists():
        return []

    files: List[SnapshotFile] = []
    for entry in backup_dir.iterdir():
        if not entry.is_file() or not is_snapshot_name(entry.name):
            continue
        stat = entry.stat()
        files.append(
            SnapshotFile(
                name=entry.name,
                path=entry,
                mtime=stat.st_mtime,
                size=stat.st_size,
            )
        )

    files.sort(key=lambda f: (f.mtime, f.name), reverse=True)
    return files


def delete_artifact_pair(snapshot_path: Path) -> bool:
    """
    Delete a snapshot and its compressed sibling.

    Returns:
        True if the snapshot itself was removed
    """
    removed = False
    if snapshot_path.exists():
        snapshot_path.unlink()
        removed = True

    compressed_path = compressed_path_for(snapshot_path)
    if compressed_path.exists():
        compressed_path.unlink()

    return removed


async def prune_old_backups(
    backup_dir: Path,
    keep: int = DEFAULT_RETENTION_COUNT,
) -> List[str]:
    """
    Delete every snapshot beyond the newest `keep`, with its .gz sibling.

    Running it twice without a new backup in between deletes nothing the
    second time.

    Args:
        backup_dir: Backup directory
        keep: Number of most recent snapshots to keep

    Returns:
        Names of the deleted snapshots
    """
    deleted: List[str] = []

    try:
        files = list_snapshot_files(backup_dir)
    except Exception as e:
        logger.error("backup_cleanup_failed", backup_dir=str(backup_dir), error=str(e))
        return deleted

    for old in files[keep:]:
        try:
            delete_artifact_pair(old.path)
            deleted.append(old.name)
            logger.info("old_backup_deleted", file=old.name)
        except Exception as e:
            logger.warning("old_backup_delete_failed", file=old.name, error=str(e))

    if deleted:
        logger.info(
            "backup_cleanup_complete",
            deleted=len(deleted),
            kept=min(len(files), keep),
        )

    return deleted


async def delete_latest_backup(backup_dir: Path) -> str | None:
    """
    Delete the most recently modified snapshot and its .gz sibling.

    Returns:
        Name of the deleted snapshot, or None if nothing was deleted
    """
    try:
        files = list_snapshot_files(backup_dir)
        if not files:
            logger.debug("no_backup_to_delete", backup_dir=str(backup_dir))
            return None

        latest = files[0]
        delete_artifact_pair(latest.path)
        logger.info("latest_backup_deleted", file=latest.name)
        return latest.name

    except Exception as e:
        logger.error("delete_latest_backup_failed", error=str(e))
        return None


async def delete_all_backups(backup_dir: Path) -> List[str]:
    """
    Delete every snapshot and compressed sibling in the directory.

    Returns:
        Names of the deleted snapshots
    """
    deleted: List[str] = []

    try:
        files = list_snapshot_files(backup_dir)
    except Exception as e:
        logger.error("delete_all_backups_failed", error=str(e))
        return deleted

    for snapshot in files:
        try:
            delete_artifact_pair(snapshot.path)
            deleted.append(snapshot.name)
        except Exception as e:
            logger.warning("backup_delete_failed", file=snapshot.name, error=str(e))

    # Compressed files whose snapshot is already gone
    try:
        for orphan in backup_dir.glob(f"{ARTIFACT_PREFIX}*{COMPRESSED_SUFFIX}"):
            orphan.unlink()
    except Exception as e:
        logger.warning("orphan_compressed_delete_failed", error=str(e))

    logger.info("all_backups_deleted", deleted=len(deleted))
    return deleted


async def get_backup_history(backup_dir: Path) -> List[BackupHistoryEntry]:
    """
    List restorable backups newest-first.

    Returns:
        History entries, or an empty list if the directory cannot be read
    """
    try:
        history: List[BackupHistoryEntry] = []
        for snapshot in list_snapshot_files(backup_dir):
            compressed_path = compressed_path_for(snapshot.path)
            history.append(
                BackupHistoryEntry(
                    file_name=snapshot.name,
                    created_at=datetime.fromtimestamp(snapshot.mtime, UTC),
                    size=snapshot.size,
                    compressed_size=(
                        compressed_path.stat().st_size
                        if compressed_path.exists()
                        else None
                    ),
                )
            )
        return history

    except Exception as e:
        logger.error("backup_history_failed", error=str(e))
        return []


async def get_backup_stats(backup_dir: Path) -> BackupStats:
    """
    Summarize the backup directory.

    Returns:
        BackupStats; backup_enabled is False if the directory cannot be read
    """
    try:
        list_snapshot_files(backup_dir)
    except Exception as e:
        logger.error("backup_stats_failed", error=str(e))
        return BackupStats(
            total_backups=0,
            latest_backup=None,
            total_size=0,
            backup_enabled=False,
        )

    history = await get_backup_history(backup_dir)

    return BackupStats(
        total_backups=len(history),
        latest_backup=history[0] if history else None,
        total_size=sum(entry.size for entry in history),
        backup_enabled=True,
    )


async def verify_backup(backup_dir: Path, file_name: str) -> Tuple[bool, str]:
    """
    Verify the integrity of a backup.

    The snapshot must parse with a supported version, and its compressed
    sibling (if any) must decompress to exactly the snapshot bytes.

    Args:
        backup_dir: Backup directory
        file_name: Snapshot file name

    Returns:
        Tuple of (is_valid, sha256 of the snapshot bytes)
    """
    if not is_snapshot_name(file_name):
        return (False, "")

    snapshot_path = backup_dir / file_name

    try:
        async with aiofiles.open(snapshot_path, "rb") as f:
            content = await f.read()

        actual_hash = hashlib.sha256(content).hexdigest()

        try:
            decode_snapshot(content, source=file_name)
        except Exception as e:
            logger.warning("backup_snapshot_invalid", file=file_name, error=str(e))
            return (False, actual_hash)

        compressed_path = compressed_path_for(snapshot_path)
        if compressed_path.exists():
            decompressed = await decompress_file(compressed_path)
            if decompressed != content:
                logger.warning("backup_compressed_mismatch", file=file_name)
                return (False, actual_hash)

        return (True, actual_hash)

    except Exception as e:
        logger.error("backup_verification_failed", file=file_name, error=str(e))
        return (False, "")
