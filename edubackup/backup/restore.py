# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Restore Engine - Replace database contents from a snapshot.

Restore is destructive and scoped by the snapshot: every collection named
in the file is emptied and refilled with the file's documents. Collections
the file does not name are never touched.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import List

import structlog

from edubackup.backup.snapshot import (
    Snapshot,
    compressed_path_for,
    count_documents,
    decode_snapshot,
    is_snapshot_name,
    read_snapshot,
)
from edubackup.database import DocumentDatabase
from edubackup.errors import explain_invalid_artifact_name
from edubackup.exceptions import InvalidArtifactNameError, RestoreError
from edubackup.vault.compressor import decompress_file

logger = structlog.get_logger()


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    success: bool
    file_name: str
    restored_collections: List[str] = field(default_factory=list)
    total_documents: int = 0
    error: str | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "restoredCollections": self.restored_collections,
            "totalDocuments": self.total_documents,
        }


async def load_snapshot(backup_dir: Path, file_name: str) -> Snapshot:
    """
    Load a snapshot by file name.

    Falls back to the .json.gz sibling when the .json file is gone.

    Raises:
        InvalidArtifactNameError: If file_name is not a bare backup-*.json name
        RestoreError: If neither file exists or the content is invalid
    """
    if not is_snapshot_name(file_name):
        raise InvalidArtifactNameError(
            explain_invalid_artifact_name(file_name),
            details={"file_name": file_name},
        )

    snapshot_path = backup_dir / file_name
    if snapshot_path.exists():
        return await read_snapshot(snapshot_path)

    compressed_path = compressed_path_for(snapshot_path)
    if compressed_path.exists():
        logger.info("restore_from_compressed", file=compressed_path.name)
        raw = await decompress_file(compressed_path)
        return decode_snapshot(raw, source=compressed_path.name)

    raise RestoreError(
        "Backup file not found",
        details={"file_name": file_name, "backup_dir": str(backup_dir)},
    )


async def apply_snapshot(database: DocumentDatabase, snapshot: Snapshot) -> List[str]:
    """
    Write a snapshot into the database.

    All named collections are cleared first, then refilled. Empty
    collections are cleared and left empty.

    Returns:
        Names of the restored collections

    Raises:
        RestoreError: If clearing or inserting any collection fails
    """
    collections = snapshot["collections"]

    for name in collections:
        try:
            deleted = await database.delete_all(name)
        except Exception as e:
            raise RestoreError(
                f"Failed to clear collection {name}: {e}",
                details={"collection": name},
            )
        logger.debug("collection_cleared", collection=name, deleted=deleted)

    for name, documents in collections.items():
        if not documents:
            continue
        try:
            inserted = await database.insert_many(name, list(documents))
        except Exception as e:
            raise RestoreError(
                f"Failed to restore collection {name}: {e}",
                details={"collection": name, "documents": len(documents)},
            )
        logger.debug("collection_restored", collection=name, inserted=inserted)

    return list(collections.keys())


async def restore_snapshot_file(
    database: DocumentDatabase,
    backup_dir: Path,
    file_name: str,
) -> RestoreResult:
    """
    Restore the database from a snapshot file.

    Args:
        database: Live document database
        backup_dir: Backup directory
        file_name: Snapshot file name, e.g. backup-2024-01-01T00-00-00-000Z.json

    Returns:
        RestoreResult with the restored collections and document total

    Raises:
        RestoreError: If loading or applying the snapshot fails
    """
    start_time = datetime.now(UTC)

    logger.info("restore_started", file=file_name)

    snapshot = await load_snapshot(backup_dir, file_name)
    restored = await apply_snapshot(database, snapshot)
    total_documents = count_documents(snapshot)

    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "restore_completed",
        file=file_name,
        collections=len(restored),
        documents=total_documents,
        duration=duration,
    )

    return RestoreResult(
        success=True,
        file_name=file_name,
        restored_collections=restored,
        total_documents=total_documents,
        duration_seconds=duration,
    )
