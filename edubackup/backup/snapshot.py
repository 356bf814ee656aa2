# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Snapshot - Full-database snapshot artifacts.

A snapshot is one JSON file:

    {"timestamp": "<ISO 8601>", "version": "1.0",
     "collections": {"<name>": [<document>, ...], ...}}

Documents are encoded as canonical MongoDB Extended JSON so every BSON
type comes back unchanged on restore, including Int64 next to int32. The file is written
to a .tmp path and renamed, so a crash never leaves a half-written file
under a backup-*.json name.
"""

import asyncio
import os
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Tuple

import aiofiles
import structlog
from bson import json_util

from edubackup.database import DocumentDatabase
from edubackup.exceptions import BackupError, RestoreError

logger = structlog.get_logger()

SNAPSHOT_VERSION = "1.0"
SUPPORTED_VERSIONS = {SNAPSHOT_VERSION}

ARTIFACT_PREFIX = "backup-"
SNAPSHOT_SUFFIX = ".json"
COMPRESSED_SUFFIX = ".json.gz"
TEMP_SUFFIX = ".tmp"

Snapshot = Dict[str, Any]


@dataclass
class SnapshotInfo:
    """What was written for one snapshot."""

    path: Path
    size: int
    document_count: int
    collections: List[Dict[str, Any]] = field(default_factory=list)


def format_timestamp(moment: datetime) -> str:
    """
    Format a datetime as ISO 8601 with millisecond precision and a Z suffix.

    2024-01-01T00:00:00.000Z
    """
    moment = moment.astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def artifact_name_for(moment: datetime) -> str:
    """
    Snapshot file name for a capture time.

    Colons and dots of the timestamp become dashes so the name is valid on
    every filesystem: backup-2024-01-01T00-00-00-000Z.json
    """
    safe = format_timestamp(moment).replace(":", "-").replace(".", "-")
    return f"{ARTIFACT_PREFIX}{safe}{SNAPSHOT_SUFFIX}"


def is_snapshot_name(file_name: str) -> bool:
    """True for a bare backup-*.json file name (no directories)."""
    if "/" in file_name or "\\" in file_name or ".." in file_name:
        return False
    return file_name.startswith(ARTIFACT_PREFIX) and file_name.endswith(SNAPSHOT_SUFFIX)


def compressed_path_for(snapshot_path: Path) -> Path:
    """Path of the .json.gz sibling of a snapshot."""
    stem = snapshot_path.name[: -len(SNAPSHOT_SUFFIX)]
    return snapshot_path.with_name(stem + COMPRESSED_SUFFIX)


async def list_collections(database: DocumentDatabase) -> List[str]:
    """
    List every collection currently in the database.

    Called fresh for every backup; collections created or dropped since
    the last backup are picked up.
    """
    names = await database.list_collection_names()
    logger.debug("collections_enumerated", count=len(names))
    return list(names)


async def collect_snapshot(
    database: DocumentDatabase,
    collection_names: List[str],
    captured_at: datetime,
) -> Tuple[Snapshot, List[Dict[str, Any]]]:
    """
    Read every document of every named collection.

    Collections are read one after another. Each collection is internally
    consistent; the snapshot as a whole is not a transaction.

    Returns:
        Tuple of (snapshot dict, per-collection counts)

    Raises:
        BackupError: If reading any collection fails
    """
    snapshot: Snapshot = {
        "timestamp": format_timestamp(captured_at),
        "version": SNAPSHOT_VERSION,
        "collections": {},
    }
    collection_stats: List[Dict[str, Any]] = []

    for name in collection_names:
        try:
            documents = await database.find_all(name)
        except Exception as e:
            raise BackupError(
                f"Failed to read collection {name}: {e}",
                details={"collection": name},
            )

        snapshot["collections"][name] = documents
        collection_stats.append({"name": name, "count": len(documents)})

        logger.debug("collection_backed_up", collection=name, documents=len(documents))

    return snapshot, collection_stats


def count_documents(snapshot: Snapshot) -> int:
    """Total number of documents across all collections of a snapshot."""
    return sum(len(docs) for docs in snapshot.get("collections", {}).values())


def encode_snapshot(snapshot: Snapshot) -> bytes:
    """Serialize a snapshot to Extended JSON bytes."""
    return json_util.dumps(
        snapshot,
        json_options=json_util.CANONICAL_JSON_OPTIONS,
        indent=2,
    ).encode("utf-8")


def decode_snapshot(raw: bytes, source: str = "<bytes>") -> Snapshot:
    """
    Parse and validate snapshot bytes.

    Raises:
        RestoreError: If the content is not a snapshot of a supported version
    """
    try:
        snapshot = json_util.loads(
            raw.decode("utf-8"),
            json_options=json_util.CANONICAL_JSON_OPTIONS,
        )
    except Exception as e:
        raise RestoreError(
            f"Backup file is not valid JSON: {e}",
            details={"source": source},
        )

    if not isinstance(snapshot, dict) or not isinstance(snapshot.get("collections"), dict):
        raise RestoreError(
            "Backup file has no collections mapping",
            details={"source": source},
        )

    version = snapshot.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise RestoreError(
            f"Unsupported backup version: {version!r}",
            details={"source": source, "supported": sorted(SUPPORTED_VERSIONS)},
        )

    for name, documents in snapshot["collections"].items():
        if not isinstance(documents, list):
            raise RestoreError(
                f"Collection {name} is not a list of documents",
                details={"source": source, "collection": name},
            )

    return snapshot


async def write_snapshot(snapshot_path: Path, snapshot: Snapshot) -> int:
    """
    Write a snapshot atomically (write to temp, then rename).

    Args:
        snapshot_path: Final backup-*.json path
        snapshot: Snapshot dict

    Returns:
        Size of the written file in bytes

    Raises:
        BackupError: If encoding or writing fails
    """
    temp_path = snapshot_path.with_name(snapshot_path.name + TEMP_SUFFIX)

    try:
        payload = encode_snapshot(snapshot)
        snapshot_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(temp_path, "wb") as f:
            await f.write(payload)
            await f.flush()
            await asyncio.get_running_loop().run_in_executor(None, os.fsync, f.fileno())

        # Rename to final path (atomic on most filesystems)
        temp_path.replace(snapshot_path)

    except Exception as e:
        temp_path.unlink(missing_ok=True)
        raise BackupError(
            f"Failed to write backup file: {e}",
            details={"path": str(snapshot_path)},
        )

    logger.debug("snapshot_written", path=str(snapshot_path), size=len(payload))
    return len(payload)


async def create_snapshot(
    database: DocumentDatabase,
    snapshot_path: Path,
    captured_at: datetime | None = None,
) -> SnapshotInfo:
    """
    Enumerate, read, and write a full snapshot of the database.

    Args:
        database: Live document database
        snapshot_path: Final backup-*.json path
        captured_at: Capture time (default: now)

    Returns:
        SnapshotInfo with size and document counts
    """
    captured_at = captured_at or datetime.now(UTC)

    try:
        collection_names = await list_collections(database)
    except Exception as e:
        raise BackupError(f"Failed to list collections: {e}")

    snapshot, collection_stats = await collect_snapshot(
        database, collection_names, captured_at
    )
    size = await write_snapshot(snapshot_path, snapshot)
    document_count = count_documents(snapshot)

    logger.info(
        "snapshot_created",
        file=snapshot_path.name,
        collections=len(collection_names),
        documents=document_count,
        size=size,
    )

    return SnapshotInfo(
        path=snapshot_path,
        size=size,
        document_count=document_count,
        collections=collection_stats,
    )


async def read_snapshot(snapshot_path: Path) -> Snapshot:
    """
    Read and validate a snapshot file.

    Raises:
        RestoreError: If the file is missing or invalid
    """
    try:
        async with aiofiles.open(snapshot_path, "rb") as f:
            raw = await f.read()
    except FileNotFoundError:
        raise RestoreError(
            "Backup file not found",
            details={"path": str(snapshot_path)},
        )
    except Exception as e:
        raise RestoreError(
            f"Failed to read backup file: {e}",
            details={"path": str(snapshot_path)},
        )

    return decode_snapshot(raw, source=snapshot_path.name)
