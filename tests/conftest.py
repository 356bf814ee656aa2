# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for edubackup tests.

Provides an in-memory document database, test configuration helpers,
and helpers that lay out backup directories by hand.
"""

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List

import pytest
import pytest_asyncio
from bson import ObjectId


class InMemoryDatabase:
    """
    DocumentDatabase kept in a dict.

    Set `available = False` to simulate an unreachable server, or add a
    collection name to `fail_on` to make reads and writes of it fail.
    """

    def __init__(self, collections: Dict[str, List[dict]] | None = None):
        self.collections: Dict[str, List[dict]] = copy.deepcopy(collections or {})
        self.available = True
        self.fail_on: set = set()
        self.insert_calls: List[str] = []
        self.closed = False

    def _check(self, collection: str | None = None) -> None:
        if not self.available:
            raise ConnectionError("database unreachable")
        if collection is not None and collection in self.fail_on:
            raise RuntimeError(f"simulated failure on {collection}")

    async def ping(self) -> bool:
        return self.available

    async def list_collection_names(self) -> List[str]:
        self._check()
        return list(self.collections.keys())

    async def find_all(self, collection: str) -> List[dict]:
        self._check(collection)
        return copy.deepcopy(self.collections.get(collection, []))

    async def delete_all(self, collection: str) -> int:
        self._check(collection)
        deleted = len(self.collections.get(collection, []))
        if collection in self.collections:
            self.collections[collection] = []
        return deleted

    async def insert_many(self, collection: str, documents: List[dict]) -> int:
        self._check(collection)
        if not documents:
            # pymongo rejects empty batches
            raise ValueError("documents must be a non-empty list")
        self.insert_calls.append(collection)
        self.collections.setdefault(collection, []).extend(copy.deepcopy(documents))
        return len(documents)

    async def close(self) -> None:
        self.closed = True


def sample_collections() -> Dict[str, List[dict]]:
    """A small school database."""
    return {
        "students": [
            {"_id": ObjectId(), "name": "Asha", "grade": 7, "subjects": ["math", "art"]},
            {"_id": ObjectId(), "name": "Ravi", "grade": 8, "guardian": {"phone": "555-0101"}},
        ],
        "teachers": [
            {"_id": ObjectId(), "name": "Mrs. Iyer", "subject": "math"},
        ],
        "announcements": [],
    }


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def database() -> InMemoryDatabase:
    """In-memory database seeded with sample_collections()."""
    return InMemoryDatabase(sample_collections())


@pytest.fixture
def test_config(temp_dir: Path):
    """Create a test configuration with the scheduler disabled."""
    from edubackup.config import BackupConfig

    return BackupConfig(
        backup_dir=temp_dir / "backups",
        mongo_url="mongodb://localhost:27017",
        database_name="school_admin_test",
        retention_count=10,
        schedule_enabled=False,
    )


@pytest_asyncio.fixture
async def records_db_path(temp_dir: Path) -> Path:
    """Create a temporary record database."""
    from edubackup.vault import init_records_db

    db_path = temp_dir / "records.db"
    await init_records_db(db_path)
    return db_path


@pytest_asyncio.fixture
async def backup_state(test_config, database: InMemoryDatabase):
    """Create initialized backup state for testing."""
    from edubackup.core import initialize_backup_state, shutdown_backup_state

    state = await initialize_backup_state(test_config, database)
    yield state
    await shutdown_backup_state(state)


def write_fake_backup(
    backup_dir: Path,
    file_name: str,
    mtime: float,
    collections: Dict[str, List[Any]] | None = None,
    with_compressed: bool = True,
) -> Path:
    """
    Write a snapshot artifact by hand with a fixed modification time.

    Documents are plain JSON so the file is a valid snapshot.
    """
    backup_dir.mkdir(parents=True, exist_ok=True)
    path = backup_dir / file_name
    payload = {
        "timestamp": "2024-01-01T00:00:00.000Z",
        "version": "1.0",
        "collections": collections if collections is not None else {"students": []},
    }
    path.write_text(json.dumps(payload))
    os.utime(path, (mtime, mtime))

    if with_compressed:
        compressed = backup_dir / file_name.replace(".json", ".json.gz")
        compressed.write_bytes(b"not checked")
        os.utime(compressed, (mtime, mtime))

    return path


def snapshot_names(backup_dir: Path) -> List[str]:
    """Snapshot file names in the directory, sorted by name."""
    return sorted(
        p.name
        for p in backup_dir.glob("backup-*.json")
        if p.is_file()
    )
