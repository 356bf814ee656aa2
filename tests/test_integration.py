# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Integration tests for edubackup.

These tests verify the components work together: records, compression,
history views, configuration, the scheduler, and the FastAPI lifespan.
"""

import asyncio
import copy
import gzip
from pathlib import Path

import aiosqlite
import pytest
from fastapi import FastAPI

from edubackup.config import BackupConfig, BackupStatus, BackupType
from edubackup.core import (
    create_backup,
    get_backup_history,
    get_backup_stats,
    get_metrics,
    list_backup_attempts,
    restore_backup,
    verify_backup,
)

from conftest import InMemoryDatabase, sample_collections, snapshot_names


# ============================================================================
# Record Store Integration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_completed_backup_record_lifecycle(
    test_config: BackupConfig,
    backup_state,
):
    """A successful backup leaves a completed record with statistics."""
    from edubackup.vault import get_backup_record

    result = await create_backup(test_config, backup_state, BackupType.MANUAL, "admin")
    assert result.success, result.error

    async with aiosqlite.connect(backup_state["records_db_path"]) as db:
        record = await get_backup_record(db, result.file_name)

    assert record["id"] == result.backup_id
    assert record["status"] == BackupStatus.COMPLETED.value
    assert record["backup_type"] == "manual"
    assert record["triggered_by"] == "admin"
    assert record["original_file_name"] == result.file_name
    assert record["size"] == result.size
    assert record["compressed_size"] == result.compressed_size
    assert record["document_count"] == 3
    assert sorted(record["collections"], key=lambda c: c["name"]) == [
        {"name": "announcements", "count": 0},
        {"name": "students", "count": 2},
        {"name": "teachers", "count": 1},
    ]
    assert record["file_path"].endswith(result.file_name)
    assert record["compressed_path"].endswith(".json.gz")


@pytest.mark.asyncio
async def test_list_backup_attempts_with_status_filter(
    test_config: BackupConfig,
    backup_state,
    database: InMemoryDatabase,
):
    """Failed attempts stay in the record store and can be filtered."""
    ok = await create_backup(test_config, backup_state, "manual", "admin")
    database.fail_on.add("students")
    failed = await create_backup(test_config, backup_state, "scheduled", "system")

    assert ok.success
    assert failed.success is False

    attempts = await list_backup_attempts(backup_state)
    assert [a["file_name"] for a in attempts] == [failed.file_name, ok.file_name]

    only_failed = await list_backup_attempts(backup_state, status=BackupStatus.FAILED.value)
    assert len(only_failed) == 1
    assert only_failed[0]["backup_type"] == "scheduled"

    paged = await list_backup_attempts(backup_state, limit=1, offset=1)
    assert [a["file_name"] for a in paged] == [ok.file_name]


@pytest.mark.asyncio
async def test_record_stats(records_db_path: Path):
    """Test statistics over the record store."""
    from edubackup.vault import (
        complete_backup_record,
        create_backup_record,
        fail_backup_record,
        get_record_stats,
    )

    async with aiosqlite.connect(records_db_path) as db:
        await create_backup_record(db, "backup-a.json", "/b/a.json", "/b/a.json.gz", "initial", "system")
        await complete_backup_record(db, "backup-a.json", 1000, 300, 10, [])
        await create_backup_record(db, "backup-b.json", "/b/b.json", "/b/b.json.gz", "manual", "admin")
        await fail_backup_record(db, "backup-b.json", "boom")
        await create_backup_record(db, "backup-c.json", "/b/c.json", "/b/c.json.gz", "manual", "admin")

        stats = await get_record_stats(db)

    assert stats["total_records"] == 3
    assert stats["records_by_status"] == {"completed": 1, "failed": 1, "in_progress": 1}
    assert stats["records_by_type"] == {"initial": 1, "manual": 2}
    assert stats["total_completed_bytes"] == 1000
    assert stats["total_completed_compressed_bytes"] == 300
    assert stats["last_completed"]["file_name"] == "backup-a.json"


@pytest.mark.asyncio
async def test_metrics_after_backup_and_restore(
    test_config: BackupConfig,
    backup_state,
):
    """Counters and on-disk totals reflect what happened."""
    result = await create_backup(test_config, backup_state)
    await restore_backup(test_config, backup_state, result.file_name)

    metrics = await get_metrics(test_config, backup_state)

    assert metrics.total_backups == 1
    assert metrics.total_failures == 0
    assert metrics.total_restores == 1
    assert metrics.last_backup_at is not None
    assert metrics.backups_on_disk == 1
    assert metrics.bytes_on_disk == result.size
    assert metrics.records["records_by_status"] == {"completed": 1}


# ============================================================================
# History and Stats Integration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_history_and_stats_shape(
    test_config: BackupConfig,
    backup_state,
):
    """History entries and stats serialize with camelCase keys."""
    result = await create_backup(test_config, backup_state)

    history = await get_backup_history(test_config)
    assert len(history) == 1

    entry = history[0].to_dict()
    assert entry["fileName"] == result.file_name
    assert entry["size"] == result.size
    assert entry["compressedSize"] == result.compressed_size
    assert "createdAt" in entry

    stats = (await get_backup_stats(test_config)).to_dict()
    assert stats["totalBackups"] == 1
    assert stats["totalSize"] == result.size
    assert stats["backupEnabled"] is True
    assert stats["latestBackup"]["fileName"] == result.file_name

    # Compressed copy gone: history still lists the snapshot
    (test_config.backup_dir / result.file_name.replace(".json", ".json.gz")).unlink()
    history = await get_backup_history(test_config)
    assert history[0].compressed_size is None


@pytest.mark.asyncio
async def test_history_ignores_unrelated_files(test_config: BackupConfig):
    """Only backup-*.json files are backups."""
    from conftest import write_fake_backup

    write_fake_backup(test_config.backup_dir, "backup-2024-01-01T00-00-00-000Z.json", mtime=1_704_067_200)
    (test_config.backup_dir / "notes.txt").write_text("hello")
    (test_config.backup_dir / "backup-2024-01-02T00-00-00-000Z.json.tmp").write_text("{}")

    history = await get_backup_history(test_config)

    assert [h.file_name for h in history] == ["backup-2024-01-01T00-00-00-000Z.json"]


@pytest.mark.asyncio
async def test_delete_latest_and_delete_all(temp_dir: Path):
    """Test manual directory maintenance."""
    from conftest import write_fake_backup
    from edubackup.core import delete_all_backups, delete_latest_backup

    config = BackupConfig(backup_dir=temp_dir / "backups", schedule_enabled=False)
    write_fake_backup(config.backup_dir, "backup-2024-01-01T00-00-00-000Z.json", mtime=1_704_067_200)
    write_fake_backup(config.backup_dir, "backup-2024-01-02T00-00-00-000Z.json", mtime=1_704_153_600)

    await delete_latest_backup(config)
    assert snapshot_names(config.backup_dir) == ["backup-2024-01-01T00-00-00-000Z.json"]

    await delete_all_backups(config)
    assert snapshot_names(config.backup_dir) == []
    assert list(config.backup_dir.glob("*.json.gz")) == []

    # Nothing left: still no error
    await delete_latest_backup(config)


# ============================================================================
# Compression Integration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_compression_round_trip_is_reproducible(temp_dir: Path):
    """Compressing the same snapshot twice gives identical bytes."""
    from edubackup.vault.compressor import compress_file, decompress_file

    source = temp_dir / "backup-x.json"
    original = ('{"collections": {"students": []}} ' * 1000).encode()
    source.write_bytes(original)

    first = temp_dir / "first.json.gz"
    second = temp_dir / "second.json.gz"
    await compress_file(source, first)
    await compress_file(source, second)

    assert first.read_bytes() == second.read_bytes()
    assert await decompress_file(first) == original
    assert first.stat().st_size < len(original)
    assert not (temp_dir / "first.json.gz.tmp").exists()


@pytest.mark.asyncio
async def test_artifacts_synced_to_disk_before_rename(temp_dir: Path, monkeypatch):
    """Snapshot and gzip bytes are fsynced while still under the .tmp name."""
    import os

    from edubackup.backup.snapshot import write_snapshot
    from edubackup.vault.compressor import compress_file

    synced = []
    real_fsync = os.fsync

    def recording_fsync(fd):
        synced.append(sorted(p.name for p in temp_dir.iterdir()))
        real_fsync(fd)

    monkeypatch.setattr(os, "fsync", recording_fsync)

    snapshot_path = temp_dir / "backup-2024-01-01T00-00-00-000Z.json"
    await write_snapshot(
        snapshot_path,
        {"timestamp": "2024-01-01T00:00:00.000Z", "version": "1.0", "collections": {}},
    )
    await compress_file(snapshot_path, temp_dir / "backup-2024-01-01T00-00-00-000Z.json.gz")

    assert synced == [
        ["backup-2024-01-01T00-00-00-000Z.json.tmp"],
        [
            "backup-2024-01-01T00-00-00-000Z.json",
            "backup-2024-01-01T00-00-00-000Z.json.gz.tmp",
        ],
    ]
    assert sorted(p.name for p in temp_dir.iterdir()) == [
        "backup-2024-01-01T00-00-00-000Z.json",
        "backup-2024-01-01T00-00-00-000Z.json.gz",
    ]


@pytest.mark.asyncio
async def test_decompress_rejects_non_gzip(temp_dir: Path):
    """Test decompression of garbage fails cleanly."""
    from edubackup.exceptions import BackupError
    from edubackup.vault.compressor import decompress_file

    bogus = temp_dir / "bogus.json.gz"
    bogus.write_bytes(b"plain text")

    with pytest.raises(BackupError):
        await decompress_file(bogus)


# ============================================================================
# Restore Integration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_restore_falls_back_to_compressed_copy(
    test_config: BackupConfig,
    backup_state,
    database: InMemoryDatabase,
):
    """When the .json file is gone the .json.gz copy is restored."""
    students = copy.deepcopy(database.collections["students"])
    result = await create_backup(test_config, backup_state)
    (test_config.backup_dir / result.file_name).unlink()

    database.collections["students"] = []

    restored = await restore_backup(test_config, backup_state, result.file_name)

    assert restored.success, restored.error
    assert database.collections["students"] == students


@pytest.mark.asyncio
async def test_verify_backup(test_config: BackupConfig, backup_state):
    """A backup verifies until its compressed copy is tampered with."""
    result = await create_backup(test_config, backup_state)

    assert await verify_backup(test_config, result.file_name) is True

    gz = test_config.backup_dir / result.file_name.replace(".json", ".json.gz")
    gz.write_bytes(gzip.compress(b'{"tampered": true}'))

    assert await verify_backup(test_config, result.file_name) is False
    assert await verify_backup(test_config, "../etc/passwd") is False


# ============================================================================
# Scheduler Integration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_scheduler_registers_jobs_and_runs_initial_backup(
    test_config: BackupConfig,
    database: InMemoryDatabase,
):
    """The initial backup runs after the delay; the recurring job waits."""
    from edubackup.core import initialize_backup_state, shutdown_backup_state
    from edubackup.scheduler import (
        INITIAL_JOB_ID,
        SCHEDULED_JOB_ID,
        start_backup_scheduler,
    )

    config = test_config.with_updates(
        schedule_enabled=True,
        initial_delay_seconds=0.2,
        interval_hours=24,
    )
    state = await initialize_backup_state(config, database)

    scheduler = start_backup_scheduler(config, state)
    try:
        assert state["scheduler"] is scheduler
        assert scheduler.get_job(INITIAL_JOB_ID) is not None
        assert scheduler.get_job(SCHEDULED_JOB_ID) is not None

        for _ in range(100):
            if state["total_backups"] >= 1:
                break
            await asyncio.sleep(0.1)

        assert state["total_backups"] == 1
        attempts = await list_backup_attempts(state)
        assert [a["backup_type"] for a in attempts] == ["initial"]
        assert attempts[0]["triggered_by"] == "system"
    finally:
        await shutdown_backup_state(state)

    assert state["scheduler"] is None


@pytest.mark.asyncio
async def test_scheduled_run_skips_when_busy(
    test_config: BackupConfig,
    backup_state,
):
    """A timer tick during a running backup is skipped, not queued."""
    from edubackup.scheduler import run_scheduled_backup

    await backup_state["lock"].acquire()
    try:
        await run_scheduled_backup(test_config, backup_state, BackupType.SCHEDULED)
    finally:
        backup_state["lock"].release()

    assert backup_state["total_backups"] == 0
    assert snapshot_names(test_config.backup_dir) == []


# ============================================================================
# FastAPI Integration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_lifespan_without_schedule(test_config: BackupConfig):
    """Test the lifespan exposes state and cleans up."""
    from edubackup.integrations.fastapi import (
        backup_lifespan,
        get_backup_config,
        get_backup_state,
    )

    app = FastAPI()
    database = InMemoryDatabase(sample_collections())

    async with backup_lifespan(app, test_config, database):
        state = get_backup_state(app)
        assert get_backup_config(app) is test_config
        assert state["scheduler"] is None
        assert state["database"] is database

        result = await create_backup(test_config, state)
        assert result.success

    assert database.closed is True
    with pytest.raises(RuntimeError):
        get_backup_state(app)


@pytest.mark.asyncio
async def test_lifespan_with_schedule(test_config: BackupConfig):
    """The scheduler starts with the app and stops with it."""
    from edubackup.integrations.fastapi import create_backup_lifespan, get_backup_state
    from edubackup.scheduler import SCHEDULED_JOB_ID

    config = test_config.with_updates(schedule_enabled=True, initial_delay_seconds=3600)
    database = InMemoryDatabase(sample_collections())
    app = FastAPI(lifespan=create_backup_lifespan(config, database))

    async with app.router.lifespan_context(app):
        state = get_backup_state(app)
        scheduler = state["scheduler"]
        assert scheduler is not None
        assert scheduler.running
        assert scheduler.get_job(SCHEDULED_JOB_ID) is not None

    assert state["scheduler"] is None


@pytest.mark.asyncio
async def test_get_backup_state_before_startup():
    """Test access before the lifespan has run."""
    from edubackup.integrations.fastapi import get_backup_config, get_backup_state

    app = FastAPI()

    with pytest.raises(RuntimeError):
        get_backup_state(app)
    with pytest.raises(RuntimeError):
        get_backup_config(app)


# ============================================================================
# Database Integration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_motor_database_ping_unreachable_server():
    """Ping reports False instead of raising when MongoDB is down."""
    from edubackup.database import MotorDatabase

    database = MotorDatabase("mongodb://127.0.0.1:1", "school_admin", timeout_ms=200)
    assert await database.ping() is False

    await database.connect()
    try:
        assert await database.ping() is False
    finally:
        await database.close()


@pytest.mark.asyncio
async def test_motor_database_requires_connection():
    """Reads and writes before connect() raise StorageUnavailableError."""
    from edubackup.database import MotorDatabase
    from edubackup.exceptions import StorageUnavailableError

    database = MotorDatabase("mongodb://127.0.0.1:1", "school_admin", timeout_ms=200)

    with pytest.raises(StorageUnavailableError) as exc_info:
        await database.list_collection_names()
    assert exc_info.value.details == {"database": "school_admin"}

    with pytest.raises(StorageUnavailableError):
        await database.insert_many("students", [{"name": "Asha"}])


# ============================================================================
# Configuration Tests
# ============================================================================

@pytest.mark.asyncio
async def test_builder_fluent_api(temp_dir: Path):
    """Test the functional builder API."""
    from edubackup.builder import (
        build_config,
        create_config,
        create_empty_config,
        disable_schedule,
        keep_last,
        pipe,
        run_every,
        with_backup_dir,
        with_database,
        with_records_db,
    )

    config = build_config(
        pipe(
            lambda c: with_backup_dir(c, temp_dir / "backups"),
            lambda c: with_records_db(c, temp_dir / "records.db"),
            lambda c: with_database(c, "mongodb://db:27017", "school"),
            lambda c: keep_last(c, 5),
            lambda c: run_every(c, 12, initial_delay_seconds=30),
        )(create_empty_config())
    )

    assert config.backup_dir == temp_dir / "backups"
    assert config.resolved_records_db_path == temp_dir / "records.db"
    assert config.mongo_url == "mongodb://db:27017"
    assert config.database_name == "school"
    assert config.retention_count == 5
    assert config.interval_hours == 12
    assert config.initial_delay_seconds == 30
    assert config.schedule_enabled is True

    assert build_config(disable_schedule(create_empty_config())).schedule_enabled is False

    with pytest.raises(ValueError):
        keep_last(create_empty_config(), 0)

    simple = create_config(backup_dir=temp_dir / "b", schedule_enabled=False)
    assert simple.retention_count == 10
    assert simple.interval_hours == 24
    assert simple.initial_delay_seconds == 5
    assert simple.resolved_records_db_path == temp_dir / "b" / "backup_records.db"


@pytest.mark.asyncio
async def test_config_validation():
    """Test configuration validation."""
    from edubackup.exceptions import ConfigurationError

    with pytest.raises(ConfigurationError) as exc_info:
        BackupConfig(mongo_url="postgres://localhost/school")
    assert "Invalid mongo_url" in str(exc_info.value)

    with pytest.raises(ConfigurationError) as exc_info:
        BackupConfig(retention_count=0, interval_hours=0)
    errors = exc_info.value.details["errors"]
    assert any("retention_count" in e for e in errors)
    assert any("interval_hours" in e for e in errors)

    with pytest.raises(ConfigurationError):
        BackupConfig(compression_level=12)


ENV_VARS = [
    "EDUBACKUP_DIR",
    "EDUBACKUP_RECORDS_DB",
    "MONGODB_URI",
    "MONGODB_DATABASE",
    "EDUBACKUP_RETENTION_COUNT",
    "EDUBACKUP_INITIAL_DELAY_SECONDS",
    "EDUBACKUP_INTERVAL_HOURS",
    "EDUBACKUP_SCHEDULE_ENABLED",
]


@pytest.mark.asyncio
async def test_config_from_env(monkeypatch, temp_dir: Path):
    """Test configuration from environment variables."""
    from edubackup.env import create_config_from_env

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    monkeypatch.setenv("EDUBACKUP_DIR", str(temp_dir / "env-backups"))
    monkeypatch.setenv("MONGODB_URI", "mongodb+srv://cluster.example.net")
    monkeypatch.setenv("MONGODB_DATABASE", "district")
    monkeypatch.setenv("EDUBACKUP_RETENTION_COUNT", "7")
    monkeypatch.setenv("EDUBACKUP_INTERVAL_HOURS", "6")
    monkeypatch.setenv("EDUBACKUP_INITIAL_DELAY_SECONDS", "0")
    monkeypatch.setenv("EDUBACKUP_SCHEDULE_ENABLED", "off")

    config = create_config_from_env()

    assert config.backup_dir == temp_dir / "env-backups"
    assert config.mongo_url == "mongodb+srv://cluster.example.net"
    assert config.database_name == "district"
    assert config.retention_count == 7
    assert config.interval_hours == 6
    assert config.initial_delay_seconds == 0
    assert config.schedule_enabled is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name,value",
    [
        ("MONGODB_URI", "postgres://localhost/school"),
        ("EDUBACKUP_RETENTION_COUNT", "zero"),
        ("EDUBACKUP_RETENTION_COUNT", "0"),
        ("EDUBACKUP_INTERVAL_HOURS", "-1"),
        ("EDUBACKUP_INITIAL_DELAY_SECONDS", "soon"),
        ("EDUBACKUP_SCHEDULE_ENABLED", "maybe"),
    ],
)
async def test_config_from_env_rejects_bad_values(monkeypatch, name: str, value: str):
    """Test invalid environment values raise ConfigurationError naming the variable."""
    from edubackup.env import create_config_from_env
    from edubackup.exceptions import ConfigurationError

    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError) as exc_info:
        create_config_from_env()

    assert name in str(exc_info.value)
