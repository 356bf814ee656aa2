# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup FastAPI Integration - Lifespan wiring for the admin API.

On startup the backup state is initialized (backup directory, record
store, MongoDB client) and the scheduler is started, which fires the
initial backup shortly afterwards. On shutdown the scheduler is stopped
and the client closed.

Route handlers reach the state through get_backup_state(app) and call
create_backup() / restore_backup() / get_backup_history() /
get_backup_stats() from edubackup.core.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

import structlog
from fastapi import FastAPI

from edubackup.config import BackupConfig
from edubackup.core import BackupState, initialize_backup_state, shutdown_backup_state
from edubackup.database import DocumentDatabase
from edubackup.scheduler import start_backup_scheduler

logger = structlog.get_logger()


@asynccontextmanager
async def backup_lifespan(
    app: FastAPI,
    config: BackupConfig,
    database: DocumentDatabase | None = None,
) -> AsyncIterator[None]:
    """
    Lifespan context manager for FastAPI.

        app = FastAPI(lifespan=lambda app: backup_lifespan(app, config))

    Args:
        app: FastAPI application
        config: Backup configuration
        database: Document database (default: MotorDatabase from config)
    """
    logger.info("backup_lifespan_starting", backup_dir=str(config.backup_dir))

    state = await initialize_backup_state(config, database)
    app.state.backup_state = state
    app.state.backup_config = config

    if config.schedule_enabled:
        try:
            start_backup_scheduler(config, state)
        except Exception as e:
            logger.error("scheduler_setup_failed", error=str(e))

    logger.info("backup_lifespan_started")

    try:
        yield
    finally:
        logger.info("backup_lifespan_stopping")
        await shutdown_backup_state(state)
        app.state.backup_state = None
        logger.info("backup_lifespan_stopped")


def create_backup_lifespan(
    config: BackupConfig,
    database: DocumentDatabase | None = None,
) -> Callable[[FastAPI], AsyncIterator[None]]:
    """
    Build a lifespan callable for FastAPI(lifespan=...).

        app = FastAPI(lifespan=create_backup_lifespan(config))
    """

    def lifespan(app: FastAPI):
        return backup_lifespan(app, config, database)

    return lifespan


def get_backup_state(app: FastAPI) -> BackupState:
    """
    Get backup state from a FastAPI app.

    Raises:
        RuntimeError: If the backup lifespan has not started
    """
    state = getattr(app.state, "backup_state", None)
    if not state:
        raise RuntimeError("Backup subsystem not initialized. Use backup_lifespan.")
    return state


def get_backup_config(app: FastAPI) -> BackupConfig:
    """
    Get backup config from a FastAPI app.

    Raises:
        RuntimeError: If the backup lifespan has not started
    """
    config = getattr(app.state, "backup_config", None)
    if not config:
        raise RuntimeError("Backup subsystem not initialized. Use backup_lifespan.")
    return config
