# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with edubackup Integration.

This example shows how a school-admin backend wires the backup subsystem
into its app: lifespan startup, scheduled backups, and a few admin routes
that call the library.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    MONGODB_URI: MongoDB connection URL
    MONGODB_DATABASE: Database to back up
    EDUBACKUP_DIR: Backup directory
    EDUBACKUP_INTERVAL_HOURS: Hours between scheduled backups
"""

import os

import structlog
from fastapi import FastAPI, HTTPException, Request

from edubackup import (
    create_backup,
    create_config_from_env,
    delete_all_backups,
    delete_latest_backup,
    get_backup_history,
    get_backup_stats,
    restore_backup,
)
from edubackup.builder import build_config, create_empty_config, disable_schedule, with_backup_dir
from edubackup.exceptions import ConfigurationError
from edubackup.integrations.fastapi import (
    create_backup_lifespan,
    get_backup_config,
    get_backup_state,
)

logger = structlog.get_logger()


def create_backup_config():
    """
    Create the backup configuration from the environment.

    Falls back to a local, unscheduled setup when the environment is invalid.
    """
    try:
        return create_config_from_env()
    except ConfigurationError as e:
        logger.warning("backup_config_fallback", error=str(e))
        return build_config(
            disable_schedule(with_backup_dir(create_empty_config(), "./backups"))
        )


backup_config = create_backup_config()

app = FastAPI(
    title="School Admin with edubackup",
    description="Example application demonstrating database backups",
    version="1.0.0",
    lifespan=create_backup_lifespan(backup_config),
)


# ============================================================================
# Admin Routes
# ============================================================================

def _current_user(request: Request) -> str:
    return request.headers.get("X-Admin-User", os.getenv("USER", "admin"))


@app.post("/admin/backups")
async def trigger_backup(request: Request):
    """Start a manual backup."""
    state = get_backup_state(request.app)
    config = get_backup_config(request.app)

    result = await create_backup(config, state, "manual", _current_user(request))
    if not result.success:
        raise HTTPException(status_code=409 if "in progress" in (result.error or "") else 500,
                            detail=result.error)
    return result.to_dict()


@app.get("/admin/backups")
async def backup_history(request: Request):
    """List restorable backups, newest first."""
    config = get_backup_config(request.app)
    return [entry.to_dict() for entry in await get_backup_history(config)]


@app.get("/admin/backups/stats")
async def backup_stats(request: Request):
    """Count and size of the backups on disk."""
    config = get_backup_config(request.app)
    return (await get_backup_stats(config)).to_dict()


@app.post("/admin/backups/{file_name}/restore")
async def restore(file_name: str, request: Request):
    """Replace the database contents with a backup."""
    state = get_backup_state(request.app)
    config = get_backup_config(request.app)

    result = await restore_backup(config, state, file_name)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result.to_dict()


@app.delete("/admin/backups/latest")
async def remove_latest(request: Request):
    await delete_latest_backup(get_backup_config(request.app))
    return {"success": True}


@app.delete("/admin/backups")
async def remove_all(request: Request):
    await delete_all_backups(get_backup_config(request.app))
    return {"success": True}


@app.get("/")
async def root():
    return {"message": "School admin API with database backups"}
