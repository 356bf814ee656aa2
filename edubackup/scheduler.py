# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Scheduler - Initial and recurring backups.

One "initial" backup shortly after process start, then a "scheduled"
backup every interval. Overlap with a running backup (including a manual
one) is handled by the single-slot guard in create_backup(): the later
trigger is skipped and logged, and the next tick tries again.
"""

from datetime import datetime, timedelta, UTC

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from edubackup.config import BackupConfig, BackupType
from edubackup.core import BackupState, create_backup

logger = structlog.get_logger()

INITIAL_JOB_ID = "edubackup_initial"
SCHEDULED_JOB_ID = "edubackup_scheduled"
SYSTEM_TRIGGER = "system"


async def run_scheduled_backup(
    config: BackupConfig,
    state: BackupState,
    backup_type: BackupType,
) -> None:
    """Run one timer-triggered backup and log the outcome."""
    logger.info("scheduled_backup_starting", backup_type=backup_type.value)
    try:
        result = await create_backup(config, state, backup_type, SYSTEM_TRIGGER)
    except Exception as e:
        logger.error("scheduled_backup_failed", backup_type=backup_type.value, error=str(e))
        return

    if result.success:
        logger.info(
            "scheduled_backup_completed",
            backup_type=backup_type.value,
            file=result.file_name,
            documents=result.document_count,
        )
    else:
        logger.warning(
            "scheduled_backup_failed",
            backup_type=backup_type.value,
            error=result.error,
        )


def start_backup_scheduler(config: BackupConfig, state: BackupState) -> AsyncIOScheduler:
    """
    Start APScheduler with the initial and recurring backup jobs.

    Must be called from a running event loop. The scheduler is stored in
    state["scheduler"] so shutdown_backup_state() can stop it.

    Args:
        config: Backup configuration
        state: Runtime state

    Returns:
        The started scheduler
    """
    scheduler = AsyncIOScheduler(timezone="UTC")

    first_run = datetime.now(UTC) + timedelta(seconds=config.initial_delay_seconds)

    scheduler.add_job(
        run_scheduled_backup,
        trigger=DateTrigger(run_date=first_run),
        args=[config, state, BackupType.INITIAL],
        id=INITIAL_JOB_ID,
        replace_existing=True,
        misfire_grace_time=60,
    )

    scheduler.add_job(
        run_scheduled_backup,
        trigger=IntervalTrigger(hours=config.interval_hours),
        args=[config, state, BackupType.SCHEDULED],
        id=SCHEDULED_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    scheduler.start()
    state["scheduler"] = scheduler

    logger.info(
        "scheduler_started",
        initial_delay_seconds=config.initial_delay_seconds,
        interval_hours=config.interval_hours,
        next_run=scheduler.get_job(SCHEDULED_JOB_ID).next_run_time.isoformat(),
    )

    return scheduler
