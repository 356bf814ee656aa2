# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Framework Integrations - FastAPI lifespan integration.
"""

from edubackup.integrations.fastapi import (
    backup_lifespan,
    create_backup_lifespan,
    get_backup_config,
    get_backup_state,
)

__all__ = [
    "backup_lifespan",
    "create_backup_lifespan",
    "get_backup_config",
    "get_backup_state",
]
