# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Document Database Layer - The live database that backups read and restores write.

The backup subsystem only needs five things from the database. They are
captured by the DocumentDatabase protocol so the orchestrator does not
care whether it talks to MongoDB through motor or to something else.
"""

from typing import Any, Dict, List, Protocol

import structlog
from motor.motor_asyncio import AsyncIOMotorClient

from edubackup.config import BackupConfig
from edubackup.exceptions import StorageUnavailableError

logger = structlog.get_logger()

Document = Dict[str, Any]


class DocumentDatabase(Protocol):
    """Protocol for the document database collaborator."""

    async def ping(self) -> bool:
        """Return True when the database answers."""
        ...

    async def list_collection_names(self) -> List[str]:
        """List every collection currently present. Never cached."""
        ...

    async def find_all(self, collection: str) -> List[Document]:
        """Fetch every document of a collection."""
        ...

    async def delete_all(self, collection: str) -> int:
        """Delete every document of a collection. Returns deleted count."""
        ...

    async def insert_many(self, collection: str, documents: List[Document]) -> int:
        """Insert documents into a collection. Returns inserted count."""
        ...


class MotorDatabase:
    """DocumentDatabase backed by MongoDB via motor."""

    def __init__(self, mongo_url: str, database_name: str, timeout_ms: int = 5000):
        self.mongo_url = mongo_url
        self.database_name = database_name
        self.timeout_ms = timeout_ms
        self.client: AsyncIOMotorClient | None = None
        self.db = None

    @classmethod
    def from_config(cls, config: BackupConfig) -> "MotorDatabase":
        return cls(config.mongo_url, config.database_name, config.server_timeout_ms)

    async def connect(self) -> None:
        """Create the client. Does not fail if the server is down."""
        self.client = AsyncIOMotorClient(
            self.mongo_url,
            serverSelectionTimeoutMS=self.timeout_ms,
        )
        self.db = self.client[self.database_name]
        logger.info("mongodb_client_created", database=self.database_name)

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            await self.client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning("mongodb_ping_failed", error=str(e))
            return False

    async def list_collection_names(self) -> List[str]:
        return await self._require_db().list_collection_names()

    async def find_all(self, collection: str) -> List[Document]:
        cursor = self._require_db()[collection].find({})
        return await cursor.to_list(length=None)

    async def delete_all(self, collection: str) -> int:
        result = await self._require_db()[collection].delete_many({})
        return result.deleted_count

    async def insert_many(self, collection: str, documents: List[Document]) -> int:
        result = await self._require_db()[collection].insert_many(documents)
        return len(result.inserted_ids)

    async def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("mongodb_client_closed")

    def _require_db(self):
        if self.db is None:
            raise StorageUnavailableError(
                "Database not connected",
                details={"database": self.database_name},
            )
        return self.db
