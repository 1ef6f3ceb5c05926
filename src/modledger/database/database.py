"""
Database coordinator.

Ties together the connection manager and schema creation so the entry point
(and tests) can bring the ledger database up and down with two calls.
"""

from __future__ import annotations

from pathlib import Path

from modledger.database.db_connection import ConnectionManager
from modledger.database.db_schema import SchemaManager
from modledger.util.logger import get_logger

logger = get_logger("database")

DEFAULT_DB_PATH = Path("./data/modledger.db")


class Database:
    """
    Owns the ledger database for the lifetime of the process.

    Lifecycle:
        1. ``await initialize()`` at startup
        2. hand ``connection`` to repositories
        3. ``await shutdown()`` at exit
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path).resolve()
        self.connection = ConnectionManager()

    async def initialize(self) -> None:
        """
        Open the connection and create the schema.

        Raises:
            aiosqlite.Error: If the file cannot be opened or the schema cannot be created.
        """
        if self.connection.is_open:
            logger.debug("[DATABASE] Already initialized, skipping")
            return

        await self.connection.open(self.db_path)
        async with self.connection.transaction() as conn:
            previous = await SchemaManager.current_version(conn)
            await SchemaManager.initialize_schema(conn)

        if previous is None:
            logger.info("[DATABASE] Created new ledger at %s", self.db_path)
        else:
            logger.info("[DATABASE] Opened ledger at %s (schema version %d)", self.db_path, previous)

    async def shutdown(self) -> None:
        await self.connection.close()
        logger.info("[DATABASE] Database shutdown complete")
