"""
Single aiosqlite connection shared by every ledger repository.

The ledger keeps one connection open for the life of the process. Reads go
straight through it (WAL lets them proceed during a write); writes are
queued on a one-slot semaphore because SQLite admits a single writer, and
each write runs inside ``transaction()`` so it commits or rolls back as a
unit. The sanction reversal relies on that: the reversal insert and the
status flip of the original either both land or neither does.

    manager = ConnectionManager()
    await manager.open(Path("data/modledger.db"))

    async with manager.read() as conn:
        cursor = await conn.execute("SELECT ...")

    async with manager.transaction() as conn:
        await conn.execute("INSERT ...")
        await conn.execute("UPDATE ...")

    await manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Sequence

import aiosqlite

from modledger.util.logger import get_logger

logger = get_logger("database_connection")

DEFAULT_PRAGMAS: tuple[str, ...] = (
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
)


class ConnectionManager:
    """
    Owner of the ledger's aiosqlite connection.

    Created by the entry point (or a test fixture) and handed to
    :class:`~modledger.repositories.sanction_repo.SanctionRepo`.
    """

    def __init__(self, pragmas: Sequence[str] = DEFAULT_PRAGMAS) -> None:
        self._pragmas = tuple(pragmas)
        self._conn: aiosqlite.Connection | None = None
        self._path: Path | None = None
        self._writer = asyncio.Semaphore(1)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("ledger database is not open; call ConnectionManager.open() first")
        return self._conn

    async def open(self, path: Path) -> None:
        """
        Connect to ``path`` (creating parent directories) and apply the pragmas.

        Reopening the same path is a no-op.

        Raises:
            RuntimeError: If already open on a different file.
        """
        path = Path(path)
        if self._conn is not None:
            if self._path == path:
                return
            raise RuntimeError(f"ledger database already open at {self._path}, refusing to open {path}")

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(path)
        conn.row_factory = aiosqlite.Row
        for pragma in self._pragmas:
            await conn.execute(pragma)
        await conn.commit()

        cursor = await conn.execute("PRAGMA journal_mode")
        mode = (await cursor.fetchone())[0]
        if str(mode).lower() != "wal":
            logger.warning("[DB CONNECTION] %s is running in %s mode; reads will block on writes", path, mode)

        self._conn = conn
        self._path = path
        logger.info("[DB CONNECTION] Ledger database open at %s", path)

    async def close(self) -> None:
        """Fold the WAL back into the main file and close. Calling it twice is harmless."""
        conn, self._conn = self._conn, None
        if conn is None:
            return

        try:
            await conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed while closing %s", self._path)
        finally:
            await conn.close()
        logger.info("[DB CONNECTION] Ledger database closed")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run the body as one write transaction.

        Waits for any other writer, commits when the body returns and rolls
        back (re-raising) when it raises or is cancelled.
        """
        conn = self.connection
        async with self._writer:
            try:
                yield conn
            except BaseException as exc:
                await conn.rollback()
                logger.debug("[DB CONNECTION] Rolled back write after %s", type(exc).__name__)
                raise
            await conn.commit()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Reader access; takes no lock."""
        yield self.connection
