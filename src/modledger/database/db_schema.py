"""
Ledger schema.

One table, ``sanctions``, holds forward sanctions and their reversals.
Timestamps are unix seconds (UTC). The partial unique index
``uq_sanctions_active_ban`` is what makes "at most one active ban per member
per guild" hold under concurrent requests.
"""

from typing import Optional

import aiosqlite

from modledger.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1

SANCTIONS_TABLE = """
    CREATE TABLE IF NOT EXISTS sanctions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        guild_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        moderator_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        reason TEXT NOT NULL,
        duration_seconds INTEGER,
        issued_at INTEGER NOT NULL,
        expires_at INTEGER,
        enforcement_succeeded INTEGER NOT NULL DEFAULT 0,
        enforcement_error TEXT,
        status TEXT NOT NULL CHECK (status IN ('recorded', 'active', 'reversed')),
        related_record_id INTEGER REFERENCES sanctions(id)
    )
"""

VERSION_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at INTEGER NOT NULL DEFAULT (CAST(strftime('%s', 'now') AS INTEGER))
    )
"""

INDEXES = (
    # history: one member in one guild, newest first
    "CREATE INDEX IF NOT EXISTS idx_sanctions_guild_user ON sanctions(guild_id, user_id, issued_at DESC)",
    # active view
    "CREATE INDEX IF NOT EXISTS idx_sanctions_guild_status ON sanctions(guild_id, status, kind)",
    # audit log filtered by kind, and stats
    "CREATE INDEX IF NOT EXISTS idx_sanctions_guild_kind ON sanctions(guild_id, kind, issued_at DESC)",
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_sanctions_active_ban
    ON sanctions(guild_id, user_id)
    WHERE kind = 'ban' AND status = 'active'
    """,
)


class SchemaManager:
    """Creates the ledger schema. Every statement is idempotent, so it runs on each start."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        for statement in (SANCTIONS_TABLE, VERSION_TABLE, *INDEXES):
            await db.execute(statement)
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

        logger.info("[SCHEMA] Ledger schema ready (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def current_version(db: aiosqlite.Connection) -> Optional[int]:
        """Highest applied schema version, or None on an empty database."""
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
        )
        if await cursor.fetchone() is None:
            return None
        cursor = await db.execute("SELECT MAX(version) FROM schema_version")
        return (await cursor.fetchone())[0]
