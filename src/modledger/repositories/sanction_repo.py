"""
Persistent storage for sanction records.

Timestamps are stored as INTEGER unix seconds (UTC) so range comparisons
are plain integer comparisons with no string parsing.

The table is append-mostly: the only UPDATE ever issued is the
``active -> reversed`` flip performed by :meth:`SanctionRepo.record_reversal`.
"""

from __future__ import annotations

import dataclasses
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

import aiosqlite

from modledger.database.db_connection import ConnectionManager
from modledger.datatypes.sanction_datatypes import SanctionKind, SanctionRecord, SanctionStatus
from modledger.moderation.errors import ConflictError
from modledger.util.logger import get_logger

logger = get_logger("sanction_repo")

_COLUMNS = (
    "id, guild_id, user_id, moderator_id, kind, reason, duration_seconds, issued_at, "
    "expires_at, enforcement_succeeded, enforcement_error, status, related_record_id"
)


class SanctionStore(Protocol):
    """Storage contract consumed by the sanction engine."""

    async def insert(self, record: SanctionRecord) -> SanctionRecord: ...

    async def get(self, record_id: int) -> Optional[SanctionRecord]: ...

    async def find_active_ban(self, guild_id: str, user_id: str) -> Optional[SanctionRecord]: ...

    async def list_by_status(
        self, guild_id: str, kinds: Iterable[SanctionKind], status: SanctionStatus
    ) -> List[SanctionRecord]: ...

    async def list_for_user(self, guild_id: str, user_id: str) -> List[SanctionRecord]: ...

    async def record_reversal(
        self, reversal: SanctionRecord, original_id: int
    ) -> Tuple[SanctionRecord, SanctionRecord]: ...

    async def list_page(
        self, guild_id: str, kind: Optional[SanctionKind], limit: int, offset: int
    ) -> Tuple[List[SanctionRecord], int]: ...

    async def count_by_kind(self, guild_id: str, since: datetime) -> Dict[str, int]: ...


def to_unix(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(value.timestamp())


def from_unix(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _row_to_record(row: aiosqlite.Row) -> SanctionRecord:
    return SanctionRecord(
        id=row["id"],
        guild_id=row["guild_id"],
        user_id=row["user_id"],
        moderator_id=row["moderator_id"],
        kind=SanctionKind(row["kind"]),
        reason=row["reason"],
        duration_seconds=row["duration_seconds"],
        issued_at=from_unix(row["issued_at"]),
        expires_at=from_unix(row["expires_at"]),
        enforcement_succeeded=bool(row["enforcement_succeeded"]),
        enforcement_error=row["enforcement_error"],
        status=SanctionStatus(row["status"]),
        related_record_id=row["related_record_id"],
    )


def _is_active_ban_violation(exc: aiosqlite.IntegrityError) -> bool:
    message = str(exc)
    return "uq_sanctions_active_ban" in message or "sanctions.guild_id, sanctions.user_id" in message


class SanctionRepo:
    """aiosqlite-backed implementation of :class:`SanctionStore`."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def _insert_row(conn: aiosqlite.Connection, record: SanctionRecord) -> int:
        if record.status is SanctionStatus.EXPIRED:
            raise ValueError("expired is a read-time status and cannot be stored")

        try:
            cursor = await conn.execute(
                """
                INSERT INTO sanctions (
                    guild_id, user_id, moderator_id, kind, reason, duration_seconds,
                    issued_at, expires_at, enforcement_succeeded, enforcement_error,
                    status, related_record_id
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.guild_id,
                    record.user_id,
                    record.moderator_id,
                    record.kind.value,
                    record.reason,
                    record.duration_seconds,
                    to_unix(record.issued_at),
                    to_unix(record.expires_at),
                    int(record.enforcement_succeeded),
                    record.enforcement_error,
                    record.status.value,
                    record.related_record_id,
                ),
            )
        except aiosqlite.IntegrityError as exc:
            if _is_active_ban_violation(exc):
                raise ConflictError(
                    f"user {record.user_id} already has an active ban in guild {record.guild_id}"
                ) from exc
            raise
        return cursor.lastrowid

    async def insert(self, record: SanctionRecord) -> SanctionRecord:
        """
        Insert a new record and return a copy carrying the assigned id.

        Raises:
            ConflictError: If the record is a second active ban for the same user.
        """
        async with self._connection.transaction() as conn:
            record_id = await self._insert_row(conn, record)

        logger.debug("[SANCTION REPO] Inserted %s record %d for user %s in guild %s",
                     record.kind.value, record_id, record.user_id, record.guild_id)
        return dataclasses.replace(record, id=record_id)

    async def record_reversal(
        self, reversal: SanctionRecord, original_id: int
    ) -> Tuple[SanctionRecord, SanctionRecord]:
        """
        Store a reversal record and flip its original to ``reversed`` in one transaction.

        The reversal row is written first and the original's status last, so
        a partial failure can only leave a reversal without a status flip.

        Returns:
            (stored reversal, updated original)

        Raises:
            ConflictError: If the original is no longer active (concurrent reversal).
        """
        async with self._connection.transaction() as conn:
            reversal_id = await self._insert_row(conn, reversal)
            cursor = await conn.execute(
                "UPDATE sanctions SET status = ?, related_record_id = ? WHERE id = ? AND status = ?",
                (SanctionStatus.REVERSED.value, reversal_id, original_id, SanctionStatus.ACTIVE.value),
            )
            if cursor.rowcount != 1:
                raise ConflictError(f"sanction {original_id} is no longer active")

            cursor = await conn.execute(f"SELECT {_COLUMNS} FROM sanctions WHERE id = ?", (original_id,))
            original = _row_to_record(await cursor.fetchone())

        logger.debug("[SANCTION REPO] Reversal %d recorded for sanction %d", reversal_id, original_id)
        return dataclasses.replace(reversal, id=reversal_id), original

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, record_id: int) -> Optional[SanctionRecord]:
        async with self._connection.read() as conn:
            cursor = await conn.execute(f"SELECT {_COLUMNS} FROM sanctions WHERE id = ?", (record_id,))
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def find_active_ban(self, guild_id: str, user_id: str) -> Optional[SanctionRecord]:
        """Return the user's active ban in the guild, if any."""
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM sanctions "
                "WHERE guild_id = ? AND user_id = ? AND kind = ? AND status = ? LIMIT 1",
                (guild_id, user_id, SanctionKind.BAN.value, SanctionStatus.ACTIVE.value),
            )
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def list_by_status(
        self, guild_id: str, kinds: Iterable[SanctionKind], status: SanctionStatus
    ) -> List[SanctionRecord]:
        """Return the guild's records of the given kinds and stored status, newest first."""
        kind_values = [kind.value for kind in kinds]
        if not kind_values:
            return []

        placeholders = ",".join("?" * len(kind_values))
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM sanctions "
                f"WHERE guild_id = ? AND status = ? AND kind IN ({placeholders}) "
                "ORDER BY issued_at DESC, id DESC",
                [guild_id, status.value, *kind_values],
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def list_for_user(self, guild_id: str, user_id: str) -> List[SanctionRecord]:
        """Return every record for the pair, most recent first."""
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM sanctions WHERE guild_id = ? AND user_id = ? "
                "ORDER BY issued_at DESC, id DESC",
                (guild_id, user_id),
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows]

    async def list_page(
        self, guild_id: str, kind: Optional[SanctionKind], limit: int, offset: int
    ) -> Tuple[List[SanctionRecord], int]:
        """Return one page of the guild's records (newest first) and the total row count."""
        where = "WHERE guild_id = ?"
        params: list = [guild_id]
        if kind is not None:
            where += " AND kind = ?"
            params.append(kind.value)

        async with self._connection.read() as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) FROM sanctions {where}", params)
            total = (await cursor.fetchone())[0]

            cursor = await conn.execute(
                f"SELECT {_COLUMNS} FROM sanctions {where} ORDER BY issued_at DESC, id DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            rows = await cursor.fetchall()
        return [_row_to_record(row) for row in rows], total

    async def count_by_kind(self, guild_id: str, since: datetime) -> Dict[str, int]:
        """Count the guild's records per kind issued at or after ``since``."""
        start_time = time.perf_counter()
        async with self._connection.read() as conn:
            cursor = await conn.execute(
                "SELECT kind, COUNT(*) FROM sanctions WHERE guild_id = ? AND issued_at >= ? "
                "GROUP BY kind ORDER BY kind",
                (guild_id, to_unix(since)),
            )
            rows = await cursor.fetchall()

        logger.debug("[SANCTION REPO] count_by_kind for guild %s took %.2fms",
                     guild_id, (time.perf_counter() - start_time) * 1000)
        return {row[0]: row[1] for row in rows}
