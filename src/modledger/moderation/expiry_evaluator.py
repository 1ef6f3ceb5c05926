"""Read-time expiry of standing sanctions. Nothing here writes to the store."""

from __future__ import annotations

from datetime import datetime

from modledger.datatypes.sanction_datatypes import ExpiryState, SanctionKind, SanctionRecord


def evaluate(record: SanctionRecord, now: datetime) -> ExpiryState:
    """
    Decide whether a standing sanction is still in force at ``now``.

    Bans never lapse on their own. Mutes and timeouts are expired once
    ``expires_at <= now``.

    Raises:
        ValueError: For kinds that are neither time-boxed nor a ban.
    """
    if record.kind is SanctionKind.BAN:
        return ExpiryState.ACTIVE

    if record.kind.is_time_boxed:
        if record.expires_at is None:
            raise ValueError(f"{record.kind.value} record {record.id} has no expiry")
        return ExpiryState.EXPIRED if record.expires_at <= now else ExpiryState.ACTIVE

    raise ValueError(f"expiry is undefined for {record.kind.value} sanctions")
