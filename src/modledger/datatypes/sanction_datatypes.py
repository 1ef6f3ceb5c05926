"""
Sanction types and data structures for the moderation ledger.

This module defines the SanctionKind / SanctionStatus enums and the dataclasses
that move through the engine: the raw SanctionRequest coming from a caller, the
ValidatedSanction produced by the validator, the EnforcementOutcome returned by
a gateway, and the persisted SanctionRecord.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SanctionKind(Enum):
    """Enumeration of moderation sanctions and their reversals."""

    WARN = "warn"
    MUTE = "mute"
    TIMEOUT = "timeout"
    KICK = "kick"
    BAN = "ban"
    UNMUTE = "unmute"
    UNTIMEOUT = "untimeout"
    UNBAN = "unban"

    def __str__(self) -> str:
        return self.value

    @property
    def is_forward(self) -> bool:
        return self in FORWARD_KINDS

    @property
    def is_time_boxed(self) -> bool:
        """Mute and Timeout carry a duration and lapse on their own."""
        return self in TIME_BOXED_KINDS

    @property
    def is_reversible(self) -> bool:
        return self in REVERSAL_KINDS

    @property
    def reversal(self) -> "SanctionKind":
        """
        Return the kind that undoes this one.

        Raises:
            ValueError: If the kind has no reversal (warn, kick, or a reversal itself).
        """
        try:
            return REVERSAL_KINDS[self]
        except KeyError:
            raise ValueError(f"{self.value} sanctions cannot be reversed") from None


FORWARD_KINDS = frozenset({
    SanctionKind.WARN,
    SanctionKind.MUTE,
    SanctionKind.TIMEOUT,
    SanctionKind.KICK,
    SanctionKind.BAN,
})

TIME_BOXED_KINDS = frozenset({SanctionKind.MUTE, SanctionKind.TIMEOUT})

# Kinds that stay in force until reversed or expired
STANDING_KINDS = frozenset({SanctionKind.BAN, SanctionKind.MUTE, SanctionKind.TIMEOUT})

REVERSAL_KINDS = {
    SanctionKind.BAN: SanctionKind.UNBAN,
    SanctionKind.MUTE: SanctionKind.UNMUTE,
    SanctionKind.TIMEOUT: SanctionKind.UNTIMEOUT,
}


class SanctionStatus(Enum):
    """Lifecycle state of a SanctionRecord. EXPIRED is computed, never stored."""

    RECORDED = "recorded"
    ACTIVE = "active"
    REVERSED = "reversed"
    EXPIRED = "expired"

    def __str__(self) -> str:
        return self.value


class ExpiryState(Enum):
    """Result of evaluating a standing sanction against the clock."""

    ACTIVE = "active"
    EXPIRED = "expired"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class SanctionRequest:
    """Unvalidated punish request as received from a caller.

    Every field is loosely typed on purpose; the validator owns the checks.
    """
    guild_id: Any = None
    user_id: Any = None
    moderator_id: Any = None
    kind: Any = None
    reason: Any = None
    duration_seconds: Any = None


@dataclass(slots=True, frozen=True)
class ValidatedSanction:
    """A punish request that passed every validator rule."""
    guild_id: str
    user_id: str
    moderator_id: str
    kind: SanctionKind
    reason: str
    duration_seconds: Optional[int] = None


@dataclass(slots=True, frozen=True)
class EnforcementParams:
    """Parameters handed to EnforcementGateway.apply."""
    reason: str
    duration_seconds: Optional[int] = None


@dataclass(slots=True, frozen=True)
class EnforcementOutcome:
    """Result of a single gateway call."""
    succeeded: bool
    error_message: Optional[str] = None

    @classmethod
    def ok(cls) -> "EnforcementOutcome":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, error_message: str) -> "EnforcementOutcome":
        return cls(succeeded=False, error_message=error_message or "unknown enforcement error")


@dataclass(slots=True)
class SanctionRecord:
    """Audit entry for one sanction or reversal.

    Attributes:
        id: Store-assigned identifier; None only before the first insert
        guild_id: Guild the sanction applies to
        user_id: Sanctioned user
        moderator_id: Moderator that issued the sanction or reversal
        kind: Sanction kind
        reason: Free-text reason
        issued_at: UTC timestamp set by the engine at creation
        status: Stored lifecycle state (EXPIRED only ever appears in read projections)
        duration_seconds: Length of a mute/timeout, None for other kinds
        expires_at: issued_at + duration_seconds for mute/timeout, None otherwise
        enforcement_succeeded: True only if the gateway call reported success
        enforcement_error: Gateway error message when enforcement failed
        related_record_id: Reversal -> original, and original -> reversal once reversed
    """
    guild_id: str
    user_id: str
    moderator_id: str
    kind: SanctionKind
    reason: str
    issued_at: datetime
    status: SanctionStatus
    duration_seconds: Optional[int] = None
    expires_at: Optional[datetime] = None
    enforcement_succeeded: bool = False
    enforcement_error: Optional[str] = None
    related_record_id: Optional[int] = None
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase JSON shape used by the HTTP API."""
        return {
            "id": self.id,
            "guildId": self.guild_id,
            "userId": self.user_id,
            "moderatorId": self.moderator_id,
            "kind": self.kind.value,
            "reason": self.reason,
            "durationSeconds": self.duration_seconds,
            "issuedAt": self.issued_at.isoformat(),
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "enforcementSucceeded": self.enforcement_succeeded,
            "enforcementError": self.enforcement_error,
            "status": self.status.value,
            "relatedRecordId": self.related_record_id,
        }


@dataclass(slots=True)
class AuditPage:
    """One page of the guild audit log."""
    records: List[SanctionRecord]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@dataclass(slots=True)
class SanctionStats:
    """Per-kind sanction counts for a guild over a trailing window."""
    counts: Dict[str, int] = field(default_factory=dict)
    period_days: int = 30

    @property
    def total(self) -> int:
        return sum(self.counts.values())
