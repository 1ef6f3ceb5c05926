"""
Sanction engine.

Turns a moderator's intent into a platform enforcement attempt plus an
authoritative audit record, computes which sanctions are currently in force,
and executes reversals.

Enforcement is best effort: a failed or crashing gateway call is stored on
the record (``enforcement_succeeded`` / ``enforcement_error``) and never
prevents the record from being written. Validation, conflict, not-found and
invalid-state errors abort the operation before anything is persisted.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional

from modledger.datatypes.sanction_datatypes import (
    AuditPage,
    EnforcementOutcome,
    EnforcementParams,
    ExpiryState,
    STANDING_KINDS,
    SanctionKind,
    SanctionRecord,
    SanctionRequest,
    SanctionStats,
    SanctionStatus,
)
from modledger.enforcement.gateway import EnforcementGateway
from modledger.moderation.errors import (
    ConflictError,
    FieldError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from modledger.moderation.expiry_evaluator import evaluate
from modledger.moderation.sanction_validator import check_id, parse_kind, validate
from modledger.repositories.sanction_repo import SanctionStore
from modledger.util.logger import get_logger

logger = get_logger("sanction_engine")

DEFAULT_REVERSAL_REASON = "Removed via dashboard"
MAX_PAGE_SIZE = 100
MAX_STATS_DAYS = 3650

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SanctionEngine:
    """
    Orchestrates validation, enforcement and persistence of sanctions.

    The engine keeps no state between calls; everything durable lives in the
    store. Both collaborators are injected so tests can swap in doubles.

    Args:
        store: Sanction store.
        gateway: Enforcement gateway bound to the bot platform.
        clock: Returns the current time; must be timezone-aware.
        default_reversal_reason: Reason stored on reversals that were given none.
    """

    def __init__(
        self,
        store: SanctionStore,
        gateway: EnforcementGateway,
        *,
        clock: Clock = utc_now,
        default_reversal_reason: str = DEFAULT_REVERSAL_REASON,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._clock = clock
        self._default_reversal_reason = default_reversal_reason

    def now(self) -> datetime:
        """Current time in UTC, truncated to the whole second the store keeps."""
        return self._clock().astimezone(timezone.utc).replace(microsecond=0)

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    async def issue(self, request: SanctionRequest) -> SanctionRecord:
        """
        Validate, enforce and record a forward sanction.

        Args:
            request: Raw punish request.

        Returns:
            SanctionRecord: The persisted record. ``enforcement_succeeded``
            tells the caller whether the platform action actually happened.

        Raises:
            ValidationError: If the request is malformed.
            ConflictError: If the user already has an active ban in the guild.
        """
        sanction = validate(request)

        if sanction.kind is SanctionKind.BAN:
            existing = await self._store.find_active_ban(sanction.guild_id, sanction.user_id)
            if existing is not None:
                raise ConflictError(
                    f"user {sanction.user_id} is already banned in guild {sanction.guild_id} "
                    f"(sanction {existing.id})"
                )

        params = EnforcementParams(reason=sanction.reason, duration_seconds=sanction.duration_seconds)
        outcome = await self._enforce(
            "apply",
            sanction.kind,
            sanction.guild_id,
            sanction.user_id,
            lambda: self._gateway.apply(sanction.guild_id, sanction.user_id, sanction.kind, params),
        )

        issued_at = self.now()
        expires_at = None
        if sanction.duration_seconds is not None:
            expires_at = issued_at + timedelta(seconds=sanction.duration_seconds)

        record = SanctionRecord(
            guild_id=sanction.guild_id,
            user_id=sanction.user_id,
            moderator_id=sanction.moderator_id,
            kind=sanction.kind,
            reason=sanction.reason,
            issued_at=issued_at,
            status=SanctionStatus.ACTIVE if sanction.kind in STANDING_KINDS else SanctionStatus.RECORDED,
            duration_seconds=sanction.duration_seconds,
            expires_at=expires_at,
            enforcement_succeeded=outcome.succeeded,
            enforcement_error=outcome.error_message,
        )
        record = await self._store.insert(record)

        logger.info(
            "[ENGINE] Issued %s #%s to user %s in guild %s by %s (enforced=%s)",
            record.kind.value, record.id, record.user_id, record.guild_id,
            record.moderator_id, record.enforcement_succeeded,
        )
        return record

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def list_active(self, guild_id: str) -> List[SanctionRecord]:
        """
        Return the guild's sanctions that are in force right now.

        Stored-active bans, mutes and timeouts are filtered through the expiry
        evaluator; lapsed mutes and timeouts are left out of the result but
        are not written back to the store.
        """
        now = self.now()
        candidates = await self._store.list_by_status(str(guild_id), STANDING_KINDS, SanctionStatus.ACTIVE)
        return [record for record in candidates if evaluate(record, now) is ExpiryState.ACTIVE]

    async def history(self, guild_id: str, user_id: str) -> List[SanctionRecord]:
        """Every record (forward and reversal) for the pair, most recent first."""
        now = self.now()
        records = await self._store.list_for_user(str(guild_id), str(user_id))
        return [self._project(record, now) for record in records]

    async def get(self, record_id: int) -> SanctionRecord:
        """
        Raises:
            NotFoundError: If no record has this id.
        """
        record = await self._store.get(record_id)
        if record is None:
            raise NotFoundError(f"sanction {record_id} not found")
        return self._project(record, self.now())

    async def audit_log(
        self,
        guild_id: str,
        *,
        kind: Optional[str | SanctionKind] = None,
        page: int = 1,
        limit: int = 20,
    ) -> AuditPage:
        """
        Return one page of the guild's audit log, newest first.

        Raises:
            ValidationError: On an unknown kind, ``page < 1`` or ``limit`` outside 1..100.
        """
        errors: List[FieldError] = []
        kind_filter = None
        if kind is not None and str(kind).strip():
            kind_filter = parse_kind(kind)
            if kind_filter is None:
                errors.append(FieldError("kind", f"unknown sanction kind '{kind}'"))
        if page < 1:
            errors.append(FieldError("page", "must be at least 1"))
        if not 1 <= limit <= MAX_PAGE_SIZE:
            errors.append(FieldError("limit", f"must be between 1 and {MAX_PAGE_SIZE}"))
        if errors:
            raise ValidationError(errors)

        records, total = await self._store.list_page(str(guild_id), kind_filter, limit, (page - 1) * limit)
        now = self.now()
        return AuditPage(
            records=[self._project(record, now) for record in records],
            page=page,
            limit=limit,
            total=total,
        )

    async def stats(self, guild_id: str, *, days: int = 30) -> SanctionStats:
        """
        Count the guild's sanctions per kind over the last ``days`` days.

        Raises:
            ValidationError: If ``days`` is outside 1..3650.
        """
        if not 1 <= days <= MAX_STATS_DAYS:
            raise ValidationError.single("days", f"must be between 1 and {MAX_STATS_DAYS}")
        since = self.now() - timedelta(days=days)
        counts = await self._store.count_by_kind(str(guild_id), since)
        return SanctionStats(counts=counts, period_days=days)

    # ------------------------------------------------------------------
    # Reverse
    # ------------------------------------------------------------------

    async def reverse(self, record_id: int, moderator_id: str, reason: Optional[str] = None) -> SanctionRecord:
        """
        Lift an active ban, mute or timeout.

        Calls the gateway's ``revoke``, stores a linked ``un*`` record and flips
        the original to ``reversed``. The revoke outcome is captured on the
        reversal record exactly as in :meth:`issue`.

        Args:
            record_id: Id of the sanction to reverse.
            moderator_id: Moderator performing the reversal.
            reason: Optional reason; defaults to the configured reversal reason.

        Returns:
            SanctionRecord: The new reversal record.

        Raises:
            ValidationError: If ``moderator_id`` is missing or too long.
            NotFoundError: If the record does not exist.
            InvalidStateError: If the record is a warn/kick/reversal or is not active.
            ConflictError: If a concurrent reversal won the race.
        """
        id_errors: List[FieldError] = []
        moderator = check_id("moderatorId", moderator_id, id_errors)
        if id_errors:
            raise ValidationError(id_errors)

        original = await self._store.get(record_id)
        if original is None:
            raise NotFoundError(f"sanction {record_id} not found")

        if not original.kind.is_reversible:
            raise InvalidStateError(f"{original.kind.value} sanctions cannot be reversed")
        if original.status is not SanctionStatus.ACTIVE:
            raise InvalidStateError(f"sanction {record_id} is {original.status.value}, not active")

        reversal_reason = str(reason).strip() if reason is not None else ""
        reversal_reason = reversal_reason or self._default_reversal_reason

        outcome = await self._enforce(
            "revoke",
            original.kind,
            original.guild_id,
            original.user_id,
            lambda: self._gateway.revoke(original.guild_id, original.user_id, original.kind, reason=reversal_reason),
        )

        reversal = SanctionRecord(
            guild_id=original.guild_id,
            user_id=original.user_id,
            moderator_id=moderator,
            kind=original.kind.reversal,
            reason=reversal_reason,
            issued_at=self.now(),
            status=SanctionStatus.RECORDED,
            enforcement_succeeded=outcome.succeeded,
            enforcement_error=outcome.error_message,
            related_record_id=original.id,
        )
        reversal, original = await self._store.record_reversal(reversal, original.id)

        logger.info(
            "[ENGINE] Reversed %s #%s with %s #%s by %s (enforced=%s)",
            original.kind.value, original.id, reversal.kind.value, reversal.id,
            reversal.moderator_id, reversal.enforcement_succeeded,
        )
        return reversal

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _enforce(
        operation: str,
        kind: SanctionKind,
        guild_id: str,
        user_id: str,
        call: Callable[[], Awaitable[EnforcementOutcome]],
    ) -> EnforcementOutcome:
        """Run a gateway call, turning any exception into a failed outcome."""
        try:
            outcome = await call()
        except Exception as exc:
            logger.exception("[ENGINE] Gateway %s of %s for user %s in guild %s raised",
                             operation, kind.value, user_id, guild_id)
            return EnforcementOutcome.failed(str(exc) or type(exc).__name__)

        if not outcome.succeeded:
            logger.warning("[ENGINE] Gateway %s of %s for user %s in guild %s failed: %s",
                           operation, kind.value, user_id, guild_id, outcome.error_message)
        return outcome

    @staticmethod
    def _project(record: SanctionRecord, now: datetime) -> SanctionRecord:
        """Show lapsed mutes/timeouts as expired without touching the store."""
        if (
            record.status is SanctionStatus.ACTIVE
            and record.kind.is_time_boxed
            and evaluate(record, now) is ExpiryState.EXPIRED
        ):
            return dataclasses.replace(record, status=SanctionStatus.EXPIRED)
        return record
