"""
Enforcement gateway contract.

A gateway applies or lifts a sanction on the bot platform. It may fail for
reasons unrelated to the request (platform unreachable, member gone, missing
permissions); such failures come back as an EnforcementOutcome, and the
engine treats a raised exception the same way.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

from modledger.datatypes.sanction_datatypes import EnforcementOutcome, EnforcementParams, SanctionKind


class EnforcementGateway(Protocol):
    """Platform binding used by the sanction engine."""

    async def apply(
        self, guild_id: str, user_id: str, kind: SanctionKind, params: EnforcementParams
    ) -> EnforcementOutcome:
        """Apply a forward sanction to the member."""
        ...

    async def revoke(
        self, guild_id: str, user_id: str, kind: SanctionKind, *, reason: Optional[str] = None
    ) -> EnforcementOutcome:
        """Lift a previously applied sanction; ``kind`` is the original forward kind."""
        ...


@dataclass(slots=True, frozen=True)
class GatewayCall:
    """One call observed by :class:`InMemoryEnforcementGateway`."""
    operation: str
    guild_id: str
    user_id: str
    kind: SanctionKind
    params: Optional[EnforcementParams] = None
    reason: Optional[str] = None


@dataclass
class InMemoryEnforcementGateway:
    """
    Gateway double that records calls and returns canned outcomes.

    Outcomes are looked up per ``(operation, kind)`` and fall back to
    ``default_outcome``. Setting ``raise_error`` makes every call raise it,
    and ``delay`` suspends each call so concurrent requests interleave.
    """
    default_outcome: EnforcementOutcome = field(default_factory=EnforcementOutcome.ok)
    outcomes: Dict[Tuple[str, SanctionKind], EnforcementOutcome] = field(default_factory=dict)
    raise_error: Optional[Exception] = None
    delay: float = 0.0
    calls: List[GatewayCall] = field(default_factory=list)

    def set_outcome(self, operation: str, kind: SanctionKind, outcome: EnforcementOutcome) -> None:
        self.outcomes[(operation, kind)] = outcome

    async def _respond(self, call: GatewayCall) -> EnforcementOutcome:
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)
        if self.raise_error is not None:
            raise self.raise_error
        return self.outcomes.get((call.operation, call.kind), self.default_outcome)

    async def apply(
        self, guild_id: str, user_id: str, kind: SanctionKind, params: EnforcementParams
    ) -> EnforcementOutcome:
        return await self._respond(GatewayCall("apply", guild_id, user_id, kind, params=params))

    async def revoke(
        self, guild_id: str, user_id: str, kind: SanctionKind, *, reason: Optional[str] = None
    ) -> EnforcementOutcome:
        return await self._respond(GatewayCall("revoke", guild_id, user_id, kind, reason=reason))

    def calls_for(self, operation: str) -> List[GatewayCall]:
        return [call for call in self.calls if call.operation == operation]
