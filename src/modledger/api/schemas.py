"""Request and response bodies for the moderation HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from modledger.datatypes.sanction_datatypes import AuditPage, SanctionRecord, SanctionRequest, SanctionStats


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PunishBody(CamelModel):
    """Punish payload. Fields are untyped so the sanction validator reports every problem."""

    guild_id: Any = None
    user_id: Any = None
    moderator_id: Any = None
    kind: Any = None
    reason: Any = None
    duration_seconds: Any = None

    def to_request(self) -> SanctionRequest:
        return SanctionRequest(
            guild_id=self.guild_id,
            user_id=self.user_id,
            moderator_id=self.moderator_id,
            kind=self.kind,
            reason=self.reason,
            duration_seconds=self.duration_seconds,
        )


class ReverseBody(CamelModel):
    moderator_id: Any = None
    reason: Optional[str] = None


class SanctionRecordOut(CamelModel):
    id: int
    guild_id: str
    user_id: str
    moderator_id: str
    kind: str
    reason: str
    duration_seconds: Optional[int] = None
    issued_at: datetime
    expires_at: Optional[datetime] = None
    enforcement_succeeded: bool
    enforcement_error: Optional[str] = None
    status: str
    related_record_id: Optional[int] = None

    @classmethod
    def from_record(cls, record: SanctionRecord) -> "SanctionRecordOut":
        return cls.model_validate(record.to_dict())


class EnforcementResponse(CamelModel):
    """Returned by punish and reverse: the flag is whether the platform action happened."""

    enforcement_succeeded: bool
    record: SanctionRecordOut

    @classmethod
    def from_record(cls, record: SanctionRecord) -> "EnforcementResponse":
        return cls(enforcement_succeeded=record.enforcement_succeeded, record=SanctionRecordOut.from_record(record))


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class AuditLogResponse(CamelModel):
    logs: List[SanctionRecordOut]
    pagination: Pagination

    @classmethod
    def from_page(cls, page: AuditPage) -> "AuditLogResponse":
        return cls(
            logs=[SanctionRecordOut.from_record(record) for record in page.records],
            pagination=Pagination(page=page.page, limit=page.limit, total=page.total, pages=page.pages),
        )


class StatsResponse(CamelModel):
    stats: Dict[str, int] = Field(default_factory=dict)
    total: int
    period_days: int

    @classmethod
    def from_stats(cls, stats: SanctionStats) -> "StatsResponse":
        return cls(stats=stats.counts, total=stats.total, period_days=stats.period_days)
