"""Tests for sanction enums and dataclasses."""

from datetime import timedelta

import pytest

from conftest import T0
from modledger.datatypes.sanction_datatypes import (
    AuditPage,
    EnforcementOutcome,
    SanctionKind,
    SanctionRecord,
    SanctionStats,
    SanctionStatus,
)


class TestSanctionKind:

    def test_reversal_mapping(self):
        assert SanctionKind.BAN.reversal is SanctionKind.UNBAN
        assert SanctionKind.MUTE.reversal is SanctionKind.UNMUTE
        assert SanctionKind.TIMEOUT.reversal is SanctionKind.UNTIMEOUT

    @pytest.mark.parametrize("kind", [SanctionKind.WARN, SanctionKind.KICK, SanctionKind.UNBAN])
    def test_no_reversal(self, kind):
        assert kind.is_reversible is False
        with pytest.raises(ValueError):
            kind.reversal

    def test_flags(self):
        assert SanctionKind.TIMEOUT.is_time_boxed
        assert not SanctionKind.BAN.is_time_boxed
        assert SanctionKind.WARN.is_forward
        assert not SanctionKind.UNMUTE.is_forward
        assert str(SanctionKind.UNTIMEOUT) == "untimeout"


def test_failed_outcome_always_has_a_message():
    assert EnforcementOutcome.failed("").error_message == "unknown enforcement error"
    assert EnforcementOutcome.ok() == EnforcementOutcome(succeeded=True, error_message=None)


def test_record_to_dict_uses_camel_case():
    record = SanctionRecord(
        id=7,
        guild_id="1",
        user_id="2",
        moderator_id="3",
        kind=SanctionKind.TIMEOUT,
        reason="flood",
        issued_at=T0,
        status=SanctionStatus.ACTIVE,
        duration_seconds=60,
        expires_at=T0 + timedelta(seconds=60),
        enforcement_succeeded=False,
        enforcement_error="member not found",
    )

    data = record.to_dict()

    assert data["kind"] == "timeout"
    assert data["status"] == "active"
    assert data["issuedAt"] == "2026-01-01T12:00:00+00:00"
    assert data["expiresAt"] == "2026-01-01T12:01:00+00:00"
    assert data["enforcementSucceeded"] is False
    assert data["enforcementError"] == "member not found"
    assert data["relatedRecordId"] is None


def test_audit_page_counts_pages():
    assert AuditPage(records=[], page=1, limit=20, total=0).pages == 0
    assert AuditPage(records=[], page=1, limit=20, total=20).pages == 1
    assert AuditPage(records=[], page=1, limit=20, total=21).pages == 2


def test_stats_total():
    assert SanctionStats(counts={"ban": 2, "warn": 3}, period_days=7).total == 5
