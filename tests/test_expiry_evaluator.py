"""Tests for read-time expiry of standing sanctions."""

from datetime import timedelta

import pytest

from conftest import T0
from modledger.datatypes.sanction_datatypes import ExpiryState, SanctionKind, SanctionRecord, SanctionStatus
from modledger.moderation.expiry_evaluator import evaluate


def _record(kind: SanctionKind, duration: int | None = None) -> SanctionRecord:
    return SanctionRecord(
        id=1,
        guild_id="1000",
        user_id="2000",
        moderator_id="3000",
        kind=kind,
        reason="test",
        issued_at=T0,
        status=SanctionStatus.ACTIVE,
        duration_seconds=duration,
        expires_at=T0 + timedelta(seconds=duration) if duration else None,
    )


def test_ban_never_expires():
    record = _record(SanctionKind.BAN)
    assert evaluate(record, T0 + timedelta(days=3650)) is ExpiryState.ACTIVE


@pytest.mark.parametrize("kind", [SanctionKind.MUTE, SanctionKind.TIMEOUT])
def test_time_boxed_expire_at_the_boundary(kind):
    record = _record(kind, duration=600)

    assert evaluate(record, T0 + timedelta(seconds=599)) is ExpiryState.ACTIVE
    assert evaluate(record, T0 + timedelta(seconds=600)) is ExpiryState.EXPIRED
    assert evaluate(record, T0 + timedelta(seconds=601)) is ExpiryState.EXPIRED


@pytest.mark.parametrize("kind", [SanctionKind.WARN, SanctionKind.KICK, SanctionKind.UNBAN])
def test_other_kinds_are_a_programming_error(kind):
    with pytest.raises(ValueError):
        evaluate(_record(kind), T0)


def test_time_boxed_record_without_expiry_is_rejected():
    record = _record(SanctionKind.TIMEOUT)
    with pytest.raises(ValueError):
        evaluate(record, T0)


def test_evaluate_does_not_modify_the_record():
    record = _record(SanctionKind.TIMEOUT, duration=10)
    evaluate(record, T0 + timedelta(hours=1))
    assert record.status is SanctionStatus.ACTIVE
