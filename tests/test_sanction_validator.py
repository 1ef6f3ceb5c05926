"""Tests for the punish request validator."""

import pytest

from conftest import make_request
from modledger.datatypes.sanction_datatypes import SanctionKind, SanctionRequest
from modledger.moderation.errors import ValidationError
from modledger.moderation.sanction_validator import (
    DEFAULT_WARN_REASON,
    MAX_DURATION_SECONDS,
    parse_kind,
    validate,
)


def _fields(exc_info) -> set:
    return {error.field for error in exc_info.value.errors}


class TestValidRequests:

    def test_ban_is_normalised(self):
        result = validate(make_request("ban", guild_id=" 1000 ", reason="  raid  "))

        assert result.kind is SanctionKind.BAN
        assert result.guild_id == "1000"
        assert result.reason == "raid"
        assert result.duration_seconds is None

    @pytest.mark.parametrize("kind", ["mute", "timeout"])
    def test_time_boxed_kinds_keep_duration(self, kind):
        result = validate(make_request(kind, duration_seconds=600))
        assert result.duration_seconds == 600

    def test_duration_accepts_integral_string_and_float(self):
        assert validate(make_request("timeout", duration_seconds="90")).duration_seconds == 90
        assert validate(make_request("timeout", duration_seconds=120.0)).duration_seconds == 120

    def test_duration_up_to_the_maximum_is_exact(self):
        assert validate(make_request("mute", duration_seconds=MAX_DURATION_SECONDS)).duration_seconds == MAX_DURATION_SECONDS
        assert validate(make_request("mute", duration_seconds=str(MAX_DURATION_SECONDS))).duration_seconds == MAX_DURATION_SECONDS

    def test_integer_ids_are_accepted(self):
        result = validate(make_request("kick", guild_id=1000, user_id=123456789012345678))
        assert result.guild_id == "1000"
        assert result.user_id == "123456789012345678"

    def test_kind_is_case_insensitive_and_accepts_enum(self):
        assert validate(make_request("KICK")).kind is SanctionKind.KICK
        assert validate(make_request(SanctionKind.KICK)).kind is SanctionKind.KICK

    def test_warn_without_reason_gets_default(self):
        result = validate(make_request("warn", reason="   "))
        assert result.reason == DEFAULT_WARN_REASON


class TestRejectedRequests:

    def test_all_violations_are_reported_together(self):
        request = SanctionRequest(kind="timeout", duration_seconds=-5)

        with pytest.raises(ValidationError) as exc_info:
            validate(request)

        assert _fields(exc_info) == {"guildId", "userId", "moderatorId", "reason", "durationSeconds"}

    def test_missing_kind(self):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request(None))
        assert _fields(exc_info) == {"kind"}
        assert exc_info.value.errors[0].reason == "is required"

    @pytest.mark.parametrize("kind", ["unban", "untimeout", "unmute", "smite"])
    def test_reversal_and_unknown_kinds_are_rejected(self, kind):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request(kind))
        assert _fields(exc_info) == {"kind"}

    @pytest.mark.parametrize("kind", ["ban", "kick", "mute", "timeout"])
    def test_reason_required_except_for_warn(self, kind):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request(kind, reason="", duration_seconds=60 if kind in ("mute", "timeout") else None))
        assert _fields(exc_info) == {"reason"}

    @pytest.mark.parametrize("kind", ["ban", "kick", "warn"])
    def test_duration_on_untimed_kind_is_an_error(self, kind):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request(kind, duration_seconds=60))
        assert _fields(exc_info) == {"durationSeconds"}

    @pytest.mark.parametrize("duration", [None, 0, -1, 1.5, "soon", True, [60]])
    def test_timeout_duration_must_be_positive_whole_seconds(self, duration):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request("timeout", duration_seconds=duration))
        assert _fields(exc_info) == {"durationSeconds"}

    def test_overlong_ids_are_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request("ban", user_id="9" * 21))
        assert _fields(exc_info) == {"userId"}

    @pytest.mark.parametrize(
        "duration",
        [MAX_DURATION_SECONDS + 1, 10**12, str(10**30), 2**53 + 1, float("inf"), float("nan")],
    )
    def test_duration_beyond_the_maximum_is_rejected(self, duration):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request("mute", duration_seconds=duration))
        assert _fields(exc_info) == {"durationSeconds"}

    @pytest.mark.parametrize("value", [{"a": 1}, ["1000"], 10.5, True])
    def test_ids_must_be_strings_or_integers(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request("ban", guild_id=value))
        assert _fields(exc_info) == {"guildId"}
        assert exc_info.value.errors[0].reason == "must be a string or an integer"

    def test_error_message_lists_each_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate(make_request("ban", guild_id="", reason=""))
        message = str(exc_info.value)
        assert "guildId: is required" in message
        assert "reason: is required" in message


class TestParseKind:

    def test_unknown_and_blank_return_none(self):
        assert parse_kind("") is None
        assert parse_kind(None) is None
        assert parse_kind("nope") is None

    def test_reversal_kinds_parse(self):
        assert parse_kind("UnBan") is SanctionKind.UNBAN
