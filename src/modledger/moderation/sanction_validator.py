"""
Validation of incoming punish requests.

``validate`` is pure: it never touches the store or the gateway. All rule
violations are collected and raised together in one ValidationError so a
dashboard can highlight every bad field at once.
"""

from __future__ import annotations

from typing import Any, List, Optional

from modledger.datatypes.sanction_datatypes import (
    FORWARD_KINDS,
    SanctionKind,
    SanctionRequest,
    ValidatedSanction,
)
from modledger.moderation.errors import FieldError, ValidationError

DEFAULT_WARN_REASON = "No reason provided"

# Discord snowflakes never exceed 20 characters
MAX_ID_LENGTH = 20

# Ten years; keeps issued_at + duration well inside datetime's range
MAX_DURATION_SECONDS = 10 * 365 * 24 * 3600

_WHOLE_SECONDS = "must be a whole number of seconds"


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def check_id(name: str, value: Any, errors: List[FieldError]) -> str:
    """Append any problem with the id ``value`` to ``errors`` and return it trimmed."""
    if value is None:
        errors.append(FieldError(name, "is required"))
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        errors.append(FieldError(name, "must be a string or an integer"))
        return ""

    text = str(value).strip()
    if not text:
        errors.append(FieldError(name, "is required"))
    elif len(text) > MAX_ID_LENGTH:
        errors.append(FieldError(name, f"must be at most {MAX_ID_LENGTH} characters"))
    return text


def parse_kind(value: Any) -> Optional[SanctionKind]:
    """Resolve a SanctionKind from an enum member or a case-insensitive name."""
    if isinstance(value, SanctionKind):
        return value
    text = _clean_text(value).lower()
    if not text:
        return None
    try:
        return SanctionKind(text)
    except ValueError:
        return None


def _whole_seconds(value: Any) -> Optional[int]:
    """``value`` as an int, or None when it isn't a whole number."""
    # bool is an int subclass; True must not read as one second
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def _check_duration(kind: Optional[SanctionKind], value: Any, errors: List[FieldError]) -> Optional[int]:
    if kind is None:
        return None

    if not kind.is_time_boxed:
        if value is not None:
            errors.append(FieldError("durationSeconds", f"is not allowed for {kind.value}"))
        return None

    if value is None:
        errors.append(FieldError("durationSeconds", f"is required for {kind.value}"))
        return None

    seconds = _whole_seconds(value)
    if seconds is None:
        errors.append(FieldError("durationSeconds", _WHOLE_SECONDS))
        return None
    if seconds <= 0:
        errors.append(FieldError("durationSeconds", "must be greater than zero"))
        return None
    if seconds > MAX_DURATION_SECONDS:
        errors.append(FieldError("durationSeconds", f"must be at most {MAX_DURATION_SECONDS} seconds"))
        return None
    return seconds


def validate(request: SanctionRequest) -> ValidatedSanction:
    """
    Validate a punish request.

    Args:
        request: Raw request as received from the caller.

    Returns:
        ValidatedSanction: Normalised request with trimmed ids and a parsed kind.

    Raises:
        ValidationError: Listing every violated rule.
    """
    errors: List[FieldError] = []

    guild_id = check_id("guildId", request.guild_id, errors)
    user_id = check_id("userId", request.user_id, errors)
    moderator_id = check_id("moderatorId", request.moderator_id, errors)

    kind = parse_kind(request.kind)
    if kind is None and not _clean_text(request.kind):
        errors.append(FieldError("kind", "is required"))
    elif kind is None or kind not in FORWARD_KINDS:
        allowed = ", ".join(sorted(k.value for k in FORWARD_KINDS))
        errors.append(FieldError("kind", f"must be one of: {allowed}"))
        kind = None

    reason = _clean_text(request.reason)
    if not reason:
        if kind is SanctionKind.WARN:
            reason = DEFAULT_WARN_REASON
        else:
            errors.append(FieldError("reason", "is required"))

    duration_seconds = _check_duration(kind, request.duration_seconds, errors)

    if errors or kind is None:
        raise ValidationError(errors)

    return ValidatedSanction(
        guild_id=guild_id,
        user_id=user_id,
        moderator_id=moderator_id,
        kind=kind,
        reason=reason,
        duration_seconds=duration_seconds,
    )
