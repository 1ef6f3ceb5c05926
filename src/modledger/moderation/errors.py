"""
Error taxonomy for the sanction engine.

Enforcement failures are deliberately absent: a failed gateway call is stored
on the SanctionRecord as data, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List


class SanctionError(Exception):
    """Base class for every error the engine surfaces to callers."""


@dataclass(slots=True, frozen=True)
class FieldError:
    """A single rejected field and the reason it was rejected."""
    field: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "reason": self.reason}


class ValidationError(SanctionError):
    """Caller input was malformed. Carries every violation, not just the first."""

    def __init__(self, errors: Iterable[FieldError]) -> None:
        self.errors: List[FieldError] = list(errors)
        super().__init__("; ".join(f"{e.field}: {e.reason}" for e in self.errors) or "invalid request")

    @classmethod
    def single(cls, field: str, reason: str) -> "ValidationError":
        return cls([FieldError(field, reason)])


class ConflictError(SanctionError):
    """The write would break a store invariant, e.g. a second active ban."""


class NotFoundError(SanctionError):
    """No record exists with the requested id."""


class InvalidStateError(SanctionError):
    """The record exists but is not in a state that permits the operation."""
