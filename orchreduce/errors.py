"""Exception types raised while reducing a score."""

from fractions import Fraction
from typing import Any


class ReductionError(Exception):
    """Base class for errors caused by the input score rather than a bug."""


class ScoreParseError(ReductionError):
    """The input file could not be read or contains an unusable value."""


class ConflictingSignatureError(ReductionError):
    """Two parts declare different key or time signatures at the same position."""

    def __init__(self, kind: str, position: Fraction, existing: Any, new: Any) -> None:
        self.kind = kind
        self.position = position
        self.existing = existing
        self.new = new
        super().__init__(
            f"Conflicting {kind} signatures at position {position}: {existing!r} vs {new!r}"
        )


class EmptyTimelineError(LookupError):
    """A positional query was made on a timeline that holds no entries."""
