"""Score-level containers: decoded phrases, output staves and signature maps."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Mapping, TypeVar

from orchreduce.errors import ConflictingSignatureError
from orchreduce.timeline import Timeline

logger = logging.getLogger(__name__)

V = TypeVar("V")


class SignatureMap(Mapping[Fraction, V]):
    """
    Position-indexed key or time signatures.

    Re-declaring the same value at a position (every part of a score repeats
    the signatures) is accepted; declaring a different one is fatal.
    """

    def __init__(self, kind: str, values: Mapping[Fraction, V] | None = None) -> None:
        self.kind = kind
        self._values: dict[Fraction, V] = {}
        for position, value in (values or {}).items():
            self.insert(position, value)

    def insert(self, position: Fraction, value: V) -> None:
        """
        Record ``value`` at ``position``.

        Raises:
            ConflictingSignatureError: If a different value is already recorded there.
        """
        existing = self._values.get(position)
        if existing is not None and existing != value:
            raise ConflictingSignatureError(self.kind, position, existing, value)
        self._values[position] = value

    def __getitem__(self, position: Fraction) -> V:
        return self._values[position]

    def __iter__(self) -> Iterator[Fraction]:
        return iter(sorted(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        items = ", ".join(f"{position}: {self._values[position]!r}" for position in self)
        return f"SignatureMap({self.kind!r}, {{{items}}})"


def _key_map() -> SignatureMap[int]:
    return SignatureMap("key")


def _time_map() -> SignatureMap[tuple[int, int]]:
    return SignatureMap("time")


@dataclass
class PhraseList:
    """
    Decoded input: every line of the score as a flat list of timelines.

    Attributes:
        phrases: One timeline per unbroken run of notes in an input voice.
        keys:    Key signatures in signed fifths, by position.
        times:   ``(beats, beat_type)`` time signatures, by position.
    """

    phrases: list[Timeline] = field(default_factory=list)
    keys: SignatureMap[int] = field(default_factory=_key_map)
    times: SignatureMap[tuple[int, int]] = field(default_factory=_time_map)

    def non_empty(self) -> list[Timeline]:
        """Phrases sorted by start position, with empty timelines removed."""
        return sorted(
            (phrase for phrase in self.phrases if not phrase.is_empty()),
            key=lambda phrase: phrase.start(),
        )


@dataclass
class StaveCollection:
    """
    Timelines distributed over the output staves.

    Attributes:
        staves: One list of timelines per output stave, top stave first.
        keys:   Key signatures carried over from the input.
        times:  Time signatures carried over from the input.
    """

    staves: list[list[Timeline]]
    keys: SignatureMap[int] = field(default_factory=_key_map)
    times: SignatureMap[tuple[int, int]] = field(default_factory=_time_map)

    @property
    def num_staves(self) -> int:
        return len(self.staves)

    def timeline_counts(self) -> list[int]:
        return [sum(1 for t in stave if not t.is_empty()) for stave in self.staves]

    def merge(self) -> StaveCollection:
        """Return a collection holding exactly one merged timeline per stave."""
        merged_staves: list[list[Timeline]] = []
        for index, stave in enumerate(self.staves):
            merged = Timeline()
            for timeline in stave:
                merged.merge(timeline)
            logger.debug("Merged %d timeline(s) on stave %d", len(stave), index + 1)
            merged_staves.append([merged])
        return StaveCollection(staves=merged_staves, keys=self.keys, times=self.times)
