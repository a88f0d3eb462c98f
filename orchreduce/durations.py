"""Representable note lengths and clefs used when writing staves back out."""

from __future__ import annotations

import enum
from fractions import Fraction

from orchreduce.rational import ZERO


class NoteType(enum.Enum):
    """
    Power-of-two note values, from a 1024th note up to a maxima.

    Each member carries ``(quarter-note value, MusicXML type, music21 type)``.
    The values are exactly ``2**k`` quarter notes for ``k`` in ``-8..5``.
    """

    N1024TH = (Fraction(1, 256), "1024th", "1024th")
    N512TH = (Fraction(1, 128), "512th", "512th")
    N256TH = (Fraction(1, 64), "256th", "256th")
    N128TH = (Fraction(1, 32), "128th", "128th")
    N64TH = (Fraction(1, 16), "64th", "64th")
    N32ND = (Fraction(1, 8), "32nd", "32nd")
    N16TH = (Fraction(1, 4), "16th", "16th")
    EIGHTH = (Fraction(1, 2), "eighth", "eighth")
    QUARTER = (Fraction(1), "quarter", "quarter")
    HALF = (Fraction(2), "half", "half")
    WHOLE = (Fraction(4), "whole", "whole")
    BREVE = (Fraction(8), "breve", "breve")
    LONG = (Fraction(16), "long", "longa")
    MAXIMA = (Fraction(32), "maxima", "maxima")

    @property
    def quarter_length(self) -> Fraction:
        return self.value[0]

    @property
    def musicxml_name(self) -> str:
        return self.value[1]

    @property
    def music21_type(self) -> str:
        return self.value[2]

    @classmethod
    def parse(cls, name: str) -> NoteType:
        """
        Look a note type up by its MusicXML name.

        Raises:
            ValueError: If the name is not a known note type.
        """
        for member in cls:
            if name in (member.musicxml_name, member.music21_type):
                return member
        raise ValueError(f"Unknown note type '{name}'.")

    @classmethod
    def is_representable(cls, duration: Fraction) -> bool:
        """True if ``duration`` is a nonnegative whole number of 1024th notes."""
        if duration < ZERO:
            return False
        return (duration / cls.N1024TH.quarter_length).denominator == 1

    @classmethod
    def from_fraction(cls, duration: Fraction) -> list[NoteType]:
        """
        Decompose a duration into note values, largest first.

        The maxima is repeated for as long as it fits; every smaller value is
        used at most once, so ``3/2`` becomes ``[QUARTER, EIGHTH]``.

        Raises:
            ValueError: If ``duration`` is negative or not a whole number of
                1024th notes (tuplet lengths cannot be spelled this way).
        """
        if not cls.is_representable(duration):
            raise ValueError(f"Duration {duration} cannot be written as plain note values.")

        remaining = Fraction(duration)
        note_types: list[NoteType] = []
        for note_type in _DESCENDING:
            while remaining >= note_type.quarter_length:
                note_types.append(note_type)
                remaining -= note_type.quarter_length
                if note_type is not cls.MAXIMA:
                    break
        return note_types


_DESCENDING: list[NoteType] = sorted(NoteType, key=lambda t: t.quarter_length, reverse=True)


class Clef(enum.Enum):
    """Clefs written at the start of each output stave."""

    TREBLE = ("G", 2)
    BASS = ("F", 4)

    @property
    def sign(self) -> str:
        return self.value[0]

    @property
    def line(self) -> int:
        return self.value[1]

    @classmethod
    def for_stave(cls, index: int, num_staves: int) -> Clef:
        """Treble for every stave except the bottom one of a multi-stave system."""
        if num_staves > 1 and index == num_staves - 1:
            return cls.BASS
        return cls.TREBLE
