"""Pitch, tie and sounding-element models shared by every stage of the reduction."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

SEMITONES_PER_OCTAVE = 12


class NoteName(enum.Enum):
    """The seven diatonic steps, valued by their semitone offset above C."""

    C = 0
    D = 2
    E = 4
    F = 5
    G = 7
    A = 9
    B = 11

    @property
    def semitones(self) -> int:
        return self.value

    @property
    def index(self) -> int:
        """Position of the step in C, D, E, F, G, A, B order."""
        return _STEP_ORDER.index(self)

    @classmethod
    def parse(cls, name: str) -> NoteName:
        """
        Look a step up by its letter.

        Raises:
            ValueError: If ``name`` is not one of ``A``-``G``.
        """
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown note step '{name}'.") from None

    @classmethod
    def from_index(cls, index: int) -> NoteName:
        return _STEP_ORDER[index]


_STEP_ORDER: list[NoteName] = [
    NoteName.C,
    NoteName.D,
    NoteName.E,
    NoteName.F,
    NoteName.G,
    NoteName.A,
    NoteName.B,
]


class Tie(enum.Flag):
    """
    Tie state of a note.

    The four states form a small lattice: ``start()`` and ``stop()`` only ever
    add a flag, so applying them repeatedly is harmless. Flags are removed
    only through the explicit ``remove_*`` operations.
    """

    NONE = 0
    START = 1
    STOP = 2
    START_STOP = 3

    def start(self) -> Tie:
        return self | Tie.START

    def stop(self) -> Tie:
        return self | Tie.STOP

    def remove_start(self) -> Tie:
        return self & ~Tie.START

    def remove_stop(self) -> Tie:
        return self & ~Tie.STOP

    @property
    def is_start(self) -> bool:
        return bool(self & Tie.START)

    @property
    def is_stop(self) -> bool:
        return bool(self & Tie.STOP)


@dataclass
class Note:
    """
    A pitched note without position or duration.

    Attributes:
        step:   Diatonic step.
        octave: Scientific octave number (C4 is middle C).
        alter:  Semitone alteration, e.g. ``1`` for a sharp, ``-2`` for a double flat.
        tie:    Tie state.
    """

    step: NoteName
    octave: int
    alter: int = 0
    tie: Tie = Tie.NONE

    def value(self) -> int:
        """Absolute semitone number, ``12 * octave + alter + step`` (C4 = 48)."""
        return SEMITONES_PER_OCTAVE * self.octave + self.alter + self.step.semitones

    def pitch_equals(self, other: Note) -> bool:
        """Compare spelling only; enharmonic equivalents are different pitches."""
        return (
            self.step == other.step
            and self.octave == other.octave
            and self.alter == other.alter
        )

    def start_tie(self) -> None:
        self.tie = self.tie.start()

    def stop_tie(self) -> None:
        self.tie = self.tie.stop()

    def remove_start_tie(self) -> None:
        self.tie = self.tie.remove_start()

    def remove_stop_tie(self) -> None:
        self.tie = self.tie.remove_stop()

    def merge_ties(self, other: Note) -> None:
        """OR the tie flags of ``other`` into this note."""
        if other.tie.is_start:
            self.start_tie()
        if other.tie.is_stop:
            self.stop_tie()

    def transpose_octaves(self, octaves: int) -> None:
        self.octave += octaves

    def copy(self) -> Note:
        return Note(self.step, self.octave, self.alter, self.tie)

    def __str__(self) -> str:
        accidental = "#" * self.alter if self.alter > 0 else "b" * -self.alter
        return f"{self.step.name}{accidental}{self.octave}"


class SoundingElement(ABC):
    """
    Everything sounding in one timeline slot: a :class:`Single` note or a :class:`Chord`.

    Concrete variants only differ in how a new pitch is merged in; every other
    operation works on :attr:`notes`.
    """

    @property
    @abstractmethod
    def notes(self) -> list[Note]:
        """The contained notes, in insertion order."""

    @abstractmethod
    def merge_note(self, note: Note) -> SoundingElement:
        """
        Merge ``note`` into the element.

        A pitch-equal member absorbs the note's tie flags; a new pitch is added
        to the chord. The returned element replaces this one in its slot (a
        ``Single`` becomes a ``Chord`` when it gains a second pitch).
        """

    @abstractmethod
    def copy(self) -> SoundingElement:
        """Deep copy, so the copy's notes can be mutated independently."""

    def find(self, note: Note) -> Note | None:
        for member in self.notes:
            if member.pitch_equals(note):
                return member
        return None

    def contains_note(self, note: Note) -> bool:
        return self.find(note) is not None

    def has_start_tie(self, note: Note) -> Note | None:
        """Return the member pitch-equal to ``note`` if it is tie-started."""
        member = self.find(note)
        if member is not None and member.tie.is_start:
            return member
        return None

    def has_stop_tie(self, note: Note) -> Note | None:
        """Return the member pitch-equal to ``note`` if it is tie-stopped."""
        member = self.find(note)
        if member is not None and member.tie.is_stop:
            return member
        return None

    def start_tie(self) -> None:
        for member in self.notes:
            member.start_tie()

    def stop_tie(self) -> None:
        for member in self.notes:
            member.stop_tie()

    def mean(self) -> tuple[int, int]:
        """Return ``(sum of values, number of notes)`` so means can be combined later."""
        values = [member.value() for member in self.notes]
        return sum(values), len(values)

    def min_value(self) -> int:
        return min(member.value() for member in self.notes)

    def max_value(self) -> int:
        return max(member.value() for member in self.notes)

    def transpose_octaves(self, octaves: int) -> None:
        for member in self.notes:
            member.transpose_octaves(octaves)


@dataclass
class Single(SoundingElement):
    """A lone note."""

    note: Note

    @property
    def notes(self) -> list[Note]:
        return [self.note]

    def merge_note(self, note: Note) -> SoundingElement:
        if self.note.pitch_equals(note):
            self.note.merge_ties(note)
            return self
        return Chord([self.note, note.copy()])

    def copy(self) -> Single:
        return Single(self.note.copy())


@dataclass
class Chord(SoundingElement):
    """Two or more simultaneous notes of pairwise different pitch."""

    members: list[Note] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.members:
            raise ValueError("A chord must contain at least one note.")
        for i, note in enumerate(self.members):
            if any(note.pitch_equals(other) for other in self.members[i + 1:]):
                raise ValueError(f"Chord contains {note} more than once.")

    @property
    def notes(self) -> list[Note]:
        return self.members

    def merge_note(self, note: Note) -> SoundingElement:
        member = self.find(note)
        if member is None:
            self.members.append(note.copy())
        else:
            member.merge_ties(note)
        return self

    def copy(self) -> Chord:
        return Chord([member.copy() for member in self.members])
