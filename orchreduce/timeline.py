"""Timeline: a conflict-free, position-ordered sequence of sounding events."""

from __future__ import annotations

import bisect
from collections.abc import Iterator
from fractions import Fraction

from orchreduce.errors import EmptyTimelineError
from orchreduce.note_models import Chord, Note, Single, SoundingElement
from orchreduce.rational import ZERO

Entry = tuple[SoundingElement, Fraction]


class Timeline:
    """
    One musical line: sounding elements keyed by their start position.

    Positions and durations are fractions of a quarter note. No two entries
    ever overlap; every change goes through :meth:`insert`, which resolves
    overlaps by splitting notes into tied pieces.

    Resolution rules for a single incoming note
    -------------------------------------------
    1. **Forward overlap** - if the note runs past the next entry's start, the
       part beyond that boundary is inserted recursively as a tie-stopped
       continuation (unless the next entry already holds the same pitch), and
       the note is clipped to the boundary with a start tie.

    2. **Backward overlap** - if an earlier entry is still sounding at the
       note's position, that entry is evicted, the note is placed, and the
       evicted entry is reinserted so that it splits around the note.

    3. **Same position** - an existing entry that is shorter absorbs the note
       and the remainder continues after it; an equal entry simply absorbs it;
       a longer entry is replaced and reinserted on top of the note.

    Whenever a merged note's stop tie is absorbed, the matching start tie of
    the previous entry is cleared so no tie is left dangling.
    """

    def __init__(self) -> None:
        self._positions: list[Fraction] = []
        self._entries: dict[Fraction, Entry] = {}

    @classmethod
    def from_events(
        cls, events: list[tuple[Fraction, SoundingElement | Note, Fraction]]
    ) -> Timeline:
        """Build a timeline by inserting ``(position, element, duration)`` events in order."""
        timeline = cls()
        for position, element, duration in events:
            timeline.insert(element, position, duration)
        return timeline

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _put(self, position: Fraction, element: SoundingElement, duration: Fraction) -> None:
        if position not in self._entries:
            bisect.insort(self._positions, position)
        self._entries[position] = (element, duration)

    def _pop(self, position: Fraction) -> Entry:
        self._positions.remove(position)
        return self._entries.pop(position)

    def _key_after(self, position: Fraction) -> Fraction | None:
        index = bisect.bisect_right(self._positions, position)
        if index < len(self._positions):
            return self._positions[index]
        return None

    def _key_before(self, position: Fraction) -> Fraction | None:
        index = bisect.bisect_left(self._positions, position)
        if index > 0:
            return self._positions[index - 1]
        return None

    def _key_at_or_before(self, position: Fraction) -> Fraction | None:
        index = bisect.bisect_right(self._positions, position)
        if index > 0:
            return self._positions[index - 1]
        return None

    def _next_overlap(self, position: Fraction, duration: Fraction) -> Fraction | None:
        next_position = self._key_after(position)
        if next_position is not None and position + duration > next_position:
            return next_position
        return None

    def _previous_overlap(self, position: Fraction) -> Fraction | None:
        previous = self._key_before(position)
        if previous is None:
            return None
        _, previous_duration = self._entries[previous]
        if previous + previous_duration > position:
            return previous
        return None

    def _covering(self, position: Fraction) -> SoundingElement | None:
        key = self._key_at_or_before(position)
        if key is None:
            return None
        element, duration = self._entries[key]
        if key + duration > position:
            return element
        return None

    def _add_element(self, element: SoundingElement, position: Fraction, duration: Fraction) -> None:
        for note in element.notes:
            self._add_note(note.copy(), position, duration)

    def _add_note(self, note: Note, position: Fraction, duration: Fraction) -> None:
        overlap_position = self._next_overlap(position, duration)
        if overlap_position is not None:
            overlap, _ = self._entries[overlap_position]
            if not overlap.contains_note(note):
                continuation = note.copy()
                continuation.stop_tie()
                note.start_tie()
                self._add_note(
                    continuation, overlap_position, duration - (overlap_position - position)
                )
            duration = overlap_position - position

        previous_position = self._previous_overlap(position)
        if previous_position is not None:
            evicted, evicted_duration = self._pop(previous_position)
            self._put(position, Single(note), duration)
            self._add_element(evicted, previous_position, evicted_duration)
            return

        existing = self._entries.get(position)
        if existing is None:
            self._put(position, Single(note), duration)
            return

        element, length = existing
        repair_previous = False
        if length < duration:
            remainder = note.copy()
            remainder.stop_tie()
            note.start_tie()
            tied = element.has_stop_tie(note)
            if tied is not None:
                tied.remove_stop_tie()
                repair_previous = True
            self._put(position, element.merge_note(note), length)
            self._put(position + length, Single(remainder), duration - length)
        elif length == duration:
            tied = element.has_stop_tie(note)
            if tied is not None:
                tied.remove_stop_tie()
                repair_previous = True
            self._put(position, element.merge_note(note), length)
        else:
            self._put(position, Single(note), duration)
            self._add_element(element, position, length)

        if repair_previous:
            previous_key = self._key_before(position)
            if previous_key is not None:
                previous, _ = self._entries[previous_key]
                tied = previous.has_start_tie(note)
                if tied is not None:
                    tied.remove_start_tie()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def insert(
        self, element: SoundingElement | Note, position: Fraction, duration: Fraction
    ) -> None:
        """
        Insert a note or element, resolving any overlap with existing entries.

        A chord is inserted one member at a time. The caller's objects are
        copied, never stored.

        Raises:
            ValueError: If ``duration`` is not positive.
        """
        if duration <= ZERO:
            raise ValueError(f"Duration must be positive, got {duration}.")
        if isinstance(element, Note):
            element = Single(element)
        self._add_element(element, Fraction(position), Fraction(duration))

    def merge(self, other: Timeline) -> None:
        """Fold every entry of ``other`` into this timeline, in position order."""
        for position, element, duration in other.entries():
            self._add_element(element, position, duration)

    def split(self, split_point: Fraction) -> tuple[Timeline, Timeline]:
        """
        Partition the timeline at ``split_point``.

        An entry straddling the cut is duplicated: the left piece ends at the cut
        with a start tie, the right piece begins there with a stop tie.

        Returns:
            ``(before, after)``, two new timelines. This timeline is unchanged.
        """
        before = Timeline()
        after = Timeline()
        for position, element, length in self.entries():
            end = position + length
            if end <= split_point:
                before._add_element(element, position, length)
            elif position < split_point:
                head = element.copy()
                head.start_tie()
                tail = element.copy()
                tail.stop_tie()
                before._add_element(head, position, split_point - position)
                after._add_element(tail, split_point, end - split_point)
            else:
                after._add_element(element, position, length)
        return before, after

    def entries(self) -> Iterator[tuple[Fraction, SoundingElement, Fraction]]:
        """Yield ``(position, element, duration)`` in position order."""
        for position in list(self._positions):
            element, duration = self._entries[position]
            yield position, element, duration

    def positions(self) -> list[Fraction]:
        return list(self._positions)

    def get(self, position: Fraction) -> Entry | None:
        """Return the ``(element, duration)`` starting exactly at ``position``."""
        return self._entries.get(position)

    def is_empty(self) -> bool:
        return not self._positions

    def start(self) -> Fraction:
        if not self._positions:
            raise EmptyTimelineError("An empty timeline has no start.")
        return self._positions[0]

    def end(self) -> Fraction:
        if not self._positions:
            raise EmptyTimelineError("An empty timeline has no end.")
        last = self._positions[-1]
        return last + self._entries[last][1]

    def length(self) -> Fraction:
        return self.end() - self.start()

    def first(self) -> Entry:
        return self._entries[self.start()]

    def min_duration(self) -> Fraction:
        return min(duration for _, duration in self._entries.values())

    def min_at(self, position: Fraction) -> int | None:
        """Lowest pitch sounding at ``position``, or ``None`` in a rest."""
        element = self._covering(position)
        return None if element is None else element.min_value()

    def max_at(self, position: Fraction) -> int | None:
        """Highest pitch sounding at ``position``, or ``None`` in a rest."""
        element = self._covering(position)
        return None if element is None else element.max_value()

    def mean_at(self, position: Fraction) -> tuple[int, int] | None:
        """``(sum, count)`` of the pitches sounding at ``position``, or ``None``."""
        element = self._covering(position)
        return None if element is None else element.mean()

    def min_value(self) -> int:
        if not self._positions:
            raise EmptyTimelineError("An empty timeline has no pitches.")
        return min(element.min_value() for element, _ in self._entries.values())

    def max_value(self) -> int:
        if not self._positions:
            raise EmptyTimelineError("An empty timeline has no pitches.")
        return max(element.max_value() for element, _ in self._entries.values())

    def mean(self) -> int:
        """Floor of the mean pitch over every note in the timeline."""
        total = 0
        count = 0
        for element, _ in self._entries.values():
            element_total, element_count = element.mean()
            total += element_total
            count += element_count
        if count == 0:
            raise EmptyTimelineError("An empty timeline has no mean pitch.")
        return total // count

    def transpose_octaves(self, octaves: int) -> None:
        for element, _ in self._entries.values():
            element.transpose_octaves(octaves)

    def __len__(self) -> int:
        return len(self._positions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Timeline):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        body = ", ".join(
            f"{position}: {_describe(element)} x {duration}"
            for position, element, duration in self.entries()
        )
        return f"Timeline({{{body}}})"


def _describe(element: SoundingElement) -> str:
    text = "+".join(str(note) for note in element.notes)
    return f"[{text}]" if isinstance(element, Chord) else text
