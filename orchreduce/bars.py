"""BarNumbers: maps positions to bar indices under changing time signatures."""

from __future__ import annotations

import bisect
import math
from collections.abc import Mapping
from dataclasses import dataclass
from fractions import Fraction

from orchreduce.rational import ZERO, remainder, to_whole

TimeSignature = tuple[int, int]

DEFAULT_TIME_SIGNATURE: TimeSignature = (4, 4)


def bar_length(time_signature: TimeSignature) -> Fraction:
    """Length of one bar in quarter notes, e.g. ``(3, 8) -> 3/2``."""
    beats, beat_type = time_signature
    return Fraction(4 * beats, beat_type)


@dataclass(frozen=True)
class _Segment:
    start: Fraction
    first_bar: int
    time_signature: TimeSignature


class BarNumbers:
    """
    Bar arithmetic over a map of time-signature changes.

    Each time signature opens a segment. Bar counts accumulate across segments;
    a partial bar left before a signature change still counts as a bar.
    """

    def __init__(self, times: Mapping[Fraction, TimeSignature]) -> None:
        changes = dict(times)
        changes.setdefault(ZERO, DEFAULT_TIME_SIGNATURE)

        self._segments: list[_Segment] = []
        first_bar = 0
        for start in sorted(changes):
            if self._segments:
                previous = self._segments[-1]
                span = (start - previous.start) / bar_length(previous.time_signature)
                first_bar = previous.first_bar + math.ceil(span)
            self._segments.append(_Segment(start, first_bar, changes[start]))
        self._starts = [segment.start for segment in self._segments]

    def _segment_index(self, position: Fraction) -> int:
        return max(bisect.bisect_right(self._starts, position) - 1, 0)

    def _segment_for_bar(self, index: int) -> int:
        first_bars = [segment.first_bar for segment in self._segments]
        return max(bisect.bisect_right(first_bars, index) - 1, 0)

    def time_signature_at(self, position: Fraction) -> TimeSignature:
        return self._segments[self._segment_index(position)].time_signature

    def bar_number(self, position: Fraction) -> int:
        """Zero-based index of the bar containing ``position``."""
        segment = self._segments[self._segment_index(position)]
        offset = position - segment.start
        return segment.first_bar + to_whole(offset / bar_length(segment.time_signature))

    def crosses_bar(self, start: Fraction, length: Fraction) -> Fraction | None:
        """
        Check whether ``[start, start + length)`` runs over a bar line.

        Returns:
            The position of the first bar line (or time-signature change) strictly
            inside the span, or ``None`` if the span fits in its bar.
        """
        index = self._segment_index(start)
        segment = self._segments[index]
        measure = bar_length(segment.time_signature)
        offset = start - segment.start
        boundary = segment.start + offset - remainder(offset, measure) + measure
        if index + 1 < len(self._segments):
            boundary = min(boundary, self._segments[index + 1].start)
        if boundary < start + length:
            return boundary
        return None

    def bar_span(self, index: int) -> tuple[Fraction, Fraction, TimeSignature]:
        """Return ``(start, end, time signature)`` of bar ``index``."""
        segment_index = self._segment_for_bar(index)
        segment = self._segments[segment_index]
        measure = bar_length(segment.time_signature)
        start = segment.start + (index - segment.first_bar) * measure
        end = start + measure
        if segment_index + 1 < len(self._segments):
            end = min(end, self._segments[segment_index + 1].start)
        return start, end, segment.time_signature
