"""MusicXmlExporter: writes reduced staves as a braced piano system via music21."""

from __future__ import annotations

import logging
from fractions import Fraction
from pathlib import Path
from typing import Any, Final

from orchreduce.bars import BarNumbers
from orchreduce.durations import Clef, NoteType
from orchreduce.note_models import Note, SoundingElement, Tie
from orchreduce.rational import ZERO
from orchreduce.staves import StaveCollection
from orchreduce.timeline import Timeline

logger = logging.getLogger(__name__)

_TIE_NAMES: Final[dict[Tie, str]] = {
    Tie.START: "start",
    Tie.STOP: "stop",
    Tie.START_STOP: "continue",
}


def split_at_bars(timeline: Timeline, bars: BarNumbers) -> list[Timeline]:
    """Cut ``timeline`` at every bar line it crosses, tying notes over each cut."""
    pieces: list[Timeline] = []
    remaining = timeline
    while not remaining.is_empty():
        boundary = bars.crosses_bar(remaining.start(), remaining.length())
        if boundary is None:
            pieces.append(remaining)
            break
        before, remaining = remaining.split(boundary)
        pieces.append(before)
    return pieces


def note_values(length: Fraction) -> list[Fraction]:
    """Lengths of the tied pieces a note of ``length`` is written as."""
    if NoteType.is_representable(length):
        return [note_type.quarter_length for note_type in NoteType.from_fraction(length)]
    return [length]


def chain_tie(tie: Tie, index: int, count: int) -> Tie:
    """Tie state of piece ``index`` out of ``count`` for a note carrying ``tie``."""
    result = Tie.NONE
    if index > 0 or tie.is_stop:
        result = result.stop()
    if index < count - 1 or tie.is_start:
        result = result.start()
    return result


class MusicXmlExporter:
    """
    Build a piano-style score from a StaveCollection.

    Every stave becomes a ``PartStaff``; all staves are joined by a brace.
    Each timeline is written as its own voice within a bar, and whatever the
    timelines leave silent is filled with rests.
    """

    def __init__(self, title: str = "", part_name: str = "Piano") -> None:
        self.title = title
        self.part_name = part_name

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _bar_count(self, collection: StaveCollection, bars: BarNumbers) -> int:
        ends = [
            timeline.end()
            for stave in collection.staves
            for timeline in stave
            if not timeline.is_empty()
        ]
        if not ends:
            return 1
        end = max(ends)
        last = bars.bar_number(end)
        start, _, _ = bars.bar_span(last)
        return last if start == end else last + 1

    def _pitch(self, note: Note) -> Any:
        from music21 import pitch

        accidental = "#" * note.alter if note.alter > 0 else "-" * -note.alter
        return pitch.Pitch(f"{note.step.name}{accidental}{note.octave}")

    def _rests(self, length: Fraction) -> list[Any]:
        from music21 import note

        return [note.Rest(quarterLength=value) for value in note_values(length)]

    def _sounding(self, element: SoundingElement, length: Fraction) -> list[Any]:
        from music21 import chord, note, tie

        values = note_values(length)
        written: list[Any] = []
        for index, value in enumerate(values):
            members = []
            for member in element.notes:
                music21_note = note.Note(self._pitch(member), quarterLength=value)
                piece_tie = chain_tie(member.tie, index, len(values))
                if piece_tie != Tie.NONE:
                    music21_note.tie = tie.Tie(_TIE_NAMES[piece_tie])
                members.append(music21_note)
            if len(members) == 1:
                written.append(members[0])
            else:
                written.append(chord.Chord(members, quarterLength=value))
        return written

    def _fill(self, container: Any, segment: Timeline, start: Fraction, end: Fraction) -> None:
        cursor = start
        for position, element, length in segment.entries():
            if position > cursor:
                for rest in self._rests(position - cursor):
                    container.append(rest)
            for written in self._sounding(element, length):
                container.append(written)
            cursor = position + length
        if cursor < end:
            for rest in self._rests(end - cursor):
                container.append(rest)

    def _signatures(
        self,
        collection: StaveCollection,
        bars: BarNumbers,
        start: Fraction,
        end: Fraction,
        first: bool,
    ) -> list[Any]:
        from music21 import key, meter

        marks: list[Any] = []
        key_positions = [p for p in collection.keys if start <= p < end]
        if key_positions:
            marks.append(key.KeySignature(collection.keys[key_positions[-1]]))
        elif first:
            marks.append(key.KeySignature(0))
        time_signature = collection.times.get(start)
        if time_signature is None and first:
            time_signature = bars.time_signature_at(ZERO)
        if time_signature is not None:
            marks.append(meter.TimeSignature(f"{time_signature[0]}/{time_signature[1]}"))
        return marks

    def _build_stave(
        self,
        collection: StaveCollection,
        index: int,
        bars: BarNumbers,
        bar_count: int,
    ) -> Any:
        from music21 import clef, note, stream

        part = stream.PartStaff(id=f"P1-Staff{index + 1}")
        part.partName = self.part_name

        segments_by_bar: dict[int, list[Timeline]] = {}
        for timeline in collection.staves[index]:
            for segment in split_at_bars(timeline, bars):
                segments_by_bar.setdefault(bars.bar_number(segment.start()), []).append(segment)

        stave_clef = Clef.for_stave(index, collection.num_staves)
        for bar in range(bar_count):
            start, end, _ = bars.bar_span(bar)
            measure = stream.Measure(number=bar + 1)
            if bar == 0:
                measure.append(clef.clefFromString(f"{stave_clef.sign}{stave_clef.line}"))
            for mark in self._signatures(collection, bars, start, end, bar == 0):
                measure.append(mark)

            segments = segments_by_bar.get(bar, [])
            if not segments:
                rest = note.Rest(quarterLength=end - start)
                rest.fullMeasure = True
                measure.append(rest)
            elif len(segments) == 1:
                self._fill(measure, segments[0], start, end)
            else:
                for number, segment in enumerate(segments, start=1):
                    voice = stream.Voice(id=str(number))
                    self._fill(voice, segment, start, end)
                    measure.insert(0, voice)
            part.append(measure)

        logger.debug(
            "Stave %d: %d bar(s), %d segment(s)",
            index + 1, bar_count, sum(len(s) for s in segments_by_bar.values()),
        )
        return part

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build_score(self, collection: StaveCollection) -> Any:
        """
        Convert ``collection`` into a ``music21.stream.Score``.

        Staves are listed top first; the bottom stave of a multi-stave system
        gets a bass clef, every other stave a treble clef.
        """
        from music21 import layout, metadata, stream

        bars = BarNumbers(collection.times)
        bar_count = self._bar_count(collection, bars)

        score = stream.Score()
        score.metadata = metadata.Metadata()
        score.metadata.title = self.title

        parts = [
            self._build_stave(collection, index, bars, bar_count)
            for index in range(collection.num_staves)
        ]
        for part in parts:
            score.insert(0, part)
        if len(parts) > 1:
            score.insert(0, layout.StaffGroup(parts, name=self.part_name, symbol="brace"))

        logger.info("Built score with %d stave(s) and %d bar(s)", len(parts), bar_count)
        return score

    def to_musicxml(self, collection: StaveCollection) -> bytes:
        """Serialise ``collection`` to MusicXML bytes."""
        from music21.musicxml.m21ToXml import GeneralObjectExporter

        exporter = GeneralObjectExporter(self.build_score(collection))
        return exporter.parse()

    def export(self, collection: StaveCollection, output_path: str | Path) -> None:
        """
        Write ``collection`` as a MusicXML file.

        Raises:
            OSError: If the output file cannot be written.
        """
        content = self.to_musicxml(collection)
        with open(output_path, "wb") as fh:
            fh.write(content)
