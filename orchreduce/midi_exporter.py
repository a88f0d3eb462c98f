"""MidiExporter: Converts a StaveCollection into a multi-track MIDI file."""

from __future__ import annotations

import logging
from fractions import Fraction
from pathlib import Path

from midiutil import MIDIFile
from midiutil.MidiFile import FLATS, MAJOR, SHARPS

from orchreduce.staves import StaveCollection
from orchreduce.timeline import Timeline

logger = logging.getLogger(__name__)

# midiutil Format 1 files carry their own tempo track ahead of the numbered
# tracks; tempo, time and key events land there. Stave i is track i.
TRACK_CONDUCTOR = 0

# General MIDI reserves channel 10 (index 9) for percussion.
PERCUSSION_CHANNEL = 9

# Offset between the package's semitone numbering (C4 = 48) and MIDI (C4 = 60).
MIDI_PITCH_OFFSET = 12

# (start, duration, pitch) of one MIDI note, in quarter notes.
MidiNote = tuple[Fraction, Fraction, int]


def _channel(stave_index: int) -> int:
    channel = stave_index if stave_index < PERCUSSION_CHANNEL else stave_index + 1
    return min(channel, 15)


def joined_notes(timeline: Timeline) -> list[MidiNote]:
    """
    Flatten a timeline into MIDI notes, joining tied notes of equal pitch.

    A tie-started note stays open until a contiguous tie-stopped note of the
    same pitch arrives; a tie that is never completed still ends its note.
    """
    notes: list[MidiNote] = []
    open_notes: dict[int, tuple[Fraction, Fraction]] = {}

    for position, element, duration in timeline.entries():
        for note in element.notes:
            pitch = note.value() + MIDI_PITCH_OFFSET
            held = open_notes.pop(pitch, None)
            if held is not None and note.tie.is_stop and held[0] + held[1] == position:
                start, length = held[0], held[1] + duration
            else:
                if held is not None:
                    notes.append((held[0], held[1], pitch))
                start, length = position, duration
            if note.tie.is_start:
                open_notes[pitch] = (start, length)
            else:
                notes.append((start, length, pitch))

    for pitch, (start, length) in open_notes.items():
        notes.append((start, length, pitch))
    return sorted(notes)


class MidiExporter:
    """
    Writes one MIDI track per stave of a reduced score.

    Track layout (Format 1)
    -----------------------
    Tempo track - added by midiutil (tempo, time and key signatures, no notes)

    Track i - stave i, top stave first, on its own channel.

    Positions are already in quarter notes, which midiutil counts as beats,
    so no conversion is needed beyond ``float()``.
    """

    DEFAULT_TEMPO = 120
    DEFAULT_VELOCITY = 80

    def __init__(
        self,
        tempo: int = DEFAULT_TEMPO,
        velocity: int = DEFAULT_VELOCITY,
    ) -> None:
        """
        Args:
            tempo:    Playback tempo in beats per minute.
            velocity: MIDI note-on velocity for every note.
        """
        self.tempo = tempo
        self.velocity = velocity

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _write_conductor(self, midi: MIDIFile, collection: StaveCollection) -> None:
        midi.addTempo(TRACK_CONDUCTOR, 0, self.tempo)
        for position, (beats, beat_type) in collection.times.items():
            midi.addTimeSignature(
                TRACK_CONDUCTOR, float(position), beats, beat_type.bit_length() - 1, 24
            )
        for position, fifths in collection.keys.items():
            midi.addKeySignature(
                TRACK_CONDUCTOR, float(position), abs(fifths), FLATS if fifths < 0 else SHARPS, MAJOR
            )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def export(self, collection: StaveCollection, output_path: str | Path) -> None:
        """
        Render the staves to a Standard MIDI File (SMF format 1).

        Args:
            collection:  Reduced staves, top stave first.
            output_path: Destination file path (e.g. "output.mid").

        Raises:
            OSError: If the output file cannot be opened for writing.
        """
        midi = MIDIFile(
            numTracks=collection.num_staves, removeDuplicates=False, deinterleave=False
        )
        self._write_conductor(midi, collection)

        for index, stave in enumerate(collection.staves):
            midi.addTrackName(index, 0, f"Stave {index + 1}")
            count = 0
            for timeline in stave:
                for start, length, pitch in joined_notes(timeline):
                    midi.addNote(
                        track=index,
                        channel=_channel(index),
                        pitch=pitch,
                        time=float(start),
                        duration=float(length),
                        volume=self.velocity,
                    )
                    count += 1
            logger.debug("Stave %d: wrote %d MIDI note(s)", index + 1, count)

        with open(output_path, "wb") as f:
            midi.writeFile(f)
