"""Unit tests for MidiExporter."""

from fractions import Fraction
from pathlib import Path

from orchreduce.midi_exporter import MidiExporter, joined_notes
from orchreduce.note_models import Chord, Note, NoteName, Tie
from orchreduce.staves import SignatureMap, StaveCollection
from orchreduce.timeline import Timeline


def _note(name: str, tie: Tie = Tie.NONE) -> Note:
    return Note(NoteName.parse(name[0]), int(name[-1]), 0, tie)


def test_tied_notes_are_joined() -> None:
    timeline = Timeline.from_events(
        [
            (Fraction(0), _note("C4", Tie.START), Fraction(1)),
            (Fraction(1), _note("C4", Tie.START_STOP), Fraction(1)),
            (Fraction(2), _note("C4", Tie.STOP), Fraction(2)),
        ]
    )
    assert joined_notes(timeline) == [(Fraction(0), Fraction(4), 60)]


def test_untied_repeats_stay_separate() -> None:
    timeline = Timeline.from_events(
        [
            (Fraction(0), _note("C4"), Fraction(1)),
            (Fraction(1), _note("C4"), Fraction(1)),
        ]
    )
    assert joined_notes(timeline) == [(Fraction(0), Fraction(1), 60), (Fraction(1), Fraction(1), 60)]


def test_chord_members_are_tied_independently() -> None:
    timeline = Timeline.from_events(
        [
            (Fraction(0), Chord([_note("C4", Tie.START), _note("E4")]), Fraction(1)),
            (Fraction(1), _note("C4", Tie.STOP), Fraction(1)),
        ]
    )
    assert joined_notes(timeline) == [
        (Fraction(0), Fraction(1), 64),
        (Fraction(0), Fraction(2), 60),
    ]


def test_dangling_tie_still_ends() -> None:
    timeline = Timeline.from_events([(Fraction(0), _note("G4", Tie.START), Fraction(2))])
    assert joined_notes(timeline) == [(Fraction(0), Fraction(2), 67)]


def test_export_writes_standard_midi_file(tmp_path: Path) -> None:
    keys: SignatureMap[int] = SignatureMap("key", {Fraction(0): -2})
    times: SignatureMap[tuple[int, int]] = SignatureMap("time", {Fraction(0): (6, 8)})
    collection = StaveCollection(
        staves=[
            [Timeline.from_events([(Fraction(0), _note("C5"), Fraction(3))])],
            [Timeline.from_events([(Fraction(0), _note("C3"), Fraction(3, 2))])],
        ],
        keys=keys,
        times=times,
    )
    out = tmp_path / "reduced.mid"
    MidiExporter(tempo=90).export(collection, out)
    data = out.read_bytes()
    assert data.startswith(b"MThd")
    assert data.count(b"MTrk") == 3


def test_export_has_one_track_per_stave_after_the_tempo_track(tmp_path: Path) -> None:
    collection = StaveCollection(
        staves=[[Timeline.from_events([(Fraction(0), _note("E4"), Fraction(1))])]]
    )
    out = tmp_path / "single.mid"
    MidiExporter().export(collection, out)
    assert out.read_bytes().count(b"MTrk") == 2
