"""Unit tests for the handspan repair pass."""

import logging
import random
from fractions import Fraction

import pytest

from orchreduce.note_models import Chord, Note, NoteName
from orchreduce.octave_adjuster import AdjustmentReport, OctaveAdjuster, can_accept
from orchreduce.staves import StaveCollection
from orchreduce.timeline import Timeline

_STEPS = [NoteName.C, NoteName.D, NoteName.E, NoteName.F, NoteName.G, NoteName.A, NoteName.B]


def _note(name: str) -> Note:
    return Note(NoteName.parse(name[0]), int(name[-1]))


def _line(start: int, *names: str) -> Timeline:
    return Timeline.from_events(
        [(Fraction(start + i), _note(name), Fraction(1)) for i, name in enumerate(names)]
    )


def _spans(stave: list[Timeline]) -> list[int]:
    positions = sorted({p for t in stave for p in t.positions()})
    spans = []
    for position in positions:
        highs = [h for h in (t.max_at(position) for t in stave) if h is not None]
        lows = [m for m in (t.min_at(position) for t in stave) if m is not None]
        spans.append(max(highs) - min(lows))
    return spans


def test_handspan_below_an_octave_is_rejected() -> None:
    with pytest.raises(ValueError):
        OctaveAdjuster(handspan=11)


def test_stave_within_handspan_is_untouched() -> None:
    collection = StaveCollection(staves=[[_line(0, "C4"), _line(0, "G4")]])
    report = OctaveAdjuster().adjust(collection)
    assert report == AdjustmentReport()
    assert [t.min_value() for t in collection.staves[0]] == [48, 55]


def test_single_stave_transposes_lowest_up() -> None:
    collection = StaveCollection(staves=[[_line(0, "C4"), _line(0, "C6")]])
    report = OctaveAdjuster().adjust(collection)
    assert report.transposed_up == 1
    assert report.total == 1
    assert sorted(t.min_value() for t in collection.staves[0]) == [60, 72]


def test_lowest_moves_to_stave_below() -> None:
    high, low = _line(0, "C6"), _line(0, "C4")
    collection = StaveCollection(staves=[[high, low], []])
    report = OctaveAdjuster().adjust(collection)
    assert report.moved_down == 1
    assert collection.staves[0] == [high]
    assert collection.staves[1] == [low]


def test_highest_moves_to_stave_above_when_it_fits() -> None:
    top = _line(0, "C6")
    high, low = _line(0, "A5"), _line(0, "C3")
    collection = StaveCollection(staves=[[top], [low, high]])
    report = OctaveAdjuster().adjust(collection)
    assert report.moved_up == 1
    assert high in collection.staves[0]
    assert collection.staves[1] == [low]


def test_bottom_heavy_stave_transposes_highest_down() -> None:
    collection = StaveCollection(
        staves=[[_line(0, "C3"), _line(0, "D3"), _line(0, "E3"), _line(0, "C5")]]
    )
    report = OctaveAdjuster().adjust(collection)
    assert report.transposed_down == 1
    assert _spans(collection.staves[0]) == [12]


def test_unplayable_chord_is_dropped_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    chord = Timeline.from_events([(Fraction(0), Chord([_note("C4"), _note("C6")]), Fraction(1))])
    collection = StaveCollection(staves=[[chord]])
    with caplog.at_level(logging.WARNING, logger="orchreduce.octave_adjuster"):
        report = OctaveAdjuster().adjust(collection)
    assert report.dropped == 1
    assert report.dropped_positions == [Fraction(0)]
    assert collection.staves[0] == []
    assert any("Dropped" in record.message for record in caplog.records)


def test_can_accept_checks_only_the_new_timelines_onsets() -> None:
    stave = [_line(0, "C4", "C4")]
    assert can_accept(stave, _line(1, "G4"), 12)
    assert not can_accept(stave, _line(1, "D5"), 12)
    assert can_accept(stave, _line(5, "C7"), 12)


def _random_collection(rng: random.Random, staves: int) -> StaveCollection:
    buckets: list[list[Timeline]] = [[] for _ in range(staves)]
    for _ in range(rng.randint(4, 14)):
        note = Note(rng.choice(_STEPS), rng.randint(3, 5))
        timeline = Timeline.from_events([(Fraction(rng.randint(0, 5)), note, Fraction(1))])
        buckets[rng.randrange(staves)].append(timeline)
    return StaveCollection(staves=buckets)


def test_random_staves_end_in_range_and_within_handspan() -> None:
    rng = random.Random(1234)
    for _ in range(60):
        staves = rng.randint(1, 3)
        collection = _random_collection(rng, staves)
        OctaveAdjuster(handspan=12).adjust(collection)
        for stave in collection.staves:
            for timeline in stave:
                assert 21 <= timeline.min_value()
                assert timeline.max_value() <= 84
            assert all(span <= 12 for span in _spans(stave))
