"""Unit tests for Timeline insertion, merging and splitting."""

import random
from fractions import Fraction

import pytest

from orchreduce.errors import EmptyTimelineError
from orchreduce.note_models import Chord, Note, NoteName, Single, Tie
from orchreduce.timeline import Timeline


def _note(name: str, tie: Tie = Tie.NONE) -> Note:
    return Note(NoteName.parse(name[0]), int(name[-1]), 0, tie)


def _layout(timeline: Timeline) -> list[tuple[Fraction, list[tuple[str, Tie]], Fraction]]:
    return [
        (position, [(str(n), n.tie) for n in element.notes], duration)
        for position, element, duration in timeline.entries()
    ]


def _assert_no_overlap(timeline: Timeline) -> None:
    entries = list(timeline.entries())
    for (position, _, duration), (next_position, _, _) in zip(entries, entries[1:]):
        assert position + duration <= next_position


# ---------------------------------------------------------------------------
# Insertion
# ---------------------------------------------------------------------------

def test_insert_into_empty_timeline() -> None:
    timeline = Timeline()
    timeline.insert(_note("C4"), Fraction(0), Fraction(2))
    assert _layout(timeline) == [(Fraction(0), [("C4", Tie.NONE)], Fraction(2))]
    assert timeline.start() == 0
    assert timeline.end() == 2


def test_insert_rejects_non_positive_duration() -> None:
    with pytest.raises(ValueError):
        Timeline().insert(_note("C4"), Fraction(0), Fraction(0))


def test_insert_copies_the_callers_note() -> None:
    note = _note("C4")
    timeline = Timeline()
    timeline.insert(note, Fraction(0), Fraction(1))
    note.start_tie()
    element, _ = timeline.first()
    assert element.notes[0].tie == Tie.NONE


def test_forward_overlap_splits_into_tied_pieces() -> None:
    timeline = Timeline.from_events([(Fraction(1), _note("E4"), Fraction(1))])
    timeline.insert(_note("C4"), Fraction(0), Fraction(2))
    assert _layout(timeline) == [
        (Fraction(0), [("C4", Tie.START)], Fraction(1)),
        (Fraction(1), [("E4", Tie.NONE), ("C4", Tie.STOP)], Fraction(1)),
    ]


def test_forward_overlap_with_same_pitch_is_only_clipped() -> None:
    timeline = Timeline.from_events([(Fraction(1), _note("C4"), Fraction(1))])
    timeline.insert(_note("C4"), Fraction(0), Fraction(2))
    assert _layout(timeline) == [
        (Fraction(0), [("C4", Tie.NONE)], Fraction(1)),
        (Fraction(1), [("C4", Tie.NONE)], Fraction(1)),
    ]


def test_backward_overlap_resplits_the_earlier_entry() -> None:
    timeline = Timeline.from_events([(Fraction(0), _note("C4"), Fraction(2))])
    timeline.insert(_note("E4"), Fraction(1), Fraction(1))
    assert _layout(timeline) == [
        (Fraction(0), [("C4", Tie.START)], Fraction(1)),
        (Fraction(1), [("E4", Tie.NONE), ("C4", Tie.STOP)], Fraction(1)),
    ]


def test_same_position_shorter_entry_absorbs_and_continues() -> None:
    timeline = Timeline.from_events([(Fraction(0), _note("C4"), Fraction(1))])
    timeline.insert(_note("E4"), Fraction(0), Fraction(2))
    assert _layout(timeline) == [
        (Fraction(0), [("C4", Tie.NONE), ("E4", Tie.START)], Fraction(1)),
        (Fraction(1), [("E4", Tie.STOP)], Fraction(1)),
    ]


def test_same_position_longer_entry_is_replaced_and_reinserted() -> None:
    timeline = Timeline.from_events([(Fraction(0), _note("C4"), Fraction(2))])
    timeline.insert(_note("E4"), Fraction(0), Fraction(1))
    assert _layout(timeline) == [
        (Fraction(0), [("E4", Tie.NONE), ("C4", Tie.START)], Fraction(1)),
        (Fraction(1), [("C4", Tie.STOP)], Fraction(1)),
    ]


def test_equal_entry_merges_ties_into_one_entry() -> None:
    timeline = Timeline.from_events([(Fraction(0), _note("C4", Tie.START), Fraction(1))])
    timeline.insert(_note("C4", Tie.STOP), Fraction(0), Fraction(1))
    assert len(timeline) == 1
    element, duration = timeline.first()
    assert isinstance(element, Single)
    assert element.note.tie == Tie.START_STOP
    assert duration == 1


def _sample_tied_pair() -> Timeline:
    """C4 tied over from position 0 into position 1."""
    return Timeline.from_events(
        [
            (Fraction(0), _note("C4", Tie.START), Fraction(1)),
            (Fraction(1), _note("C4", Tie.STOP), Fraction(1)),
        ]
    )


def test_absorbed_stop_tie_clears_previous_start_on_equal_entry() -> None:
    timeline = _sample_tied_pair()
    timeline.insert(_note("C4"), Fraction(1), Fraction(1))
    assert _layout(timeline) == [
        (0, [("C4", Tie.NONE)], 1),
        (1, [("C4", Tie.NONE)], 1),
    ]


def test_absorbed_stop_tie_clears_previous_start_on_shorter_entry() -> None:
    timeline = _sample_tied_pair()
    timeline.insert(_note("C4"), Fraction(1), Fraction(2))
    assert _layout(timeline) == [
        (0, [("C4", Tie.NONE)], 1),
        (1, [("C4", Tie.START)], 1),
        (2, [("C4", Tie.STOP)], 1),
    ]


def test_chord_members_are_inserted_individually() -> None:
    timeline = Timeline()
    timeline.insert(Chord([_note("C4"), _note("E4"), _note("G4")]), Fraction(0), Fraction(1))
    element, _ = timeline.first()
    assert isinstance(element, Chord)
    assert [str(n) for n in element.notes] == ["C4", "E4", "G4"]


def test_random_insertions_never_overlap() -> None:
    rng = random.Random(20240501)
    names = ["C4", "D4", "E4", "F4", "G4", "A4", "B4", "C5"]
    for _ in range(50):
        timeline = Timeline()
        for _ in range(25):
            position = Fraction(rng.randint(0, 32), rng.choice([1, 2, 4]))
            duration = Fraction(rng.randint(1, 8), rng.choice([1, 2, 4]))
            timeline.insert(_note(rng.choice(names)), position, duration)
            _assert_no_overlap(timeline)


# ---------------------------------------------------------------------------
# Split / merge
# ---------------------------------------------------------------------------

def _sample_timeline() -> Timeline:
    return Timeline.from_events([(Fraction(0), _note("C4"), Fraction(2))])


def test_split_inside_entry_ties_both_halves() -> None:
    before, after = _sample_timeline().split(Fraction(1))
    assert _layout(before) == [(Fraction(0), [("C4", Tie.START)], Fraction(1))]
    assert _layout(after) == [(Fraction(1), [("C4", Tie.STOP)], Fraction(1))]


def test_split_at_start_and_end() -> None:
    original = _sample_timeline()
    before, after = original.split(Fraction(0))
    assert before.is_empty()
    assert after == original
    before, after = original.split(Fraction(2))
    assert before == original
    assert after.is_empty()


def test_split_does_not_modify_original() -> None:
    original = _sample_timeline()
    original.split(Fraction(1))
    assert _layout(original) == [(Fraction(0), [("C4", Tie.NONE)], Fraction(2))]


def test_split_then_merge_keeps_entries_and_boundary_ties() -> None:
    original = Timeline.from_events(
        [
            (Fraction(0), _note("C4"), Fraction(1)),
            (Fraction(1), _note("D4"), Fraction(2)),
            (Fraction(3), _note("E4"), Fraction(1)),
        ]
    )
    before, after = original.split(Fraction(2))
    before.merge(after)
    assert _layout(before) == [
        (Fraction(0), [("C4", Tie.NONE)], Fraction(1)),
        (Fraction(1), [("D4", Tie.START)], Fraction(1)),
        (Fraction(2), [("D4", Tie.STOP)], Fraction(1)),
        (Fraction(3), [("E4", Tie.NONE)], Fraction(1)),
    ]


def test_merge_folds_other_timeline() -> None:
    left = Timeline.from_events([(Fraction(0), _note("C4"), Fraction(1))])
    right = Timeline.from_events([(Fraction(0), _note("G4"), Fraction(1))])
    left.merge(right)
    element, _ = left.first()
    assert [str(n) for n in element.notes] == ["C4", "G4"]
    assert len(right) == 1


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def test_queries_at_positions() -> None:
    timeline = Timeline.from_events(
        [
            (Fraction(0), Chord([_note("C4"), _note("G4")]), Fraction(2)),
            (Fraction(3), _note("E4"), Fraction(1)),
        ]
    )
    assert timeline.min_at(Fraction(1)) == 48
    assert timeline.max_at(Fraction(1)) == 55
    assert timeline.mean_at(Fraction(0)) == (103, 2)
    assert timeline.min_at(Fraction(2)) is None
    assert timeline.max_at(Fraction(5)) is None
    assert timeline.min_value() == 48
    assert timeline.max_value() == 55
    assert timeline.mean() == (48 + 55 + 52) // 3
    assert timeline.length() == 4
    assert timeline.min_duration() == 1


def test_transpose_octaves_shifts_every_note() -> None:
    timeline = _sample_timeline()
    timeline.transpose_octaves(1)
    assert timeline.min_value() == 60


def test_empty_timeline_queries_raise() -> None:
    timeline = Timeline()
    with pytest.raises(EmptyTimelineError):
        timeline.start()
    with pytest.raises(EmptyTimelineError):
        timeline.end()
    with pytest.raises(EmptyTimelineError):
        timeline.mean()
    assert timeline.min_at(Fraction(0)) is None
