"""Unit tests for ReductionConfig and ScoreReducer."""

from fractions import Fraction

import pytest

from orchreduce.note_models import Note, NoteName
from orchreduce.reducer import ReductionConfig, ScoreReducer
from orchreduce.staves import PhraseList
from orchreduce.timeline import Timeline


def _whole(step: NoteName, octave: int, start: int = 0) -> Timeline:
    return Timeline.from_events([(Fraction(start), Note(step, octave), Fraction(4))])


def _sample_phrases() -> PhraseList:
    """E5 above C3, both held for a whole bar, plus a G4 in the next bar."""
    return PhraseList(
        phrases=[
            _whole(NoteName.E, 5),
            _whole(NoteName.C, 3),
            _whole(NoteName.G, 4, start=4),
        ]
    )


# ---------------------------------------------------------------------------
# ReductionConfig
# ---------------------------------------------------------------------------

def test_default_config() -> None:
    config = ReductionConfig()
    assert config.staves == 2
    assert config.strategy == "distribute"
    assert config.adjust_octaves is True
    assert config.merge is True


@pytest.mark.parametrize(
    "options",
    [
        {"staves": 0},
        {"max_phrase_length": -1},
        {"strategy": "random"},
        {"handspan": 11},
        {"strategy": "average", "merge": False},
    ],
)
def test_invalid_config_is_rejected(options: dict) -> None:
    with pytest.raises(ValueError):
        ReductionConfig(**options)


# ---------------------------------------------------------------------------
# ScoreReducer
# ---------------------------------------------------------------------------

def test_distribute_splits_high_and_low_lines() -> None:
    result = ScoreReducer(ReductionConfig(staves=2)).reduce(_sample_phrases())
    top, bottom = result.staves.staves
    assert len(top) == 1 and len(bottom) == 1
    assert top[0].get(Fraction(0))[0].max_value() == 64
    assert bottom[0].min_value() == 36
    assert result.report.total == 0


def test_single_stave_is_brought_within_the_handspan() -> None:
    result = ScoreReducer(ReductionConfig(staves=1)).reduce(_sample_phrases())
    (stave,) = result.staves.staves
    element, _ = stave[0].get(Fraction(0))
    assert element.max_value() - element.min_value() <= 12
    assert result.report.transposed_up == 2
    assert result.report.dropped == 0


def test_adjustment_can_be_disabled() -> None:
    config = ReductionConfig(staves=1, adjust_octaves=False)
    result = ScoreReducer(config).reduce(_sample_phrases())
    assert result.staves.staves[0][0].min_value() == 36
    assert result.report.total == 0


def test_unmerged_staves_keep_every_timeline() -> None:
    config = ReductionConfig(staves=1, adjust_octaves=False, merge=False)
    result = ScoreReducer(config).reduce(_sample_phrases())
    assert result.staves.timeline_counts() == [3]


def test_average_strategy_produces_one_timeline_per_stave() -> None:
    config = ReductionConfig(staves=3, strategy="average")
    result = ScoreReducer(config).reduce(_sample_phrases())
    assert [len(stave) for stave in result.staves.staves] == [1, 1, 1]
    assert result.report.total == 0


def test_signatures_are_carried_through() -> None:
    phrases = _sample_phrases()
    phrases.keys.insert(Fraction(0), 2)
    phrases.times.insert(Fraction(0), (3, 4))
    result = ScoreReducer().reduce(phrases)
    assert dict(result.staves.keys) == {Fraction(0): 2}
    assert dict(result.staves.times) == {Fraction(0): (3, 4)}
