"""ScoreReducer: runs decode, assignment, octave adjustment and merging in order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from orchreduce.assignment import STRATEGIES, get_strategy
from orchreduce.octave_adjuster import MIN_HANDSPAN, AdjustmentReport, OctaveAdjuster
from orchreduce.score_parser import ScoreParser
from orchreduce.staves import PhraseList, StaveCollection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReductionConfig:
    """
    Options for one reduction run.

    Attributes:
        staves:            Number of output staves.
        max_phrase_length: Bars per decoded timeline; 0 keeps whole lines together.
        strategy:          ``"distribute"`` or ``"average"``.
        adjust_octaves:    Fix handspan violations (distribute strategy only).
        handspan:          Widest interval one stave may sound, in semitones.
        merge:             Merge each stave's timelines into one before export.

    Raises:
        ValueError: On any out-of-range or contradictory option.
    """

    staves: int = 2
    max_phrase_length: int = 1
    strategy: str = "distribute"
    adjust_octaves: bool = True
    handspan: int = 12
    merge: bool = True

    def __post_init__(self) -> None:
        if self.staves < 1:
            raise ValueError(f"At least one stave is required, got {self.staves}.")
        if self.max_phrase_length < 0:
            raise ValueError(f"max_phrase_length must be >= 0, got {self.max_phrase_length}.")
        if self.strategy not in STRATEGIES:
            known = ", ".join(sorted(STRATEGIES))
            raise ValueError(f"Unknown assignment strategy '{self.strategy}'. Use one of: {known}.")
        if self.handspan < MIN_HANDSPAN:
            raise ValueError(f"Handspan must be at least {MIN_HANDSPAN} semitones, got {self.handspan}.")
        if not self.merge and self.strategy == "average":
            raise ValueError("The average strategy always merges; it cannot be combined with merge=False.")


@dataclass
class ReductionResult:
    """Reduced staves plus what the octave adjuster had to change."""

    staves: StaveCollection
    report: AdjustmentReport = field(default_factory=AdjustmentReport)


class ScoreReducer:
    """
    Reduce a decoded score to a fixed number of staves.

    Usage:

        reducer = ScoreReducer(ReductionConfig(staves=2))
        result = reducer.reduce_file("symphony.musicxml")
    """

    def __init__(self, config: ReductionConfig | None = None) -> None:
        self.config = config or ReductionConfig()

    def reduce(self, phrases: PhraseList) -> ReductionResult:
        """Assign, adjust and merge already decoded phrases."""
        config = self.config
        strategy = get_strategy(config.strategy)
        logger.info(
            "Assigning %d timeline(s) to %d stave(s) with the '%s' strategy",
            len(phrases.phrases), config.staves, strategy.name,
        )
        collection = strategy.assign(phrases, config.staves)

        report = AdjustmentReport()
        if config.adjust_octaves and config.strategy == "distribute":
            report = OctaveAdjuster(handspan=config.handspan).adjust(collection)

        if config.merge:
            collection = collection.merge()
        logger.info("Timelines per stave: %s", collection.timeline_counts())
        return ReductionResult(staves=collection, report=report)

    def reduce_file(self, path: str | Path) -> ReductionResult:
        """
        Decode a MusicXML file and reduce it.

        Raises:
            ScoreParseError: If the file cannot be read.
            ConflictingSignatureError: If parts disagree on a signature.
        """
        phrases = ScoreParser(max_phrase_length=self.config.max_phrase_length).parse_file(path)
        return self.reduce(phrases)
