"""OctaveAdjuster: keeps every stave playable by one hand.

Walks the staves top to bottom. Wherever the pitches sounding together on a
stave span more than the handspan, one timeline is moved to a neighbouring
stave, transposed by an octave, or as a last resort dropped.
"""

import logging
from dataclasses import dataclass, field
from fractions import Fraction

from orchreduce.note_models import SEMITONES_PER_OCTAVE
from orchreduce.staves import StaveCollection
from orchreduce.timeline import Timeline

logger = logging.getLogger(__name__)

# ── Pitch range ─────────────────────────────────────────────────────────────
#: A1 and C7 in the package's semitone numbering (C4 = 48).
LOWEST_PITCH = 21
HIGHEST_PITCH = 84
MIN_HANDSPAN = SEMITONES_PER_OCTAVE


@dataclass
class AdjustmentReport:
    """Counts of every change the adjuster made, for the CLI summary."""

    moved_up: int = 0
    moved_down: int = 0
    transposed_down: int = 0
    transposed_up: int = 0
    dropped: int = 0
    dropped_positions: list[Fraction] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            self.moved_up + self.moved_down + self.transposed_down
            + self.transposed_up + self.dropped
        )


def can_accept(stave: list[Timeline], timeline: Timeline, handspan: int) -> bool:
    """
    True if adding ``timeline`` to ``stave`` keeps the handspan at each of its onsets.

    Only the timeline's own onsets are checked; onsets already on the stave
    were resolved when that stave was adjusted.
    """
    for position in timeline.positions():
        highs = [h for h in (t.max_at(position) for t in stave) if h is not None]
        if not highs:
            continue
        lows = [m for m in (t.min_at(position) for t in stave) if m is not None]
        high = max(max(highs), timeline.max_at(position))
        low = min(min(lows), timeline.min_at(position))
        if high - low > handspan:
            return False
    return True


def _onsets(stave: list[Timeline]) -> list[Fraction]:
    return sorted({position for timeline in stave for position in timeline.positions()})


def _highest(stave: list[Timeline], position: Fraction) -> tuple[int, int] | None:
    best: tuple[int, int] | None = None
    for index, timeline in enumerate(stave):
        value = timeline.max_at(position)
        if value is not None and (best is None or value > best[1]):
            best = (index, value)
    return best


def _lowest(stave: list[Timeline], position: Fraction) -> tuple[int, int] | None:
    best: tuple[int, int] | None = None
    for index, timeline in enumerate(stave):
        value = timeline.min_at(position)
        if value is not None and (best is None or value < best[1]):
            best = (index, value)
    return best


class OctaveAdjuster:
    """
    Resolve handspan violations on each stave of a StaveCollection.

    Args:
        handspan: Widest interval, in semitones, one stave may sound at once.
        floor:    Lowest pitch a downward transposition may reach.
        ceiling:  Highest pitch an upward transposition may reach.

    Raises:
        ValueError: If ``handspan`` is smaller than an octave.
    """

    def __init__(
        self, handspan: int = 12, floor: int = LOWEST_PITCH, ceiling: int = HIGHEST_PITCH
    ) -> None:
        if handspan < MIN_HANDSPAN:
            raise ValueError(f"Handspan must be at least {MIN_HANDSPAN} semitones, got {handspan}.")
        if floor >= ceiling:
            raise ValueError(f"Pitch floor {floor} must be below ceiling {ceiling}.")
        self.handspan = handspan
        self.floor = floor
        self.ceiling = ceiling

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _transposition_cap(self, stave: list[Timeline]) -> int:
        octaves = (self.ceiling - self.floor) // SEMITONES_PER_OCTAVE + 1
        return len(stave) * octaves

    def _resolve(
        self,
        staves: list[list[Timeline]],
        index: int,
        position: Fraction,
        report: AdjustmentReport,
    ) -> None:
        stave = staves[index]
        last = len(staves) - 1
        transpositions = 0
        cap = self._transposition_cap(stave)

        while True:
            highest = _highest(stave, position)
            lowest = _lowest(stave, position)
            if highest is None or lowest is None:
                return
            max_index, max_val = highest
            min_index, min_val = lowest
            if max_val - min_val <= self.handspan:
                return

            total = 0
            count = 0
            for timeline in stave:
                sounding = timeline.mean_at(position)
                if sounding is not None:
                    total += sounding[0]
                    count += sounding[1]
            mean = total // count
            midpoint = (min_val + max_val) // 2
            other_highs = [
                h for h in (t.max_at(position) for t in stave) if h is not None and h != max_val
            ]
            other_lows = [
                m for m in (t.min_at(position) for t in stave) if m is not None and m != min_val
            ]
            other_max = max(other_highs) if other_highs else min_val
            other_min = min(other_lows) if other_lows else max_val
            may_transpose = transpositions < cap

            if index > 0 and can_accept(staves[index - 1], stave[max_index], self.handspan):
                staves[index - 1].append(stave.pop(max_index))
                report.moved_up += 1
                logger.debug("Moved timeline up from stave %d at %s", index + 1, position)
            elif (
                may_transpose
                and mean < midpoint
                and (index != 0 or max_val - SEMITONES_PER_OCTAVE >= other_max)
                and stave[max_index].min_value() >= self.floor + SEMITONES_PER_OCTAVE
                and (index != last or max_val - SEMITONES_PER_OCTAVE >= min_val)
            ):
                stave[max_index].transpose_octaves(-1)
                transpositions += 1
                report.transposed_down += 1
                logger.debug("Transposed timeline down on stave %d at %s", index + 1, position)
            elif index < last and can_accept(staves[index + 1], stave[min_index], self.handspan):
                staves[index + 1].append(stave.pop(min_index))
                report.moved_down += 1
                logger.debug("Moved timeline down from stave %d at %s", index + 1, position)
            elif (
                may_transpose
                and (index != last or min_val + SEMITONES_PER_OCTAVE <= other_min)
                and stave[min_index].max_value() <= self.ceiling - SEMITONES_PER_OCTAVE
                and (index != 0 or min_val + SEMITONES_PER_OCTAVE <= max_val)
            ):
                stave[min_index].transpose_octaves(1)
                transpositions += 1
                report.transposed_up += 1
                logger.debug("Transposed timeline up on stave %d at %s", index + 1, position)
            else:
                dropped = stave.pop(max_index if index == 0 else min_index)
                report.dropped += 1
                report.dropped_positions.append(position)
                logger.warning(
                    "Dropped a timeline of %d element(s) starting at %s on stave %d: "
                    "no move or transposition fits a span of %d semitones",
                    len(dropped), dropped.start(), index + 1, self.handspan,
                )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def adjust(self, collection: StaveCollection) -> AdjustmentReport:
        """
        Adjust ``collection`` in place until every stave fits the handspan.

        Returns:
            AdjustmentReport describing the moves, transpositions and drops made.
        """
        report = AdjustmentReport()
        staves = collection.staves
        for index, stave in enumerate(staves):
            stave.sort(key=lambda timeline: timeline.start())
            for position in _onsets(stave):
                self._resolve(staves, index, position, report)
        logger.info(
            "Octave adjustment: %d moved up, %d moved down, %d transposed down, "
            "%d transposed up, %d dropped",
            report.moved_up, report.moved_down, report.transposed_down,
            report.transposed_up, report.dropped,
        )
        return report
