"""StaveAssignmentStrategy: Strategy pattern for distributing timelines over output staves."""

import logging
from abc import ABC, abstractmethod
from fractions import Fraction

from orchreduce.rational import ZERO
from orchreduce.staves import PhraseList, StaveCollection
from orchreduce.timeline import Timeline

logger = logging.getLogger(__name__)

# ── Pitch defaults ──────────────────────────────────────────────────────────
#: Range assumed by MergeByAverage when nothing sounds at position zero
#: (A0 and C8 in the package's semitone numbering, where C4 = 48).
DEFAULT_LOW_PITCH = 9
DEFAULT_HIGH_PITCH = 96


def band_midpoints(low: int, high: int, staves: int) -> list[int]:
    """
    Split ``[low, high]`` into ``staves + 1`` equal bands and return the inner boundaries.

    The list is ordered top stave first, so index 0 holds the highest value.
    Integer arithmetic throughout, e.g. ``band_midpoints(48, 72, 2) == [64, 56]``.
    """
    band = (high - low) // (staves + 1)
    return [(i + 1) * band + low for i in reversed(range(staves))]


def closest_stave(pitch: int, midpoints: list[int]) -> int:
    """Index of the midpoint nearest to ``pitch``; the lowest index wins a tie."""
    return min(range(len(midpoints)), key=lambda index: abs(pitch - midpoints[index]))


def starting_mean(timeline: Timeline) -> int:
    """Floor of the mean pitch of the timeline's first element."""
    element, _ = timeline.first()
    total, count = element.mean()
    return total // count


def _extremes_at(
    timelines: list[Timeline], position: Fraction, default_low: int, default_high: int
) -> tuple[int, int]:
    """Lowest and highest pitch sounding at ``position``, or the defaults when nothing does."""
    highs = [h for h in (t.max_at(position) for t in timelines) if h is not None]
    lows = [m for m in (t.min_at(position) for t in timelines) if m is not None]
    return (min(lows) if lows else default_low), (max(highs) if highs else default_high)


# ── Abstract base ────────────────────────────────────────────────────────────

class StaveAssignmentStrategy(ABC):
    """
    Abstract Strategy for assigning decoded timelines to a fixed number of staves.

    Concrete subclasses implement ``assign()``; both are deterministic for a
    given input and stave count.
    """

    #: Name used on the command line and in ReductionConfig.
    name: str = ""

    @abstractmethod
    def assign(self, phrases: PhraseList, staves: int) -> StaveCollection:
        """
        Distribute ``phrases`` over ``staves`` output staves.

        Args:
            phrases: Decoded timelines plus key and time signatures.
            staves:  Number of output staves (at least 1).

        Returns:
            StaveCollection with one list of timelines per stave, top stave first.
        """


# ── Concrete strategies ──────────────────────────────────────────────────────

class DistributeByOnset(StaveAssignmentStrategy):
    """
    Place each timeline by comparing it with everything sounding at its onset.

    For a timeline starting at position ``p``, the lowest and highest pitches
    sounding anywhere in the score at ``p`` are split into ``staves + 1``
    bands; the timeline goes to the stave whose band boundary is closest to
    the mean pitch of its first element.

    Timelines are only grouped here. Each stave keeps a list, which the octave
    adjuster works on before the lists are merged.
    """

    name = "distribute"

    def assign(self, phrases: PhraseList, staves: int) -> StaveCollection:
        ordered = phrases.non_empty()
        new_staves: list[list[Timeline]] = [[] for _ in range(staves)]

        for timeline in ordered:
            start = timeline.start()
            element, _ = timeline.first()
            low, high = _extremes_at(ordered, start, element.min_value(), element.max_value())
            midpoints = band_midpoints(low, high, staves)
            mean = starting_mean(timeline)
            index = closest_stave(mean, midpoints)
            logger.debug(
                "Timeline at %s (mean %d, range %d-%d) -> stave %d",
                start, mean, low, high, index + 1,
            )
            new_staves[index].append(timeline)

        return StaveCollection(staves=new_staves, keys=phrases.keys, times=phrases.times)


class MergeByAverage(StaveAssignmentStrategy):
    """
    Keep one representative pitch per stave and merge each timeline into the nearest.

    Representatives start as band boundaries over the pitches sounding at
    position zero. Whenever a timeline is assigned, the stave's representative
    is replaced by that timeline's own mean pitch (it is not averaged with the
    previous value), so a stave follows the register of its latest line.

    Produces exactly one timeline per stave.
    """

    name = "average"

    def assign(self, phrases: PhraseList, staves: int) -> StaveCollection:
        ordered = phrases.non_empty()
        low, high = _extremes_at(ordered, ZERO, DEFAULT_LOW_PITCH, DEFAULT_HIGH_PITCH)
        representatives = band_midpoints(low, high, staves)
        merged = [Timeline() for _ in range(staves)]

        for timeline in ordered:
            mean = starting_mean(timeline)
            index = closest_stave(mean, representatives)
            representatives[index] = timeline.mean()
            logger.debug(
                "Timeline at %s (mean %d) merged into stave %d, representative now %d",
                timeline.start(), mean, index + 1, representatives[index],
            )
            merged[index].merge(timeline)

        return StaveCollection(
            staves=[[timeline] for timeline in merged],
            keys=phrases.keys,
            times=phrases.times,
        )


STRATEGIES: dict[str, type[StaveAssignmentStrategy]] = {
    DistributeByOnset.name: DistributeByOnset,
    MergeByAverage.name: MergeByAverage,
}


def get_strategy(name: str) -> StaveAssignmentStrategy:
    """
    Return a strategy instance by its configuration name.

    Raises:
        ValueError: If ``name`` is not a known strategy.
    """
    try:
        return STRATEGIES[name]()
    except KeyError:
        known = ", ".join(sorted(STRATEGIES))
        raise ValueError(f"Unknown assignment strategy '{name}'. Use one of: {known}.") from None
