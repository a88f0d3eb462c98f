"""ScoreParser: decodes a MusicXML score into timelines with music21."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path
from typing import Any, Final
from xml.etree.ElementTree import ParseError

from orchreduce.errors import ScoreParseError
from orchreduce.note_models import Note, NoteName, Tie
from orchreduce.rational import ZERO, from_quarter_length
from orchreduce.staves import PhraseList
from orchreduce.timeline import Timeline

logger = logging.getLogger(__name__)

_TIE_TYPES: Final[dict[str, Tie]] = {
    "start": Tie.START,
    "stop": Tie.STOP,
    "continue": Tie.START_STOP,
}

#: Voice key used for measures that hold their notes directly.
_DEFAULT_VOICE: Final[str] = "1"


@dataclass
class _VoiceState:
    """The running timeline of one input voice and the bar it was last cut at."""

    timeline: Timeline = field(default_factory=Timeline)
    last_bar: int = 0


class ScoreParser:
    """
    Split every voice of every part into timelines.

    Each voice keeps one running timeline. It is closed by a rest, by the end
    of the part, and every ``max_phrase_length`` bars when that is non-zero,
    so lines can later be redistributed phrase by phrase. Chord tones beyond
    the first become timelines of their own.

    All pitches are read at concert pitch.
    """

    def __init__(self, max_phrase_length: int = 1) -> None:
        if max_phrase_length < 0:
            raise ValueError(f"max_phrase_length must be >= 0, got {max_phrase_length}.")
        self.max_phrase_length = max_phrase_length

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _as_score(self, parsed: Any) -> Any:
        from music21 import stream

        if isinstance(parsed, stream.Score):
            return parsed
        if isinstance(parsed, stream.Part):
            score = stream.Score()
            score.insert(0, parsed)
            return score
        raise ScoreParseError(f"Expected a single score, got a {type(parsed).__name__}.")

    def _close(self, state: _VoiceState, phrases: PhraseList) -> None:
        if not state.timeline.is_empty():
            phrases.phrases.append(state.timeline)
            state.timeline = Timeline()

    def _convert_pitch(self, pitch: Any, tie: Tie, where: str) -> Note:
        try:
            step = NoteName.parse(pitch.step)
        except ValueError as exc:
            raise ScoreParseError(f"{where}: {exc}") from exc
        octave = pitch.octave if pitch.octave is not None else pitch.implicitOctave
        alter = 0
        if pitch.accidental is not None:
            if pitch.accidental.alter != int(pitch.accidental.alter):
                raise ScoreParseError(f"{where}: microtonal pitch {pitch.nameWithOctave} is not supported.")
            alter = int(pitch.accidental.alter)
        return Note(step, octave, alter, tie)

    def _tie_of(self, element: Any) -> Tie:
        if element.tie is None:
            return Tie.NONE
        return _TIE_TYPES.get(element.tie.type, Tie.NONE)

    def _read_signatures(self, measure: Any, position: Fraction, phrases: PhraseList) -> None:
        key_signature = measure.keySignature
        if key_signature is not None:
            phrases.keys.insert(position, int(key_signature.sharps))
        time_signature = measure.timeSignature
        if time_signature is not None:
            phrases.times.insert(
                position, (int(time_signature.numerator), int(time_signature.denominator))
            )

    def _voices_of(self, measure: Any) -> list[tuple[str, Any]]:
        voices = list(measure.voices)
        if not voices:
            return [(_DEFAULT_VOICE, measure)]
        return [(str(voice.id), voice) for voice in voices]

    def _read_voice(
        self,
        container: Any,
        measure_position: Fraction,
        bar: int,
        state: _VoiceState,
        phrases: PhraseList,
        where: str,
    ) -> None:
        from music21 import chord, note

        for element in container.notesAndRests:
            duration = from_quarter_length(element.duration.quarterLength)
            if duration <= ZERO or element.duration.isGrace:
                continue
            position = measure_position + from_quarter_length(element.offset)

            if element.isRest:
                self._close(state, phrases)
                state.last_bar = bar
            elif isinstance(element, chord.Chord):
                # each chord member carries its own tie
                members = [
                    self._convert_pitch(member.pitch, self._tie_of(member), where)
                    for member in element.notes
                ]
                if not members:
                    continue
                state.timeline.insert(members[0], position, duration)
                for member in members[1:]:
                    phrases.phrases.append(Timeline.from_events([(position, member, duration)]))
            elif isinstance(element, note.Note):
                pitched = self._convert_pitch(element.pitch, self._tie_of(element), where)
                state.timeline.insert(pitched, position, duration)
            else:
                logger.debug("%s: skipping unpitched %s", where, type(element).__name__)

    def _read_part(self, part: Any, part_index: int, phrases: PhraseList) -> None:
        voices: dict[str, _VoiceState] = {}
        part_name = part.partName or f"part {part_index + 1}"

        for measure in part.getElementsByClass("Measure"):
            position = from_quarter_length(measure.offset)
            bar = int(measure.number)
            where = f"{part_name}, measure {bar}"
            self._read_signatures(measure, position, phrases)

            if self.max_phrase_length > 0:
                for state in voices.values():
                    if bar >= state.last_bar + self.max_phrase_length and not state.timeline.is_empty():
                        self._close(state, phrases)
                        state.last_bar = bar

            for voice_id, container in self._voices_of(measure):
                state = voices.setdefault(voice_id, _VoiceState())
                self._read_voice(container, position, bar, state, phrases, where)

        for state in voices.values():
            self._close(state, phrases)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_score(self, score: Any) -> PhraseList:
        """
        Decode an in-memory ``music21.stream.Score``.

        Returns:
            PhraseList with every timeline plus the key and time signature maps.

        Raises:
            ConflictingSignatureError: If two parts disagree on a signature.
            ScoreParseError: If a pitch cannot be represented.
        """
        sounding = copy.deepcopy(self._as_score(score))
        for part in sounding.parts:
            # streams built in memory do not say whether they are written or sounding
            if part.atSoundingPitch == "unknown":
                part.atSoundingPitch = False
        sounding.toSoundingPitch(inPlace=True)
        phrases = PhraseList()
        for index, part in enumerate(sounding.parts):
            self._read_part(part, index, phrases)
        logger.info(
            "Decoded %d timeline(s) from %d part(s)", len(phrases.phrases), len(sounding.parts)
        )
        return phrases

    def parse_data(self, text: str) -> PhraseList:
        """
        Decode a MusicXML document held in a string.

        Raises:
            ScoreParseError: If music21 cannot read the document.
        """
        from music21 import converter
        from music21.exceptions21 import Music21Exception

        try:
            parsed = converter.parseData(text, format="musicxml")
        except (Music21Exception, ParseError) as exc:
            raise ScoreParseError(f"Could not read MusicXML data: {exc}") from exc
        return self.parse_score(parsed)

    def parse_file(self, path: str | Path) -> PhraseList:
        """
        Decode a MusicXML (``.musicxml``, ``.xml`` or compressed ``.mxl``) file.

        Raises:
            ScoreParseError: If the file is missing or music21 cannot read it.
        """
        from music21 import converter
        from music21.exceptions21 import Music21Exception

        score_path = Path(path)
        if not score_path.is_file():
            raise ScoreParseError(f"Score file not found: {score_path}")
        try:
            parsed = converter.parse(str(score_path))
        except (Music21Exception, ParseError) as exc:
            raise ScoreParseError(f"Could not read '{score_path}': {exc}") from exc
        logger.debug("Parsed '%s' with music21", score_path)
        return self.parse_score(parsed)
