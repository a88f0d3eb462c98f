"""orchreduce CLI entry point."""

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from orchreduce import __version__
from orchreduce.errors import ReductionError
from orchreduce.octave_adjuster import MIN_HANDSPAN
from orchreduce.reducer import ReductionConfig, ReductionResult, ScoreReducer
from orchreduce.score_parser import ScoreParser
from orchreduce.staves import StaveCollection

DEFAULT_HANDSPAN = 12

_DEFAULT_OUTPUTS = {
    "musicxml": "output.musicxml",
    "html": "output.html",
    "midi": "output.mid",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> NoReturn:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _write(collection: StaveCollection, output_format: str, output: str, title: str) -> None:
    """Write the reduced staves with the exporter for ``output_format``."""
    if output_format == "midi":
        from orchreduce.midi_exporter import MidiExporter

        MidiExporter().export(collection, output)
    elif output_format == "html":
        from orchreduce.sheet_renderers import HtmlExporter

        HtmlExporter(title=title).export(collection, output)
    else:
        from orchreduce.musicxml_exporter import MusicXmlExporter

        MusicXmlExporter(title=title).export(collection, output)


def _echo_summary(result: ReductionResult) -> None:
    for index, count in enumerate(result.staves.timeline_counts(), start=1):
        click.echo(f"      Stave {index} : {count} timeline(s)")
    report = result.report
    click.echo(
        f"      Octaves : {report.moved_up} moved up, {report.moved_down} moved down, "
        f"{report.transposed_down} transposed down, {report.transposed_up} transposed up"
    )
    if report.dropped:
        positions = ", ".join(str(position) for position in report.dropped_positions)
        click.echo(
            f"  WARNING: dropped {report.dropped} timeline(s) that no stave could hold "
            f"(at {positions}). Try more staves or a wider --handspan.",
            err=True,
        )


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="orchreduce")
def main() -> None:
    """orchreduce — reduce orchestral MusicXML scores to a few playable staves."""


# ── reduce subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("input_file", metavar="INPUT", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination file. Defaults to output.musicxml, output.html or output.mid by --format.",
)
@click.option(
    "--staves",
    "-s",
    type=click.IntRange(min=1),
    default=2,
    show_default=True,
    help="Number of output staves.",
)
@click.option(
    "--max-phrase-length",
    "-l",
    type=click.IntRange(min=0),
    default=1,
    show_default=True,
    metavar="BARS",
    help="Bars per decoded phrase. 0 keeps each line whole between rests.",
)
@click.option(
    "--merge-by-average",
    "-a",
    is_flag=True,
    help="Merge each phrase into the stave whose running average pitch is closest.",
)
@click.option(
    "--no-merge",
    "-m",
    is_flag=True,
    help="Write every phrase as its own voice instead of merging each stave.",
)
@click.option(
    "--no-adjust-octaves",
    "-n",
    is_flag=True,
    help="Skip moving and transposing phrases to fit the handspan.",
)
@click.option(
    "--handspan",
    type=int,
    default=None,
    metavar="N",
    help=f"Widest interval one stave may sound, in semitones (>= {MIN_HANDSPAN}). [default: {DEFAULT_HANDSPAN}]",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["musicxml", "html", "midi"], case_sensitive=False),
    default="musicxml",
    show_default=True,
    help="Output format: MusicXML, self-contained HTML (verovio) or MIDI.",
)
@click.option(
    "--title",
    default=None,
    metavar="TEXT",
    help="Title written into the output. Defaults to the input filename stem.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every assignment decision.")
def reduce(
    input_file: str,
    output: str | None,
    staves: int,
    max_phrase_length: int,
    merge_by_average: bool,
    no_merge: bool,
    no_adjust_octaves: bool,
    handspan: int | None,
    output_format: str,
    title: str | None,
    verbose: bool,
) -> None:
    """
    Reduce a MusicXML score to a fixed number of staves.

    INPUT is the path to a .musicxml, .xml or .mxl file.

    \b
    Examples:
      orchreduce reduce symphony.musicxml
      orchreduce reduce symphony.musicxml -s 3 -o reduced.musicxml
      orchreduce reduce symphony.musicxml -a --format html --title "Symphony No. 1"
    """
    _configure_logging(verbose)

    if merge_by_average and no_merge:
        raise click.UsageError("--merge-by-average cannot be combined with --no-merge.")
    if no_adjust_octaves and handspan is not None:
        raise click.UsageError("--handspan has no effect with --no-adjust-octaves.")

    normalized_format = output_format.lower()
    input_path = Path(input_file)
    resolved_output = output if output is not None else _DEFAULT_OUTPUTS[normalized_format]
    resolved_title = title if title is not None else input_path.stem.replace("_", " ")

    try:
        config = ReductionConfig(
            staves=staves,
            max_phrase_length=max_phrase_length,
            strategy="average" if merge_by_average else "distribute",
            adjust_octaves=not no_adjust_octaves,
            handspan=DEFAULT_HANDSPAN if handspan is None else handspan,
            merge=not no_merge,
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc

    click.echo(f"orchreduce v{__version__}")
    click.echo(f"  Input    : {input_file}")
    click.echo(f"  Staves   : {config.staves}  |  Strategy: {config.strategy}")
    click.echo(f"  Format   : {normalized_format}")
    click.echo(f"  Output   : {resolved_output}")
    click.echo()

    reducer = ScoreReducer(config)

    # ── Step 1: Decode ──────────────────────────────────────────────
    click.echo("[1/3] Parsing score with music21...")
    try:
        phrases = ScoreParser(max_phrase_length=config.max_phrase_length).parse_file(input_path)
    except (ReductionError, OSError) as exc:
        _fail(str(exc))
    click.echo(f"      Decoded {len(phrases.phrases)} phrase(s)")

    # ── Step 2: Reduce ──────────────────────────────────────────────
    click.echo(f"[2/3] Reducing to {config.staves} stave(s)...")
    try:
        result = reducer.reduce(phrases)
    except (ReductionError, ValueError) as exc:
        _fail(str(exc))
    _echo_summary(result)

    # ── Step 3: Write ───────────────────────────────────────────────
    click.echo(f"[3/3] Writing {normalized_format} file → '{resolved_output}'...")
    try:
        _write(result.staves, normalized_format, resolved_output, resolved_title)
    except OSError as exc:
        _fail(f"Could not write output file — {exc}")
    except ValueError as exc:
        _fail(f"Could not render score — {exc}")

    click.echo()
    click.echo(f"Done!  Open '{resolved_output}' in MuseScore or any notation program.")


# ── inspect subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("input_file", metavar="INPUT", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--max-phrase-length",
    "-l",
    type=click.IntRange(min=0),
    default=1,
    show_default=True,
    metavar="BARS",
    help="Bars per decoded phrase. 0 keeps each line whole between rests.",
)
def inspect(input_file: str, max_phrase_length: int) -> None:
    """
    Show how a score decodes, without writing anything.

    INPUT is the path to a .musicxml, .xml or .mxl file.
    """
    _configure_logging(False)
    try:
        phrases = ScoreParser(max_phrase_length=max_phrase_length).parse_file(input_file)
    except (ReductionError, OSError) as exc:
        _fail(str(exc))

    timelines = phrases.non_empty()
    click.echo(f"{input_file}")
    click.echo(f"  Phrases : {len(timelines)}")
    if timelines:
        low = min(timeline.min_value() for timeline in timelines)
        high = max(timeline.max_value() for timeline in timelines)
        end = max(timeline.end() for timeline in timelines)
        click.echo(f"  Range   : {low}-{high} (MIDI {low + 12}-{high + 12})")
        click.echo(f"  Length  : {end} quarter notes")
    click.echo("  Keys    : " + (", ".join(f"{p}: {k:+d}" for p, k in phrases.keys.items()) or "none"))
    click.echo(
        "  Times   : "
        + (", ".join(f"{p}: {b}/{t}" for p, (b, t) in phrases.times.items()) or "none")
    )
