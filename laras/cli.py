"""laras CLI entry point."""

import logging
import sys
import time

import click

from laras import __version__
from laras.config import settings
from laras.filesystem import read_score_text
from laras.instruments import InstrumentRegistry
from laras.scheduler import PlaybackScheduler
from laras.score_models import Score, Timeline
from laras.score_parser import parse_score
from laras.timeline import build_timeline, timeline_duration
from laras.transport import ThreadedTransport
from laras.voices import LoggingVoice, Mixer, Voice, load_sampler_voices

logger = logging.getLogger(__name__)

POLL_SECONDS = 0.1
RING_OUT_SECONDS = 1.0  # keep the stream open so the last samples can decay


def _load(score_file: str) -> tuple[Score, Timeline]:
    """Read, parse and flatten a score file. Unreadable files give an empty score."""
    score = parse_score(read_score_text(score_file))
    return score, build_timeline(score)


def _format_actions(point) -> str:
    return " ".join(f"{action.label}:{action.symbol}" for action in point.actions)


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="laras")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=settings.LOG_LEVEL,
    show_default=True,
    help="Logging verbosity (also LARAS_LOG_LEVEL).",
)
def main(log_level: str) -> None:
    """laras: compile percussion/vocal score notation and play it back."""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


# ── show subcommand ────────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(dir_okay=False))
def show(score_file: str) -> None:
    """
    Print the structure of a score: metadata and sections.

    \b
    Examples:
      laras show scores/template.laras
    """
    score, timeline = _load(score_file)

    click.echo(f"  Title    : {score.title or '<untitled>'}")
    click.echo(f"  Composer : {score.composer}")
    click.echo(f"  Length   : {len(timeline)} steps  ({timeline_duration(timeline):.1f} s)")
    click.echo(f"  Sections : {len(score.sections)}")
    for section in score.sections:
        labels = " ".join(track.label for track in section.tracks)
        click.echo(
            f"    [{section.id}] {section.title:<16} {section.tempo:>4} BPM  "
            f"{section.max_steps:>4} steps  {labels}"
        )


# ── timeline subcommand ────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(dir_okay=False))
@click.option(
    "--section",
    "section_id",
    type=int,
    default=None,
    metavar="ID",
    help="Only list the points of this section.",
)
def timeline(score_file: str, section_id: int | None) -> None:
    """
    List every timeline point of a score with its time, tempo and actions.

    \b
    Examples:
      laras timeline scores/template.laras
      laras timeline scores/template.laras --section 2
    """
    _score, points = _load(score_file)

    for point in points:
        if section_id is not None and point.section_id != section_id:
            continue
        click.echo(
            f"  {point.timeline_step:>5}  {point.time:8.3f}s  "
            f"[{point.section_id}:{point.section_step:>3}]  {point.tempo:>4} BPM  {_format_actions(point)}"
        )


# ── instruments subcommand ─────────────────────────────────────────────────────

@main.command()
def instruments() -> None:
    """List the instrument labels a score may use."""
    registry = InstrumentRegistry()

    for instrument_id in registry.atomic_ids:
        definition = registry.definition(instrument_id)
        alphabet = " ".join(definition.alphabet) or "-"
        click.echo(f"  {instrument_id:<4} {definition.output_level:>5.0f} dB  {alphabet}")
    for label in registry.composite_ids:
        click.echo(f"  {label:<4}    =>     {' + '.join(registry.members(label))}")


# ── play subcommand ────────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(dir_okay=False))
@click.option(
    "--mute",
    "muted",
    multiple=True,
    metavar="LABEL",
    help="Silence an instrument label. Repeat for several labels.",
)
@click.option(
    "--section",
    "section_id",
    type=int,
    default=None,
    metavar="ID",
    help="Start playback at the beginning of this section.",
)
@click.option(
    "--sounds-dir",
    default=settings.SOUNDS_DIR,
    show_default=True,
    type=click.Path(file_okay=False),
    help="Directory holding the instrument samples.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Log the triggers instead of opening an audio device.",
)
def play(score_file: str, muted: tuple[str, ...], section_id: int | None, sounds_dir: str, dry_run: bool) -> None:
    """
    Play a score through the instrument samples.

    Ctrl-C stops playback.

    \b
    Examples:
      laras play scores/template.laras
      laras play scores/template.laras --mute ks --mute kp --section 1
      laras --log-level INFO play scores/template.laras --dry-run
    """
    score, points = _load(score_file)
    if not points:
        click.echo(f"  WARNING: '{score_file}' contains nothing to play.", err=True)
        sys.exit(1)

    registry = InstrumentRegistry()
    for label in muted:
        if label not in registry:
            click.echo(f"  WARNING: unknown instrument '{label}'.", err=True)

    click.echo(f"laras v{__version__}")
    click.echo(f"  Score  : {score.title or '<untitled>'}  {score.composer}")
    click.echo(f"  Length : {len(points)} steps  ({timeline_duration(points):.1f} s)")
    click.echo()

    with Mixer() as mixer:
        voices: dict[str, Voice]
        if dry_run:
            voices = {iid: LoggingVoice(iid, registry.output_level(iid)) for iid in registry.atomic_ids}
            transport = ThreadedTransport(bpm=points[0].tempo, lookahead=settings.LOOKAHEAD)
            on_prime = None
        else:
            click.echo(f"Loading samples from '{sounds_dir}'...")
            voices = dict(load_sampler_voices(registry, mixer, sounds_dir))
            transport = ThreadedTransport(bpm=points[0].tempo, time_source=mixer.now, lookahead=settings.LOOKAHEAD)
            on_prime = mixer.start

        current_section = -1

        def show_section(cursor: int) -> None:
            nonlocal current_section
            point = points[cursor]
            if scheduler.is_playing and point.section_id != current_section:
                current_section = point.section_id
                click.echo(f"  > [{point.section_id}] {score.sections[point.section_id].title}")

        scheduler = PlaybackScheduler(
            points, registry, voices, transport, on_prime=on_prime, on_cursor=show_section
        )
        for label in muted:
            scheduler.toggle_mute(label)
        if section_id is not None and not scheduler.seek(section_id):
            click.echo(f"  ERROR: score has no section {section_id}.", err=True)
            sys.exit(1)

        try:
            scheduler.play()
        except Exception as exc:
            click.echo(f"  ERROR: Could not start audio output: {exc}", err=True)
            sys.exit(1)

        try:
            while scheduler.is_playing:
                time.sleep(POLL_SECONDS)
            if not dry_run:
                time.sleep(RING_OUT_SECONDS)
        except KeyboardInterrupt:
            scheduler.stop()
            position = scheduler.cursor_position
            click.echo(f"\nStopped at section {position[0]}, step {position[1]}." if position else "\nStopped.")
        finally:
            transport.stop()

    click.echo("Done!")
