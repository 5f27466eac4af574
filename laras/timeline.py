"""Flattens a Score into a time-stamped sequence of TimelinePoints."""

from laras.score_models import REST_SYMBOL, InstrumentAction, Score, Section, Timeline, TimelinePoint

DEFAULT_TEMPO = 120  # BPM used by sections declaring no (or a zero) tempo
SECONDS_PER_MINUTE = 60.0


def effective_tempo(section: Section) -> int:
    """Tempo a section is played at, falling back to DEFAULT_TEMPO."""
    return section.tempo or DEFAULT_TEMPO


def _step_actions(section: Section, step: int) -> tuple[InstrumentAction, ...]:
    """Actions of every track that has a non-rest character at ``step``."""
    return tuple(
        InstrumentAction(label=track.label, symbol=track.value[step])
        for track in section.tracks
        if step < len(track.value) and track.value[step] != REST_SYMBOL
    )


def build_timeline(score: Score) -> Timeline:
    """
    Build the playback timeline of ``score``.

    Every section contributes one point per step of its longest track, even
    when no track sounds on that step. Time runs on continuously across
    section boundaries; each section advances it by ``60 / tempo`` seconds
    per step.
    """
    timeline: Timeline = []
    current_time = 0.0
    timeline_step = 0

    for section in score.sections:
        tempo = effective_tempo(section)
        seconds_per_step = SECONDS_PER_MINUTE / tempo

        for step in range(section.max_steps):
            timeline.append(
                TimelinePoint(
                    timeline_step=timeline_step,
                    section_id=section.id,
                    section_step=step,
                    time=current_time,
                    tempo=tempo,
                    actions=_step_actions(section, step),
                )
            )
            current_time += seconds_per_step
            timeline_step += 1

    return timeline


def section_start(timeline: Timeline, section_id: int) -> int | None:
    """Index of the first point of section ``section_id``, or None."""
    for index, point in enumerate(timeline):
        if point.section_id == section_id:
            return index
    return None


def timeline_index(timeline: Timeline, section_id: int, section_step: int) -> int | None:
    """Global cursor of step ``section_step`` of ``section_id``, or None if out of range."""
    start = section_start(timeline, section_id)
    if start is None or section_step < 0:
        return None
    index = start + section_step
    if index >= len(timeline) or timeline[index].section_id != section_id:
        return None
    return index


def timeline_duration(timeline: Timeline) -> float:
    """Length of the piece in seconds: the last point's time plus its step."""
    if not timeline:
        return 0.0
    last = timeline[-1]
    return last.time + SECONDS_PER_MINUTE / last.tempo
