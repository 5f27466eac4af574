"""Data models for parsed scores and their playback timeline."""

from dataclasses import dataclass

#: Track character that silences an instrument instead of sounding it.
MUTE_SYMBOL = "."

#: Track character for a step where the instrument does nothing.
REST_SYMBOL = " "


@dataclass(frozen=True)
class Track:
    """One instrument row of a section: a label and one character per step."""

    label: str
    value: str


@dataclass(frozen=True)
class Section:
    """
    A titled block of parallel tracks played at a single tempo.

    Attributes:
        id:     Position of the section in ``Score.sections`` (0-based).
        title:  Title given in the section header.
        tempo:  Declared tempo in BPM. ``0`` means "use the default tempo".
        tracks: Tracks in declaration order. Their lengths may differ.
    """

    id: int
    title: str
    tempo: int
    tracks: tuple[Track, ...] = ()

    @property
    def max_steps(self) -> int:
        """Number of steps spanned by the longest track."""
        return max((len(track.value) for track in self.tracks), default=0)


@dataclass(frozen=True)
class Score:
    """Top-level parsed document."""

    title: str = ""
    composer: str = ""
    sections: tuple[Section, ...] = ()


@dataclass(frozen=True)
class InstrumentAction:
    """A single symbol to be played (or muted) on the instrument ``label``."""

    label: str
    symbol: str

    @property
    def is_mute(self) -> bool:
        return self.symbol == MUTE_SYMBOL


@dataclass(frozen=True)
class TimelinePoint:
    """
    One step of the flattened score.

    Attributes:
        timeline_step: Global step index, counted from 0 across all sections.
        section_id:    ``Section.id`` the step belongs to.
        section_step:  Step index within the section.
        time:          Absolute time in seconds from the start of the piece.
        tempo:         Tempo in BPM in effect at this step.
        actions:       Instrument actions in track declaration order. Empty
                       for a step where every track rests.
    """

    timeline_step: int
    section_id: int
    section_step: int
    time: float
    tempo: int
    actions: tuple[InstrumentAction, ...] = ()


Timeline = list[TimelinePoint]
