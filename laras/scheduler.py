"""PlaybackScheduler: walks a timeline in real time and drives instrument voices."""

from __future__ import annotations

import logging
import threading
import unicodedata
from enum import Enum
from typing import Callable, Final, Mapping

from laras.instruments import InstrumentRegistry
from laras.score_models import InstrumentAction, Timeline
from laras.timeline import timeline_index
from laras.transport import Transport, note_duration
from laras.voices import Voice

logger = logging.getLogger(__name__)

#: Transport pulse: one timeline point per sixteenth note.
PULSE_SUBDIVISION: Final = 16

#: Accented symbols sound a thirty-second note late.
ACCENT_SUBDIVISION: Final = 32
ACCENTED_SYMBOLS: Final[frozenset[str]] = frozenset("ÍÓÉÚÁíóéúáć")

#: Raw voices whose alphabets use accented letters as distinct symbols.
ACCENT_EXEMPT_LABELS: Final[frozenset[str]] = frozenset({"kkr", "krw", "krl"})


class PlaybackState(Enum):
    IDLE = "idle"
    PRIMING = "priming"
    READY = "ready"
    PLAYING = "playing"


def strip_diacritics(symbol: str) -> str:
    """Base letter of ``symbol``: ``"á"`` -> ``"a"``."""
    return "".join(ch for ch in unicodedata.normalize("NFD", symbol) if not unicodedata.combining(ch))


def is_accented(action: InstrumentAction) -> bool:
    return action.label not in ACCENT_EXEMPT_LABELS and action.symbol in ACCENTED_SYMBOLS


class PlaybackScheduler:
    """
    Plays a Timeline through the voices of an InstrumentRegistry.

    State machine
    -------------
    IDLE -> PRIMING -> READY on the first ``play()``; ``on_prime`` is called
    in between to bring the audio output up. READY <-> PLAYING afterwards.

    While PLAYING the transport calls ``tick()`` once per pulse. Each tick
    plays the point under the cursor and moves the cursor on. After the last
    point playback stops and the cursor returns to 0; an explicit ``stop()``
    leaves the cursor where it is so the next ``play()`` resumes there.

    Args:
        timeline:  Timeline to play. Not modified.
        registry:  Label lookup for symbol resolution and composite fan-out.
        voices:    Voice of every atomic instrument id. Ids without a voice
                   are skipped.
        transport: Clock calling ``tick()``.
        on_prime:  Called once, before the first playback.
        on_cursor: Called with the new cursor after every tick and seek.
        pulse:     Transport subdivision of one timeline point.
    """

    def __init__(
        self,
        timeline: Timeline,
        registry: InstrumentRegistry,
        voices: Mapping[str, Voice],
        transport: Transport,
        *,
        on_prime: Callable[[], None] | None = None,
        on_cursor: Callable[[int], None] | None = None,
        pulse: int = PULSE_SUBDIVISION,
    ) -> None:
        self._timeline = timeline
        self._registry = registry
        self._voices = voices
        self._transport = transport
        self._on_prime = on_prime
        self._on_cursor = on_cursor
        self._pulse = pulse

        self._state = PlaybackState.IDLE
        self._cursor = 0
        self._muted: set[str] = set()
        # stop() may come from another thread than the transport's
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Observed state
    # ------------------------------------------------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def cursor_position(self) -> tuple[int, int] | None:
        """``(section_id, section_step)`` under the cursor; None for an empty timeline."""
        if not self._timeline:
            return None
        point = self._timeline[self._cursor]
        return point.section_id, point.section_step

    @property
    def muted(self) -> frozenset[str]:
        return frozenset(self._muted)

    def is_muted(self, label: str) -> bool:
        return label in self._muted

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    def play(self) -> None:
        """Start (or resume) playback from the cursor."""
        with self._lock:
            if self._state is PlaybackState.PLAYING:
                return
            if self._state is PlaybackState.IDLE:
                self._prime()
            if not self._timeline:
                logger.info("Nothing to play: the timeline is empty")
                return
            self._start_loop()

    def stop(self) -> None:
        """Stop playback, keeping the cursor in place."""
        with self._lock:
            if self._state is not PlaybackState.PLAYING:
                return
            self._halt()
            logger.info("Stopped at point %d", self._cursor)

    def toggle(self) -> None:
        """Play when stopped, stop when playing."""
        with self._lock:
            if self.is_playing:
                self.stop()
            else:
                self.play()

    def toggle_mute(self, label: str) -> bool:
        """Flip the mute flag of ``label``; returns True when it is now muted."""
        with self._lock:
            if label in self._muted:
                self._muted.discard(label)
                return False
            self._muted.add(label)
            return True

    def seek(self, section_id: int, section_step: int = 0) -> bool:
        """Move the cursor to a step of a section. Returns False when out of range."""
        index = timeline_index(self._timeline, section_id, section_step)
        if index is None:
            return False
        with self._lock:
            self._cursor = index
        self._notify_cursor()
        return True

    def mute_all(self, time: float | None = None) -> None:
        """
        Release every instrument, atomic and composite, muted or not.

        Triggers already handed to a voice for ``time`` or later are dropped.
        """
        if time is None:
            time = self._transport.now()
        for label in self._registry.labels:
            for member in self._registry.members(label):
                voice = self._voices.get(member)
                if voice is not None:
                    voice.release_all(time)

    # ------------------------------------------------------------------
    # Transport callback
    # ------------------------------------------------------------------

    def tick(self, time: float) -> None:
        """Play the point under the cursor at ``time`` and advance."""
        with self._lock:
            if self._state is not PlaybackState.PLAYING:
                return

            point = self._timeline[self._cursor]
            for action in point.actions:
                self._perform(action, time)

            if point.tempo != self._transport.bpm:
                self._transport.bpm = point.tempo

            if self._cursor >= len(self._timeline) - 1:
                self._halt()
                self._cursor = 0
                logger.info("Reached the end of the timeline")
            else:
                self._cursor += 1
        self._notify_cursor()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _prime(self) -> None:
        self._state = PlaybackState.PRIMING
        try:
            if self._on_prime is not None:
                self._on_prime()
        except BaseException:
            self._state = PlaybackState.IDLE
            raise
        self._state = PlaybackState.READY

    def _start_loop(self) -> None:
        self.mute_all()
        self._transport.cancel()
        self._transport.schedule_repeat(self.tick, self._pulse)
        self._state = PlaybackState.PLAYING
        if self._transport.state != Transport.STARTED:
            self._transport.start()
        logger.info("Playing from point %d of %d", self._cursor, len(self._timeline))

    def _halt(self) -> None:
        self.mute_all()
        self._transport.cancel()
        self._state = PlaybackState.READY

    def _perform(self, action: InstrumentAction, time: float) -> None:
        if action.label in self._muted:
            return

        if is_accented(action):
            time += note_duration(ACCENT_SUBDIVISION, self._transport.bpm)
            action = InstrumentAction(action.label, strip_diacritics(action.symbol))

        if action.is_mute:
            for member in self._registry.members(action.label):
                voice = self._voices.get(member)
                if voice is not None:
                    voice.release(time)
            return

        for member, slot in self._registry.resolve_targets(action.label, action.symbol):
            voice = self._voices.get(member)
            if voice is not None:
                voice.release(time)
                voice.trigger(slot, time)

    def _notify_cursor(self) -> None:
        if self._on_cursor is not None:
            self._on_cursor(self._cursor)
