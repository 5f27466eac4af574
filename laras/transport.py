"""Transport: the recurring clock that drives playback."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_BPM = 120
BEATS_PER_WHOLE_NOTE = 4

TickCallback = Callable[[float], None]


def note_duration(subdivision: int, bpm: float) -> float:
    """
    Seconds spanned by a ``1/subdivision`` note at ``bpm`` quarter notes per
    minute, e.g. ``note_duration(16, 120)`` is a sixteenth note: 0.125 s.
    """
    return 60.0 / bpm * BEATS_PER_WHOLE_NOTE / subdivision


class Transport(ABC):
    """
    Abstract clock.

    Repeating callbacks receive the time at which the sounds they trigger
    should start, in the same time base as ``now()``.
    """

    STARTED = "started"
    STOPPED = "stopped"

    @property
    @abstractmethod
    def bpm(self) -> float:
        """Current tempo in quarter notes per minute."""

    @bpm.setter
    @abstractmethod
    def bpm(self, value: float) -> None:
        ...

    @property
    @abstractmethod
    def state(self) -> str:
        """``Transport.STARTED`` or ``Transport.STOPPED``."""

    @abstractmethod
    def schedule_repeat(self, callback: TickCallback, subdivision: int) -> None:
        """Call ``callback`` once every ``1/subdivision`` note while started."""

    @abstractmethod
    def cancel(self) -> None:
        """Drop every scheduled callback."""

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def now(self) -> float:
        ...


@dataclass
class _Repeat:
    callback: TickCallback
    subdivision: int
    next_time: float | None = None


class ThreadedTransport(Transport):
    """
    Transport running its callbacks on a single daemon thread.

    Callbacks never run concurrently with each other. The pulse length is
    recomputed after every pulse, so a tempo change takes effect from the
    next pulse on.

    Args:
        bpm:         Initial tempo.
        time_source: Monotonic clock in seconds. Pass ``Mixer.now`` to run
                     on the audio device clock.
        lookahead:   Seconds added to the pulse time handed to callbacks so
                     their triggers can be scheduled ahead of the audio.
        resolution:  Longest sleep between two checks of the schedule.
    """

    def __init__(
        self,
        bpm: float = DEFAULT_BPM,
        time_source: Callable[[], float] = time.perf_counter,
        lookahead: float = 0.0,
        resolution: float = 0.002,
    ) -> None:
        self._bpm = float(bpm)
        self._time_source = time_source
        self.lookahead = lookahead
        self.resolution = resolution
        self._repeats: list[_Repeat] = []
        self._lock = threading.Lock()
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def bpm(self) -> float:
        return self._bpm

    @bpm.setter
    def bpm(self, value: float) -> None:
        logger.debug("Transport tempo %s -> %s BPM", self._bpm, value)
        self._bpm = float(value)

    @property
    def state(self) -> str:
        if self._thread is not None and self._thread.is_alive():
            return self.STARTED
        return self.STOPPED

    def now(self) -> float:
        return self._time_source()

    def schedule_repeat(self, callback: TickCallback, subdivision: int) -> None:
        with self._lock:
            self._repeats.append(_Repeat(callback=callback, subdivision=subdivision))

    def cancel(self) -> None:
        with self._lock:
            self._repeats.clear()

    def start(self) -> None:
        if self.state == self.STARTED:
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name="laras-transport", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopping.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _is_scheduled(self, repeat: _Repeat) -> bool:
        with self._lock:
            return any(r is repeat for r in self._repeats)

    def _pulse(self, repeat: _Repeat, now: float) -> None:
        if repeat.next_time is None:
            repeat.next_time = now
        if repeat.next_time > now:
            return

        interval = note_duration(repeat.subdivision, self._bpm)
        if now - repeat.next_time > interval:
            # Fell behind by more than a pulse: resync instead of bursting.
            logger.debug("Transport late by %.3f s", now - repeat.next_time)
            repeat.next_time = now

        repeat.callback(repeat.next_time + self.lookahead)
        repeat.next_time += note_duration(repeat.subdivision, self._bpm)

    def _run(self) -> None:
        while not self._stopping.is_set():
            with self._lock:
                repeats = list(self._repeats)

            now = self.now()
            for repeat in repeats:
                # an earlier callback may have cancelled the rest of the snapshot
                if self._is_scheduled(repeat):
                    self._pulse(repeat, now)

            pending = [r.next_time for r in repeats if r.next_time is not None]
            wait = min(pending) - self.now() if pending else self.resolution
            self._stopping.wait(min(max(wait, 0.0), self.resolution))
