"""Voices: the sound-producing end of playback."""

from __future__ import annotations

import bisect
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import librosa
import numpy as np

from laras.config import settings
from laras.instruments import InstrumentRegistry

logger = logging.getLogger(__name__)


class Voice(ABC):
    """
    Abstract instrument voice.

    Times are absolute, in the time base of the transport driving playback.
    """

    @abstractmethod
    def trigger(self, slot: int, time: float) -> None:
        """Start sounding pitch slot ``slot`` at ``time``."""

    @abstractmethod
    def release(self, time: float) -> None:
        """Silence whatever is sounding at ``time``."""

    @abstractmethod
    def set_output_level(self, level: float) -> None:
        """Set the output level in decibels."""

    def release_all(self, time: float) -> None:
        """Drop every trigger or release scheduled at or after ``time``, then release."""
        self.release(time)


class LoggingVoice(Voice):
    """A silent voice that logs the calls it receives."""

    def __init__(self, instrument_id: str, output_level: float = 0.0) -> None:
        self.instrument_id = instrument_id
        self.output_level = output_level

    def trigger(self, slot: int, time: float) -> None:
        logger.info("%-4s trigger slot %d at %.3f", self.instrument_id, slot, time)

    def release(self, time: float) -> None:
        logger.debug("%-4s release at %.3f", self.instrument_id, time)

    def set_output_level(self, level: float) -> None:
        self.output_level = level


# ── Sample playback ──────────────────────────────────────────────────────────

class Mixer:
    """
    Sums every attached SamplerVoice into a mono sounddevice output stream.

    The number of frames rendered so far is the audio clock: ``now()`` is
    the time of the next frame to be rendered. Use as a context manager to
    make sure the stream is closed:

        with Mixer() as mixer:
            voices = load_sampler_voices(registry, mixer, "sounds")
            mixer.start()
    """

    def __init__(self, sample_rate: int = settings.SAMPLE_RATE, block_size: int = settings.BLOCK_SIZE) -> None:
        self.sample_rate = sample_rate
        self.block_size = block_size
        self._voices: list[SamplerVoice] = []
        self._frame = 0
        self._lock = threading.Lock()
        self._stream: Any = None

    def now(self) -> float:
        return self._frame / self.sample_rate

    def frame_at(self, time: float) -> int:
        return max(0, round(time * self.sample_rate))

    def attach(self, voice: SamplerVoice) -> None:
        with self._lock:
            self._voices.append(voice)

    def render(self, frames: int) -> np.ndarray:
        """Render the next ``frames`` frames and advance the clock."""
        out = np.zeros(frames, dtype=np.float32)
        with self._lock:
            for voice in self._voices:
                voice.render_into(out, self._frame)
            self._frame += frames
        return out

    def _callback(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        if status:
            logger.warning("Audio stream status: %s", status)
        outdata[:, 0] = np.clip(self.render(frames), -1.0, 1.0)

    def start(self) -> None:
        """
        Open and start the output stream.

        Raises:
            sounddevice.PortAudioError: If no output device can be opened.
        """
        import sounddevice as sd

        if self._stream is not None:
            return
        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self.block_size,
            callback=self._callback,
        )
        self._stream.start()
        logger.info("Audio stream started at %d Hz", self.sample_rate)

    def close(self) -> None:
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None

    def __enter__(self) -> "Mixer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


_TRIGGER = "trigger"
_RELEASE = "release"


@dataclass(order=True)
class _VoiceEvent:
    frame: int
    seq: int
    kind: str = field(compare=False)
    slot: int = field(default=-1, compare=False)


@dataclass
class _Note:
    buffer: np.ndarray
    start: int
    release: int | None = None


class SamplerVoice(Voice):
    """
    Monophonic sample player: each pitch slot plays its own sample.

    A new trigger replaces the sounding sample. A release fades the sample
    out over ``RELEASE_SECONDS``.
    """

    RELEASE_SECONDS = 0.03

    def __init__(self, mixer: Mixer, samples: Mapping[int, np.ndarray], output_level: float = 0.0) -> None:
        self._mixer = mixer
        self._samples = dict(samples)
        self._gain = 1.0
        self._pending: list[_VoiceEvent] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._note: _Note | None = None
        self._release_frames = max(1, round(self.RELEASE_SECONDS * mixer.sample_rate))
        self.set_output_level(output_level)
        mixer.attach(self)

    def set_output_level(self, level: float) -> None:
        self._gain = float(librosa.db_to_amplitude(level))

    def trigger(self, slot: int, time: float) -> None:
        self._schedule(_VoiceEvent(self._mixer.frame_at(time), next(self._seq), _TRIGGER, slot))

    def release(self, time: float) -> None:
        self._schedule(_VoiceEvent(self._mixer.frame_at(time), next(self._seq), _RELEASE))

    def release_all(self, time: float) -> None:
        frame = self._mixer.frame_at(time)
        with self._lock:
            self._pending = [event for event in self._pending if event.frame < frame]
        self.release(time)

    def _schedule(self, event: _VoiceEvent) -> None:
        with self._lock:
            bisect.insort(self._pending, event)

    # ------------------------------------------------------------------
    # Rendering (audio thread)
    # ------------------------------------------------------------------

    def render_into(self, out: np.ndarray, block_start: int) -> None:
        """Add this voice's output for frames ``block_start …`` into ``out``."""
        block_end = block_start + len(out)
        with self._lock:
            due = bisect.bisect_left(self._pending, _VoiceEvent(block_end, -1, _TRIGGER))
            events, self._pending = self._pending[:due], self._pending[due:]

        position = block_start
        for event in events:
            frame = max(event.frame, block_start)
            self._render_span(out, block_start, position, frame)
            self._apply(event, frame)
            position = frame
        self._render_span(out, block_start, position, block_end)

    def _apply(self, event: _VoiceEvent, frame: int) -> None:
        if event.kind == _RELEASE:
            if self._note is not None and self._note.release is None:
                self._note.release = frame
            return

        buffer = self._samples.get(event.slot)
        if buffer is None:
            logger.debug("No sample loaded for slot %d", event.slot)
            return
        self._note = _Note(buffer=buffer, start=frame)

    def _render_span(self, out: np.ndarray, block_start: int, start: int, end: int) -> None:
        note = self._note
        if note is None or end <= start:
            return

        first = start - note.start
        last = min(end - note.start, len(note.buffer))
        if note.release is not None:
            last = min(last, note.release + self._release_frames - note.start)
        if last <= first:
            self._note = None
            return

        chunk = note.buffer[first:last] * self._gain
        if note.release is not None:
            frames = np.arange(first, last) + note.start
            chunk = chunk * np.clip(1.0 - (frames - note.release) / self._release_frames, 0.0, 1.0)

        offset = start - block_start
        out[offset:offset + len(chunk)] += chunk.astype(np.float32)


def load_sampler_voices(
    registry: InstrumentRegistry,
    mixer: Mixer,
    sounds_dir: str | Path = settings.SOUNDS_DIR,
) -> dict[str, SamplerVoice]:
    """
    Build one SamplerVoice per atomic instrument from the registry's sample table.

    Samples are resampled to the mixer rate. Missing sample files are logged
    and leave their pitch slot silent.
    """
    sounds_path = Path(sounds_dir)
    cache: dict[str, np.ndarray] = {}
    voices: dict[str, SamplerVoice] = {}

    for instrument_id in registry.atomic_ids:
        samples: dict[int, np.ndarray] = {}
        for slot, filename in registry.sample_table(instrument_id).items():
            if filename not in cache:
                path = sounds_path / filename
                if not path.is_file():
                    logger.warning("Sample '%s' for instrument '%s' not found", path, instrument_id)
                    continue
                cache[filename], _sr = librosa.load(path, sr=mixer.sample_rate, mono=True)
            samples[slot] = cache[filename]

        voices[instrument_id] = SamplerVoice(mixer, samples, registry.output_level(instrument_id))

    logger.info("Loaded %d samples for %d instruments", len(cache), len(voices))
    return voices
