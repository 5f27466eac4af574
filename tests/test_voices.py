"""Unit tests for Mixer, SamplerVoice and load_sampler_voices (no audio device needed)."""

import logging

import numpy as np
import pytest

import laras.voices as voices_module
from laras.instruments import InstrumentDefinition, InstrumentRegistry
from laras.voices import LoggingVoice, Mixer, SamplerVoice, load_sampler_voices


def _ones(frames: int = 100) -> np.ndarray:
    return np.ones(frames, dtype=np.float32)


def _mixer() -> Mixer:
    # 100 Hz keeps frame arithmetic readable: frame n is at n / 100 s
    return Mixer(sample_rate=100, block_size=10)


def test_mixer_clock_advances_with_rendering() -> None:
    mixer = _mixer()
    assert mixer.now() == 0.0
    mixer.render(25)
    assert mixer.now() == pytest.approx(0.25)


def test_frame_at() -> None:
    mixer = _mixer()
    assert mixer.frame_at(0.1) == 10
    assert mixer.frame_at(-1.0) == 0


def test_silent_without_voices() -> None:
    assert not _mixer().render(10).any()


def test_trigger_starts_at_its_frame() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones()})
    voice.trigger(0, 0.1)

    out = mixer.render(30)

    assert not out[:10].any()
    assert out[10:] == pytest.approx(np.ones(20))


def test_trigger_spanning_blocks() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: np.arange(100, dtype=np.float32)})
    voice.trigger(0, 0.05)

    first = mixer.render(10)
    second = mixer.render(10)

    assert first[5:] == pytest.approx([0, 1, 2, 3, 4])
    assert second == pytest.approx(np.arange(5, 15))


def test_output_level_in_decibels() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones()}, output_level=-20)
    voice.trigger(0, 0.0)
    assert mixer.render(10) == pytest.approx(np.full(10, 0.1))


def test_release_fades_out() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones()})
    voice.trigger(0, 0.1)
    voice.release(0.2)

    out = mixer.render(30)

    assert out[10:20] == pytest.approx(np.ones(10))
    assert out[20:23] == pytest.approx([1.0, 2 / 3, 1 / 3])
    assert not out[23:].any()


def test_release_all_drops_later_events() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones()})
    voice.trigger(0, 0.0)
    voice.trigger(0, 0.5)

    voice.release_all(0.2)
    out = mixer.render(100)

    assert out[:20] == pytest.approx(np.ones(20))
    assert out[20:23] == pytest.approx([1.0, 2 / 3, 1 / 3])
    assert not out[23:].any()


def test_release_all_defaults_to_release(caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="laras.voices")
    LoggingVoice("r1").release_all(1.0)
    assert "release at 1.000" in caplog.text


def test_release_without_note_is_silent() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones()})
    voice.release(0.0)
    assert not mixer.render(10).any()


def test_retrigger_replaces_the_note() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones(), 1: np.full(100, 0.5, dtype=np.float32)})
    voice.trigger(0, 0.0)
    voice.trigger(1, 0.05)

    out = mixer.render(10)

    assert out[:5] == pytest.approx(np.ones(5))
    assert out[5:] == pytest.approx(np.full(5, 0.5))


def test_sample_ends_on_its_own() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones(4)})
    voice.trigger(0, 0.0)
    out = mixer.render(10)
    assert out[:4] == pytest.approx(np.ones(4))
    assert not out[4:].any()


def test_missing_slot_is_silent() -> None:
    mixer = _mixer()
    voice = SamplerVoice(mixer, {0: _ones()})
    voice.trigger(5, 0.0)
    assert not mixer.render(10).any()


def test_voices_are_summed() -> None:
    mixer = _mixer()
    SamplerVoice(mixer, {0: _ones()}).trigger(0, 0.0)
    SamplerVoice(mixer, {0: _ones()}).trigger(0, 0.0)
    assert mixer.render(10) == pytest.approx(np.full(10, 2.0))


def test_stream_callback_clips() -> None:
    mixer = _mixer()
    SamplerVoice(mixer, {0: np.full(100, 0.8, dtype=np.float32)}).trigger(0, 0.0)
    SamplerVoice(mixer, {0: np.full(100, 0.8, dtype=np.float32)}).trigger(0, 0.0)
    outdata = np.zeros((10, 1), dtype=np.float32)

    mixer._callback(outdata, 10, None, None)

    assert outdata[:, 0] == pytest.approx(np.ones(10))


def test_close_without_start_is_harmless() -> None:
    with _mixer() as mixer:
        mixer.render(10)


def test_logging_voice_keeps_level() -> None:
    voice = LoggingVoice("r1", -24)
    voice.trigger(0, 0.0)
    voice.release(0.1)
    voice.set_output_level(-12)
    assert voice.output_level == -12


# ---------------------------------------------------------------------------
# Sample loading
# ---------------------------------------------------------------------------

def _registry() -> InstrumentRegistry:
    return InstrumentRegistry(
        instruments=(
            InstrumentDefinition("a", ("x", "y"), ("missing.mp3", "shared.mp3"), -6),
            InstrumentDefinition("b", ("x",), ("shared.mp3",), 0),
        ),
        composites=(),
    )


def test_load_sampler_voices(tmp_path, monkeypatch) -> None:
    (tmp_path / "shared.mp3").write_bytes(b"")
    loaded: list[tuple] = []

    def fake_load(path, sr, mono):
        loaded.append((path.name, sr, mono))
        return _ones(), sr

    monkeypatch.setattr(voices_module.librosa, "load", fake_load)
    mixer = _mixer()

    voices = load_sampler_voices(_registry(), mixer, tmp_path)

    assert set(voices) == {"a", "b"}
    assert loaded == [("shared.mp3", 100, True)]

    voices["a"].trigger(0, 0.0)
    assert not mixer.render(10).any()
    voices["b"].trigger(0, 0.1)
    assert mixer.render(10) == pytest.approx(np.ones(10))


def test_load_sampler_voices_from_empty_dir(tmp_path, monkeypatch) -> None:
    def fail_load(*args, **kwargs):
        raise AssertionError("nothing should be loaded")

    monkeypatch.setattr(voices_module.librosa, "load", fail_load)

    voices = load_sampler_voices(_registry(), _mixer(), tmp_path)

    assert set(voices) == {"a", "b"}
