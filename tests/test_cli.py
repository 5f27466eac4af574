"""Tests for the laras command line, run through click's CliRunner."""

import pytest
from click.testing import CliRunner

from laras import __version__
from laras.cli import main

SCORE = """\
title = "Lancaran"
composer = "Anon"

[ "Buka" 600 ]
r1 `E A`
[ "Ngelik" 600 ]
kt `o.`
"""


@pytest.fixture
def score_file(tmp_path):
    path = tmp_path / "lancaran.laras"
    path.write_text(SCORE, encoding="utf-8")
    return path


def test_version() -> None:
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_show(score_file) -> None:
    result = CliRunner().invoke(main, ["show", str(score_file)])
    assert result.exit_code == 0
    assert "Lancaran" in result.output
    assert "5 steps" in result.output
    assert "Buka" in result.output
    assert "Ngelik" in result.output


def test_show_missing_file_is_an_empty_score(tmp_path) -> None:
    result = CliRunner().invoke(main, ["show", str(tmp_path / "nope.laras")])
    assert result.exit_code == 0
    assert "<untitled>" in result.output
    assert "Sections : 0" in result.output


def test_timeline(score_file) -> None:
    result = CliRunner().invoke(main, ["timeline", str(score_file)])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert len(lines) == 5
    assert "r1:E" in lines[0]
    assert "kt:." in lines[4]


def test_timeline_single_section(score_file) -> None:
    result = CliRunner().invoke(main, ["timeline", str(score_file), "--section", "1"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert len(lines) == 2
    assert all("[1:" in line for line in lines)


def test_instruments() -> None:
    result = CliRunner().invoke(main, ["instruments"])
    assert result.exit_code == 0
    assert "kkr" in result.output
    assert "ks + kp + ps + pp" in result.output


def test_play_empty_score_fails(tmp_path) -> None:
    result = CliRunner().invoke(main, ["play", str(tmp_path / "nope.laras"), "--dry-run"])
    assert result.exit_code == 1
    assert "nothing to play" in result.output


def test_play_unknown_section_fails(score_file) -> None:
    result = CliRunner().invoke(main, ["play", str(score_file), "--dry-run", "--section", "9"])
    assert result.exit_code == 1
    assert "no section 9" in result.output


def test_play_dry_run(score_file) -> None:
    result = CliRunner().invoke(main, ["play", str(score_file), "--dry-run", "--mute", "kt", "--mute", "zz"])
    assert result.exit_code == 0
    assert "unknown instrument 'zz'" in result.output
    assert "Done!" in result.output


def test_play_dry_run_from_section(score_file) -> None:
    result = CliRunner().invoke(main, ["play", str(score_file), "--dry-run", "--section", "1"])
    assert result.exit_code == 0
    assert "[1] Ngelik" in result.output
    assert "[0] Buka" not in result.output


@pytest.mark.integration
def test_play_through_audio_device(score_file) -> None:
    result = CliRunner().invoke(main, ["play", str(score_file)])
    assert result.exit_code == 0
    assert "Done!" in result.output
