"""Unit tests for read_score_text."""

from laras.filesystem import read_score_text


def test_reads_utf8_text(tmp_path) -> None:
    path = tmp_path / "score.laras"
    path.write_text('title = "Ñ"\n', encoding="utf-8")
    assert read_score_text(path) == 'title = "Ñ"\n'


def test_accepts_string_paths(tmp_path) -> None:
    path = tmp_path / "score.laras"
    path.write_text("x", encoding="utf-8")
    assert read_score_text(str(path)) == "x"


def test_missing_file_reads_as_empty(tmp_path) -> None:
    assert read_score_text(tmp_path / "nope.laras") == ""


def test_directory_reads_as_empty(tmp_path) -> None:
    assert read_score_text(tmp_path) == ""


def test_invalid_utf8_reads_as_empty(tmp_path) -> None:
    path = tmp_path / "latin1.laras"
    path.write_bytes(b"title = \"\xff\xfe\"")
    assert read_score_text(path) == ""
