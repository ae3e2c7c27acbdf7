"""Tests for playlist file handling."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from apollo.playlist import read_references, resolve_reference, scan_playlist_files, update_playlist_line


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(text.encode("utf-8"))
    return path


def test_scan_playlist_files(tmp_path: Path) -> None:
    _write(tmp_path / "b.m3u8", "")
    _write(tmp_path / "a.M3U", "")
    _write(tmp_path / "sub" / "c.m3u", "")
    _write(tmp_path / "notes.txt", "")

    names = [p.name for p in scan_playlist_files(tmp_path)]
    assert names == ["a.M3U", "b.m3u8", "c.m3u"]


def test_resolve_reference(tmp_path: Path) -> None:
    playlist = tmp_path / "lists" / "mix.m3u"
    assert resolve_reference(playlist, "song.mp3") == tmp_path / "lists" / "song.mp3"
    assert resolve_reference(playlist, "  /abs/song.mp3 ") == Path("/abs/song.mp3")


def test_read_references_skips_blanks_and_comments(tmp_path: Path) -> None:
    playlist = _write(
        tmp_path / "mix.m3u",
        "#EXTM3U\n#EXTINF:123,Muse - Hysteria\nMuse/Hysteria.mp3\n\n   \n/abs/Uprising.flac\n",
    )

    refs = read_references(playlist)

    assert [r.line for r in refs] == ["Muse/Hysteria.mp3", "/abs/Uprising.flac"]
    assert refs[0].path == tmp_path / "Muse" / "Hysteria.mp3"
    assert refs[0].exists is False


def test_absolute_target_matches_relative_line(tmp_path: Path) -> None:
    playlist = _write(tmp_path / "mix.m3u", "#EXTM3U\nold/a.mp3\nold/b.mp3\n")

    assert update_playlist_line(playlist, tmp_path / "old" / "b.mp3", tmp_path / "new" / "b.flac")

    assert playlist.read_text() == "#EXTM3U\nold/a.mp3\nnew/b.flac\n"


def test_relative_target_matches_absolute_line(tmp_path: Path) -> None:
    playlist = _write(tmp_path / "mix.m3u", f"{tmp_path}/old/a.mp3\n")

    assert update_playlist_line(playlist, "old/a.mp3", "/elsewhere/a.mp3")

    assert playlist.read_text() == "/elsewhere/a.mp3\n"


def test_only_first_matching_line_is_rewritten(tmp_path: Path) -> None:
    playlist = _write(tmp_path / "mix.m3u", "a.mp3\nb.mp3\na.mp3\n")

    update_playlist_line(playlist, tmp_path / "a.mp3", tmp_path / "c.mp3")

    assert playlist.read_text() == "c.mp3\nb.mp3\na.mp3\n"


def test_other_lines_are_preserved_verbatim(tmp_path: Path) -> None:
    original = "#EXTM3U\r\n#EXTINF:1,X\r\n  keep me.mp3  \r\nold.mp3\r\nlast.mp3"
    playlist = _write(tmp_path / "mix.m3u", original)

    update_playlist_line(playlist, tmp_path / "old.mp3", tmp_path / "new.mp3")

    assert playlist.read_bytes() == original.replace("old.mp3", "new.mp3").encode("utf-8")


def test_removal_drops_the_line(tmp_path: Path) -> None:
    playlist = _write(tmp_path / "mix.m3u", "a.mp3\nb.mp3\nc.mp3\n")

    assert update_playlist_line(playlist, tmp_path / "b.mp3", None)

    assert playlist.read_text() == "a.mp3\nc.mp3\n"


def test_missing_target_is_a_warning_not_an_error(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    playlist = _write(tmp_path / "mix.m3u", "a.mp3\n")

    with caplog.at_level(logging.WARNING, logger="apollo.playlist"):
        assert update_playlist_line(playlist, tmp_path / "zzz.mp3", tmp_path / "b.mp3") is False

    assert playlist.read_text() == "a.mp3\n"
    assert "not found in playlist" in caplog.text
