"""Tests for library indexing and file relocation."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from apollo.database import CatalogStore
from apollo.metadata import TrackTags
from apollo.scanner import generate_path_from_pattern, index_library, scan_audio_files

from conftest import FakeTagReader

PATTERN = "{artist}/{album}/{title}.{ext}"


def _contents(store: CatalogStore) -> list[tuple]:
    return [(t.path, t.artist, t.album, t.album_artist, t.title, t.duration) for t in store.query_tracks()]


def test_generate_path_from_pattern() -> None:
    result = generate_path_from_pattern(PATTERN, "Muse", "Origin of Symmetry", "Plug In Baby", "mp3")
    assert result == "Muse/Origin of Symmetry/Plug In Baby.mp3"


def test_albumartist_placeholder_falls_back_to_artist() -> None:
    pattern = "{albumartist}/{album}/{artist} - {title}.{ext}"
    assert generate_path_from_pattern(pattern, "Muse", "Drones", "Mercy", "flac") == "Muse/Drones/Muse - Mercy.flac"
    assert (
        generate_path_from_pattern(pattern, "Muse", "Hits", "Mercy", "flac", album_artist="Various")
        == "Various/Hits/Muse - Mercy.flac"
    )


def test_scan_audio_files_filters_extensions(library: Path, make_file) -> None:
    make_file(library / "b" / "song.FLAC")
    make_file(library / "a.mp3")
    make_file(library / "c.wav")
    make_file(library / "cover.jpg")
    make_file(library / "list.m3u")
    make_file(library / "d.m4a")

    names = [p.name for p in scan_audio_files(library)]
    assert names == ["a.mp3", "c.wav", "song.FLAC"]


def test_scan_audio_files_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        list(scan_audio_files(tmp_path / "missing"))


def test_index_adds_tracks_with_tags(store: CatalogStore, library: Path, make_file) -> None:
    song = make_file(library / "x.flac")
    reader = FakeTagReader({"x.flac": TrackTags("Muse", "Drones", "Muse", "Mercy")})

    report = index_library(store, library, tag_reader=reader)

    assert report.added == [str(song)]
    assert _contents(store) == [(str(song), "Muse", "Drones", "Muse", "Mercy", 0)]


def test_index_keeps_untagged_files(store: CatalogStore, library: Path, make_file) -> None:
    """A file whose tags cannot be read is still indexed, with empty metadata."""
    song = make_file(library / "garbage.mp3")

    index_library(store, library)

    assert _contents(store) == [(str(song), "", "", "", "", 0)]


def test_index_twice_is_idempotent(store: CatalogStore, library: Path, make_file) -> None:
    make_file(library / "a.mp3")
    make_file(library / "sub" / "b.flac")
    reader = FakeTagReader(
        {
            "a.mp3": TrackTags("A", "Al", "", "One"),
            "b.flac": TrackTags("B", "Bl", "", "Two"),
        }
    )

    index_library(store, library, tag_reader=reader)
    first = _contents(store)
    report = index_library(store, library, tag_reader=reader)

    assert report.added == []
    assert _contents(store) == first
    assert len(first) == 2


def test_index_prunes_exactly_the_deleted_file(store: CatalogStore, library: Path, make_file) -> None:
    a = make_file(library / "a.mp3")
    b = make_file(library / "b.mp3")
    index_library(store, library, tag_reader=FakeTagReader({}))

    b.unlink()
    report = index_library(store, library, tag_reader=FakeTagReader({}))

    assert report.pruned == [str(b)]
    assert [t.path for t in store.query_tracks()] == [str(a)]


def test_index_moves_files_to_pattern(store: CatalogStore, library: Path, make_file) -> None:
    song = make_file(library / "incoming" / "track01.mp3")
    reader = FakeTagReader({"track01.mp3": TrackTags("Muse", "Origin of Symmetry", "", "Plug In Baby")})

    report = index_library(store, library, file_pattern=PATTERN, tag_reader=reader)

    target = library / "Muse" / "Origin of Symmetry" / "Plug In Baby.mp3"
    assert target.exists()
    assert not song.exists()
    assert report.moved == [(str(song), str(target))]
    assert [t.path for t in store.query_tracks()] == [str(target)]


def test_index_leaves_files_already_in_place(store: CatalogStore, library: Path, make_file) -> None:
    song = make_file(library / "Muse" / "Drones" / "Mercy.flac")
    reader = FakeTagReader({"Mercy.flac": TrackTags("Muse", "Drones", "", "Mercy")})

    report = index_library(store, library, file_pattern=PATTERN, tag_reader=reader)

    assert report.moved == []
    assert [t.path for t in store.query_tracks()] == [str(song)]


def test_dry_run_reports_without_moving(store: CatalogStore, library: Path, make_file) -> None:
    song = make_file(library / "track01.mp3")
    reader = FakeTagReader({"track01.mp3": TrackTags("Muse", "Showbiz", "", "Sunburn")})

    report = index_library(store, library, file_pattern=PATTERN, dry_run=True, tag_reader=reader)

    target = library / "Muse" / "Showbiz" / "Sunburn.mp3"
    assert report.planned_moves == [(str(song), str(target))]
    assert song.exists()
    assert not target.exists()
    assert [t.path for t in store.query_tracks()] == [str(song)]


def test_failed_move_keeps_original_path(store: CatalogStore, library: Path, make_file) -> None:
    song = make_file(library / "new.mp3")
    occupied = make_file(library / "Muse" / "Showbiz" / "Sunburn.mp3", "already here")
    reader = FakeTagReader({"new.mp3": TrackTags("Muse", "Showbiz", "", "Sunburn")})

    report = index_library(store, library, file_pattern=PATTERN, tag_reader=reader)

    assert report.failed_moves == [str(song)]
    assert song.exists()
    assert occupied.read_text() == "already here"
    assert str(song) in [t.path for t in store.query_tracks()]


def test_untagged_files_are_not_relocated(store: CatalogStore, library: Path, make_file) -> None:
    song = make_file(library / "mystery.wav")

    report = index_library(store, library, file_pattern=PATTERN, tag_reader=FakeTagReader({}))

    assert report.moved == []
    assert song.exists()


def test_failed_scan_rolls_back_prune(store: CatalogStore, tmp_path: Path) -> None:
    store.upsert_track(tmp_path / "vanished.mp3")

    with pytest.raises(OSError):
        index_library(store, tmp_path / "no-such-library", tag_reader=FakeTagReader({}))

    assert [t.path for t in store.query_tracks()] == [str(tmp_path / "vanished.mp3")]


UNDECODABLE = os.fsdecode(b"caf\xe9.mp3")
needs_byte_names = pytest.mark.skipif(
    sys.platform != "linux", reason="needs a filesystem that accepts non-UTF-8 file names"
)


@needs_byte_names
def test_undecodable_file_name_is_skipped(store: CatalogStore, library: Path, make_file) -> None:
    store.upsert_track(library / "vanished.mp3")
    make_file(library / UNDECODABLE)
    ok = make_file(library / "ok.mp3")

    report = index_library(store, library, tag_reader=FakeTagReader({}))

    assert report.skipped == [str(library / UNDECODABLE)]
    assert report.pruned == [str(library / "vanished.mp3")]
    assert [t.path for t in store.query_tracks()] == [str(ok)]


@needs_byte_names
def test_undecodable_file_name_is_indexed_after_relocation(
    store: CatalogStore, library: Path, make_file
) -> None:
    make_file(library / UNDECODABLE)
    tags = FakeTagReader({UNDECODABLE: TrackTags(artist="Muse", album="Drones", title="Mercy")})

    report = index_library(store, library, file_pattern=PATTERN, tag_reader=tags)

    assert report.skipped == []
    assert [t.path for t in store.query_tracks()] == [str(library / "Muse" / "Drones" / "Mercy.mp3")]
