"""
Reads tags and durations from audio files.

Both readers are thin wrappers over mutagen and never raise: an unreadable,
unsupported or vanished file yields empty tags or a zero duration, and the
failure is logged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from mutagen import File as MutagenFile

from .errors import ExtractionFailure

logger = logging.getLogger(__name__)

# Tag keys across formats: easy/Vorbis names, ID3 frames, MP4 atoms
TAG_KEYS = {
    "artist": ("artist", "ARTIST", "TPE1", "\xa9ART"),
    "album_artist": ("albumartist", "ALBUMARTIST", "album artist", "TPE2", "aART"),
    "album": ("album", "ALBUM", "TALB", "\xa9alb"),
    "title": ("title", "TITLE", "TIT2", "\xa9nam"),
}


@dataclass(frozen=True)
class TrackTags:
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    title: str = ""


EMPTY_TAGS = TrackTags()


def _first_value(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        return _first_value(value[0]) if value else None
    if hasattr(value, "text"):
        return _first_value(value.text)
    return str(value) if value is not None else None


def _get_tag(tags: Any, keys: tuple[str, ...]) -> str:
    for key in keys:
        try:
            if key not in tags:
                continue
            value = _first_value(tags[key])
        except (KeyError, ValueError):
            continue
        if value:
            return value.strip()
    return ""


def _load(path: Union[str, Path]):
    try:
        audio = MutagenFile(str(path))
    except Exception as e:
        raise ExtractionFailure(path, str(e) or type(e).__name__) from e
    if audio is None:
        raise ExtractionFailure(path, "unsupported format")
    return audio


def read_tags(path: Union[str, Path]) -> TrackTags:
    """Return the artist, album, album-artist and title tags of ``path``.

    Missing tags are empty strings. Any failure returns ``EMPTY_TAGS``.
    """
    try:
        audio = _load(path)
    except ExtractionFailure as e:
        logger.warning(f"Tag extraction failed, indexing with empty metadata: {e}")
        return EMPTY_TAGS

    tags = getattr(audio, "tags", None)
    if not tags:
        return EMPTY_TAGS
    return TrackTags(**{field: _get_tag(tags, keys) for field, keys in TAG_KEYS.items()})


def probe_duration_seconds(path: Union[str, Path]) -> int:
    """Return the play length of ``path`` in whole seconds, 0 if unknown."""
    try:
        audio = _load(path)
    except ExtractionFailure as e:
        logger.debug(f"Duration probe failed: {e}")
        return 0
    length = getattr(getattr(audio, "info", None), "length", None)
    if not length or length < 0:
        return 0
    return int(length)
