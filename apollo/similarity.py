"""String similarity used to rank replacement candidates for broken references."""
from __future__ import annotations

from pathlib import PurePath
from typing import Optional

from rapidfuzz.distance import Jaro

# "Artist - Title" separators, ASCII first, then the full-width hyphen variant
SONG_NAME_SEPARATORS = (" - ", " － ")


def similarity(a: str, b: str) -> float:
    """Jaro similarity of two strings in [0, 1]."""
    return Jaro.similarity(a, b)


def extract_song_name(filename: str) -> Optional[str]:
    """Return the title part of an ``"<artist> - <title>.<ext>"`` file name.

    The segment right after the first separator is used, so
    ``"Muse - Plug In Baby - Live.mp3"`` yields ``"Plug In Baby"``.
    Returns None when the stem has no separator.
    """
    stem = PurePath(filename).stem
    if not stem:
        return None
    for separator in SONG_NAME_SEPARATORS:
        parts = stem.split(separator)
        if len(parts) > 1:
            return parts[1]
    return None


def comparison_key(reference: str) -> str:
    """Key a broken reference is scored by: its song name, else its file name."""
    file_name = PurePath(reference).name
    return extract_song_name(file_name) or file_name
