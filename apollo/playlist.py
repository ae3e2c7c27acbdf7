"""
M3U/M3U8 playlist files: discovery, reading references, and in-place rewrites.

A playlist is line oriented. Blank lines and lines starting with ``#`` are
ignored; every other line names a track, either absolute or relative to the
playlist's own directory.
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, List, Optional, Union

from .database import PLAYLIST_EXTENSIONS

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
# Round-trips bytes that are not valid UTF-8 (legacy latin-1 .m3u files)
ERRORS = "surrogateescape"


@dataclass(frozen=True)
class PlaylistReference:
    """A non-comment line of a playlist and the path it points at."""

    line: str
    path: Path

    @property
    def exists(self) -> bool:
        return self.path.exists()


def scan_playlist_files(directory: Union[str, Path]) -> Generator[Path, None, None]:
    """Yield every .m3u/.m3u8 file below ``directory`` in a stable order."""
    directory = Path(directory)
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            file_path = Path(root) / name
            if file_path.suffix.lower() in PLAYLIST_EXTENSIONS:
                yield file_path


def resolve_reference(playlist_path: Union[str, Path], line: str) -> Path:
    """Absolute path named by ``line``; relative lines hang off the playlist's directory."""
    entry = Path(line.strip())
    if entry.is_absolute():
        return entry
    return Path(playlist_path).parent / entry


def read_references(playlist_path: Union[str, Path]) -> List[PlaylistReference]:
    """Parse the track references of a playlist, in file order."""
    with open(playlist_path, "r", encoding=ENCODING, errors=ERRORS) as f:
        lines = f.read().splitlines()
    return [
        PlaylistReference(line=line.strip(), path=resolve_reference(playlist_path, line))
        for line in lines
        if line.strip() and not line.strip().startswith("#")
    ]


def _relative_to(path: Union[str, Path], directory: Path) -> Path:
    path = Path(path)
    try:
        return path.relative_to(directory)
    except ValueError:
        return path


def update_playlist_line(
    playlist_path: Union[str, Path],
    target: Union[str, Path],
    replacement: Optional[Union[str, Path]],
) -> bool:
    """Rewrite the first line of a playlist that names ``target``.

    Lines are compared by their path relative to the playlist's directory, so
    ``sub/a.mp3`` and ``/music/sub/a.mp3`` match for a playlist in ``/music``.
    The line becomes ``replacement`` (relative when it lives below the
    playlist's directory), or is dropped when ``replacement`` is None. Every
    other line, line ending included, is kept verbatim.

    Returns False, after logging a warning, if no line names ``target``.
    """
    playlist_path = Path(playlist_path)
    playlist_dir = playlist_path.parent
    target_rel = _relative_to(target, playlist_dir)
    new_rel = _relative_to(replacement, playlist_dir) if replacement is not None else None

    with open(playlist_path, "r", encoding=ENCODING, errors=ERRORS, newline="") as f:
        lines = f.read().splitlines(keepends=True)

    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if _relative_to(stripped, playlist_dir) != target_rel:
            continue

        if new_rel is None:
            logger.info(f"Removing '{target_rel}' from playlist {playlist_path}")
            del lines[i]
        else:
            ending = line[len(line.rstrip("\r\n")):]
            logger.info(f"Updating playlist {playlist_path}: {target_rel} -> {new_rel}")
            lines[i] = f"{new_rel}{ending}"

        with open(playlist_path, "w", encoding=ENCODING, errors=ERRORS, newline="") as f:
            f.write("".join(lines))
        return True

    logger.warning(f"Target line '{target_rel}' not found in playlist '{playlist_path}'")
    return False
