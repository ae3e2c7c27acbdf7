"""Library statistics, including the duration back-fill for unprobed tracks."""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from rich.filesize import decimal
from rich.progress import Progress

from .config import console
from .database import CatalogStore
from .metadata import probe_duration_seconds

logger = logging.getLogger(__name__)

DurationProbe = Callable[[str], int]

# Largest unit first; 30-day months
_UNITS = (
    ("months", 2592000.0),
    ("weeks", 604800.0),
    ("days", 86400.0),
    ("hours", 3600.0),
    ("minutes", 60.0),
)


@dataclass(frozen=True)
class LibraryStats:
    tracks: int
    artists: int
    albums: int
    size_bytes: int
    duration_seconds: int

    @property
    def size(self) -> str:
        return decimal(self.size_bytes)

    @property
    def duration(self) -> str:
        return format_duration(self.duration_seconds)


def format_duration(secs: float) -> str:
    """Render seconds in the largest unit that exceeds one, e.g. ``"2.50 hours"``."""
    for name, size in _UNITS:
        if secs / size > 1.0:
            return f"{secs / size:.2f} {name}"
    return f"{secs:.2f} seconds"


def directory_size(path: Union[str, Path]) -> int:
    """Total size in bytes of the regular files below ``path``."""
    total = 0
    for root, _, files in os.walk(path):
        for name in files:
            file_path = os.path.join(root, name)
            try:
                if not os.path.islink(file_path):
                    total += os.path.getsize(file_path)
            except OSError as e:
                logger.debug(f"Cannot stat {file_path}: {e}")
    return total


def backfill_durations(store: CatalogStore, probe: DurationProbe = probe_duration_seconds) -> int:
    """Probe every track whose duration is still 0. Returns how many were updated.

    Tracks that probe as 0 stay at 0 and are probed again next time.
    """
    pending = store.query_tracks(missing_duration=True)
    updated = 0
    with Progress(console=console, transient=True) as progress:
        task = progress.add_task("[green]Probing durations:", total=len(pending))
        for track in pending:
            duration = probe(track.path)
            if duration > 0:
                store.update_track_duration(track.path, duration)
                updated += 1
            progress.advance(task)
    if pending:
        logger.info(f"Updated durations for {updated} of {len(pending)} tracks")
    return updated


def collect_stats(
    store: CatalogStore,
    music_dir: Union[str, Path],
    probe: DurationProbe = probe_duration_seconds,
) -> LibraryStats:
    with store.transaction():
        store.prune_missing_tracks()
        backfill_durations(store, probe)
    summary = store.summary()
    return LibraryStats(
        tracks=summary.tracks,
        artists=summary.artists,
        albums=summary.albums,
        size_bytes=directory_size(Path(music_dir).expanduser()),
        duration_seconds=summary.duration,
    )
