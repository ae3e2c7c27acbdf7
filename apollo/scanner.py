"""
Indexes a music directory into the catalog.

A scan prunes tracks whose files have vanished, then walks the directory,
reads tags for every recognized audio file, optionally moves the file to the
location given by the configured naming pattern, and inserts it into the
catalog. All of this happens inside one catalog transaction.
"""
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Generator, List, Optional, Set, Tuple, Union

from rich.markup import escape
from rich.progress import Progress

from .config import console
from .database import AUDIO_EXTENSIONS, CatalogStore
from .errors import FilesystemFailure, printable
from .metadata import TrackTags, read_tags

logger = logging.getLogger(__name__)

TagReader = Callable[[Path], TrackTags]


@dataclass
class ScanReport:
    pruned: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    moved: List[Tuple[str, str]] = field(default_factory=list)
    planned_moves: List[Tuple[str, str]] = field(default_factory=list)
    failed_moves: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    scanned: int = 0


def scan_audio_files(
    library_dir: Path, extensions: Optional[Set[str]] = None
) -> Generator[Path, None, None]:
    """
    Walks a directory for audio files, in a stable order.

    Args:
        library_dir (Path): The root directory to scan.
        extensions (set[str], optional): File extensions to scan for.
                                       Defaults to AUDIO_EXTENSIONS.

    Yields:
        Path: The path to each found audio file.

    Raises:
        OSError: If library_dir is missing or not a directory
    """
    if extensions is None:
        extensions = AUDIO_EXTENSIONS

    if not library_dir.exists():
        raise OSError(f"Library directory does not exist: {library_dir}")

    if not library_dir.is_dir():
        raise OSError(f"Library path is not a directory: {library_dir}")

    for root, dirs, files in os.walk(library_dir):
        dirs.sort()
        for file in sorted(files):
            file_path = Path(root) / file
            if file_path.suffix.lower() in extensions:
                yield file_path


def generate_path_from_pattern(
    pattern: str,
    artist: str,
    album: str,
    title: str,
    ext: str,
    album_artist: str = "",
) -> str:
    """Substitute track metadata into a naming pattern.

    >>> generate_path_from_pattern("{artist}/{album}/{title}.{ext}",
    ...     "Muse", "Origin of Symmetry", "Plug In Baby", "mp3")
    'Muse/Origin of Symmetry/Plug In Baby.mp3'

    ``{albumartist}`` takes the album artist, or the artist when that is empty.
    """
    substitutions = (
        ("{artist}", artist),
        ("{albumartist}", album_artist or artist),
        ("{album}", album),
        ("{title}", title),
        ("{ext}", ext),
    )
    result = pattern
    for placeholder, value in substitutions:
        result = result.replace(placeholder, value)
    return result


def _move_file(source: Path, destination: Path) -> None:
    if destination.exists():
        raise FilesystemFailure(destination, FileExistsError("destination already exists"))
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(destination))
    except OSError as e:
        raise FilesystemFailure(source, e) from e


def _canonical_path(
    library_dir: Path, path: Path, tags: TrackTags, file_pattern: str
) -> Optional[Path]:
    if not tags.artist or not tags.title:
        logger.info(f"Not relocating {printable(path)}: artist or title tag is empty")
        return None
    relative = generate_path_from_pattern(
        file_pattern,
        tags.artist,
        tags.album,
        tags.title,
        path.suffix.lstrip("."),
        album_artist=tags.album_artist,
    )
    if Path(relative).is_absolute() or ".." in Path(relative).parts:
        logger.warning(f"Not relocating {printable(path)}: pattern gives '{relative}' outside the library")
        return None
    return library_dir / relative


def _relocate(
    library_dir: Path,
    path: Path,
    tags: TrackTags,
    file_pattern: str,
    dry_run: bool,
    report: ScanReport,
) -> Path:
    """Move ``path`` to its canonical location and return where the track now lives."""
    destination = _canonical_path(library_dir, path, tags, file_pattern)
    if destination is None or destination == path:
        return path

    if dry_run:
        console.print(
            f"[yellow]\\[dry-run][/yellow] Would move:\n"
            f"  from: {escape(printable(path))}\n  to:   {escape(printable(destination))}",
            highlight=False,
        )
        report.planned_moves.append((str(path), str(destination)))
        return path

    try:
        _move_file(path, destination)
    except FilesystemFailure as e:
        logger.error(f"Failed to move file, keeping it in place: {e}")
        report.failed_moves.append(str(path))
        return path

    logger.info(f"Moved {printable(path)} -> {printable(destination)}")
    report.moved.append((str(path), str(destination)))
    return destination


def index_library(
    store: CatalogStore,
    music_dir: Union[str, Path],
    file_pattern: Optional[str] = None,
    dry_run: bool = False,
    tag_reader: TagReader = read_tags,
) -> ScanReport:
    """
    Prunes vanished tracks, then indexes every audio file below ``music_dir``.

    Args:
        store: The open catalog.
        music_dir: Root of the music library.
        file_pattern: Optional naming pattern; files whose tags give a different
            location are moved there (or only reported when ``dry_run``).
        dry_run: Report moves without touching the filesystem.
        tag_reader: Tag-reading callable, ``read_tags`` by default.

    Returns:
        ScanReport: What was pruned, added and moved.

    Raises:
        StorageError: If the catalog transaction fails; nothing is committed.
        OSError: If ``music_dir`` is not a directory.
    """
    library_dir = Path(music_dir).expanduser().absolute()
    report = ScanReport()

    with store.transaction():
        report.pruned = store.prune_missing_tracks()

        console.print(f"[cyan]Indexing music files in directory:[/] {escape(str(library_dir))}")
        entries = list(scan_audio_files(library_dir))

        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("[green]Indexing tracks:", total=len(entries))
            for path in entries:
                tags = tag_reader(path)
                if file_pattern:
                    path = _relocate(library_dir, path, tags, file_pattern, dry_run, report)

                try:
                    added = store.upsert_track(
                        path,
                        artist=tags.artist,
                        album=tags.album,
                        album_artist=tags.album_artist,
                        title=tags.title,
                    )
                except FilesystemFailure as e:
                    logger.error(f"Skipping file: {e}")
                    report.skipped.append(str(path))
                    progress.advance(task)
                    continue
                if added:
                    report.added.append(str(path))
                    progress.update(task, description=f"[green]Added:[/] {escape(path.name)}")
                report.scanned += 1
                progress.advance(task)

    console.print(
        f"[green]Indexing complete: {report.scanned} files scanned, "
        f"{len(report.added)} added, {len(report.pruned)} removed, "
        f"{len(report.skipped)} skipped.[/green]"
    )
    return report
