"""
Finds tracks catalogued more than once under the same (artist, title).

Two reports come out of one pass:

- exact duplicates: every (artist, title) pair with more than one track,
  optionally resolved by keeping one file and deleting the rest;
- quality duplicates: the same groups, ranked by container format
  (FLAC > M4A > MP3 > anything else), listed when the best copy is strictly
  better than the next one. This report is advisory and never deletes.
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from rich.markup import escape

from .config import console
from .database import CatalogStore
from .errors import FilesystemFailure
from .prompts import CANCELLED, Chooser, DefaultChooser

logger = logging.getLogger(__name__)

QUALITY_RANKS = {".flac": 1, ".m4a": 2, ".mp3": 3}
OTHER_RANK = 100
QUALITY_LABELS = {1: "FLAC", 2: "M4A", 3: "MP3", OTHER_RANK: "OTHER"}

SKIP = "Skip"


def quality_rank(path: str) -> int:
    """Lower is better."""
    return QUALITY_RANKS.get(Path(path).suffix.lower(), OTHER_RANK)


def quality_label(rank: int) -> str:
    return QUALITY_LABELS.get(rank, "OTHER")


@dataclass(frozen=True)
class DuplicateGroup:
    artist: str
    title: str
    paths: Tuple[str, ...]


@dataclass(frozen=True)
class QualityGroup:
    artist: str
    title: str
    # (rank, path), best first
    members: Tuple[Tuple[int, str], ...]

    @property
    def best(self) -> str:
        return self.members[0][1]


@dataclass
class DuplicateReport:
    groups: List[DuplicateGroup] = field(default_factory=list)
    quality_groups: List[QualityGroup] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    failed_deletes: List[str] = field(default_factory=list)


def find_duplicate_groups(store: CatalogStore) -> List[DuplicateGroup]:
    """Groups of 2+ tracks sharing a non-empty (artist, title), in catalog order."""
    groups = []
    for artist, title, _count in store.duplicate_keys():
        paths = tuple(t.path for t in store.query_tracks(artist=artist, title=title))
        if len(paths) > 1:
            groups.append(DuplicateGroup(artist, title, paths))
    return groups


def rank_by_quality(group: DuplicateGroup) -> Optional[QualityGroup]:
    """Rank a group's members by format; None unless the best is strictly better than the rest."""
    # sorted() is stable: equal ranks keep catalog order
    members = tuple(sorted(((quality_rank(p), p) for p in group.paths), key=lambda m: m[0]))
    if len(members) > 1 and members[0][0] < members[1][0]:
        return QualityGroup(group.artist, group.title, members)
    return None


def find_quality_duplicates(groups: List[DuplicateGroup]) -> List[QualityGroup]:
    return [q for q in (rank_by_quality(g) for g in groups) if q is not None]


def _delete_file(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        raise FilesystemFailure(path, e) from e


def resolve_group(
    store: CatalogStore, group: DuplicateGroup, chooser: Chooser, report: DuplicateReport
) -> Optional[str]:
    """Ask which copy of ``group`` to keep and delete the others.

    Returns the kept path, or None when the choice was skipped.
    """
    options = [SKIP, *group.paths]
    selected = chooser.choose(
        f"Which file do you want to keep for '{group.artist} - {group.title}'?", options
    )
    if selected is CANCELLED or selected == SKIP or selected not in group.paths:
        console.print(
            f"  Skipped fixing '{escape(group.artist)} - {escape(group.title)}'",
            highlight=False,
        )
        return None

    for path in store.delete_tracks_by_artist_title(group.artist, group.title, keep_path=selected):
        report.removed.append(path)
        console.print(f"  Removed duplicate from database: {escape(path)}", highlight=False)
        try:
            _delete_file(path)
        except FilesystemFailure as e:
            logger.error(f"Failed to delete file: {e}")
            report.failed_deletes.append(path)
            continue
        console.print(f"  Deleted file from filesystem: {escape(path)}", highlight=False)
    return selected


def find_duplicates(
    store: CatalogStore, fix: bool = False, chooser: Optional[Chooser] = None
) -> DuplicateReport:
    """
    Report exact duplicates, optionally resolving them, then report quality duplicates.

    Args:
        store: The open catalog.
        fix: Offer each group to ``chooser`` and delete every copy but the chosen one.
        chooser: Decision maker for ``fix``; defaults to one that always skips.

    Returns:
        DuplicateReport: The groups found and what was removed.
    """
    chooser = chooser or DefaultChooser()
    report = DuplicateReport()

    with store.transaction():
        report.groups = find_duplicate_groups(store)
        for group in report.groups:
            console.print(
                f"[cyan]{escape(group.artist)} - {escape(group.title)}[/cyan]"
                f"[yellow] ({len(group.paths)} times)[/yellow]"
            )
            for path in group.paths:
                console.print(f"  {escape(path)}", highlight=False)
            if fix and len(group.paths) > 1:
                resolve_group(store, group, chooser, report)

        if not report.groups:
            console.print("[green]No duplicate tracks found.[/green]")

        # Regroup: fixing may have removed members
        report.quality_groups = find_quality_duplicates(find_duplicate_groups(store))

    console.print("\nTracks with lower quality duplicates (FLAC > M4A > MP3):")
    for quality_group in report.quality_groups:
        console.print(f"[cyan]{escape(quality_group.artist)} - {escape(quality_group.title)}[/cyan]")
        for rank, path in quality_group.members:
            console.print(f"  \\[{quality_label(rank)}] {escape(path)}", highlight=False)
    if not report.quality_groups:
        console.print("[green]No lower quality duplicates found.[/green]")

    return report
