"""
Repairs broken references in the playlists of a music directory.

For every playlist line pointing at a file that no longer exists, the
catalog is ranked by similarity against the line's song name. A close enough
best candidate replaces the line outright; otherwise the top candidates are
offered to a chooser, which may pick one, remove the line, or skip.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from rich.markup import escape

from .config import config, console
from .database import CatalogStore
from .errors import FilesystemFailure, ReferenceUnresolved, printable
from .playlist import PlaylistReference, read_references, scan_playlist_files, update_playlist_line
from .prompts import CANCELLED, Chooser, DefaultChooser
from .similarity import comparison_key, similarity

logger = logging.getLogger(__name__)

Scorer = Callable[[str, str], float]

REMOVE = "Remove"
SKIP = "Skip"


class Action(Enum):
    AUTO_REPLACED = "auto-replaced"
    REPLACED = "replaced"
    REMOVED = "removed"
    SKIPPED = "skipped"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class Candidate:
    path: str
    score: float

    @property
    def label(self) -> str:
        return f"({self.score:.3f}) {self.path}"


@dataclass(frozen=True)
class Repair:
    playlist: str
    reference: str
    action: Action
    replacement: Optional[str] = None


@dataclass
class ReconcileReport:
    pruned: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    playlists: int = 0
    skipped: List[str] = field(default_factory=list)
    repairs: List[Repair] = field(default_factory=list)

    def count(self, action: Action) -> int:
        return sum(1 for r in self.repairs if r.action is action)


class TrackIndex:
    """(title, path) pairs of the catalog, built once per reconciliation pass."""

    def __init__(self, entries: Sequence[Tuple[str, str]]):
        self.entries = list(entries)

    @classmethod
    def from_store(cls, store: CatalogStore) -> "TrackIndex":
        return cls([(t.title, t.path) for t in store.query_tracks()])

    def __len__(self) -> int:
        return len(self.entries)

    def rank(self, key: str, limit: int = 5, scorer: Scorer = similarity) -> List[Candidate]:
        """Best ``limit`` candidates for ``key``, highest score first.

        Equal scores keep catalog order, so the ranking is reproducible.
        """
        scored = [Candidate(path, scorer(title, key)) for title, path in self.entries]
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored[:limit]


class PlaylistReconciler:
    """Walks playlists and repairs their broken references against the catalog."""

    def __init__(
        self,
        store: CatalogStore,
        chooser: Optional[Chooser] = None,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
        scorer: Scorer = similarity,
    ):
        self.store = store
        self.chooser = chooser or DefaultChooser()
        self.threshold = config["AUTO_REPLACE_THRESHOLD"] if threshold is None else threshold
        self.limit = config["CANDIDATE_LIMIT"] if limit is None else limit
        self.scorer = scorer
        self._index: Optional[TrackIndex] = None

    @property
    def index(self) -> TrackIndex:
        if self._index is None:
            self._index = TrackIndex.from_store(self.store)
            logger.debug(f"Built track index with {len(self._index)} entries")
        return self._index

    def reconcile(self, directory: Union[str, Path]) -> ReconcileReport:
        directory = Path(directory).expanduser().absolute()
        report = ReconcileReport()
        self._index = None

        with self.store.transaction():
            report.pruned = self.store.prune_missing_playlists()
            console.print(f"[cyan]Indexing playlists in directory:[/] {escape(str(directory))}")
            for playlist_path in scan_playlist_files(directory):
                try:
                    added = self.store.upsert_playlist(playlist_path.stem, playlist_path)
                except FilesystemFailure as e:
                    logger.error(f"Skipping playlist: {e}")
                    report.skipped.append(str(playlist_path))
                    continue
                report.playlists += 1
                if added:
                    report.added.append(str(playlist_path))
                report.repairs.extend(self.repair_playlist(playlist_path))
        return report

    def repair_playlist(self, playlist_path: Path) -> List[Repair]:
        try:
            references = read_references(playlist_path)
        except OSError as e:
            logger.error(f"Cannot read playlist {playlist_path}: {e}")
            return []

        repairs = []
        for reference in references:
            if reference.exists:
                continue
            console.print(
                f"Missing file in playlist '{escape(playlist_path.stem)}': {escape(printable(reference.path))}",
                highlight=False,
            )
            try:
                repairs.append(self.repair_reference(playlist_path, reference))
            except ReferenceUnresolved as e:
                logger.warning(str(e))
                repairs.append(Repair(str(playlist_path), str(reference.path), Action.UNRESOLVED))
            except OSError as e:
                logger.error(f"Cannot rewrite playlist {playlist_path}: {e}")
                repairs.append(Repair(str(playlist_path), str(reference.path), Action.UNRESOLVED))
        return repairs

    def repair_reference(self, playlist_path: Path, reference: PlaylistReference) -> Repair:
        """Resolve one broken reference.

        Raises:
            ReferenceUnresolved: If the catalog offers no candidate at all.
        """
        target = str(reference.path)
        key = comparison_key(target)
        console.print(f"  Suggested song name: {escape(printable(key))}", highlight=False)

        candidates = self.index.rank(key, limit=self.limit, scorer=self.scorer)
        if not candidates:
            raise ReferenceUnresolved(playlist_path, target)

        top = candidates[0]
        if top.score >= self.threshold:
            console.print(
                f"  Auto-replacing '{escape(printable(target))}' with '{escape(top.path)}' "
                f"(similarity {top.score:.3f})",
                highlight=False,
            )
            return self._apply(playlist_path, target, top.path, Action.AUTO_REPLACED)

        by_label = {c.label: c for c in candidates}
        options = [*by_label, REMOVE, SKIP]
        selected = self.chooser.choose(
            f"Select a replacement for '{printable(Path(target).name)}':", options
        )

        if selected == REMOVE:
            console.print(f"  Removing '{escape(printable(target))}' from playlist", highlight=False)
            return self._apply(playlist_path, target, None, Action.REMOVED)
        if selected is not CANCELLED and selected in by_label:
            chosen = by_label[selected].path
            console.print(f"  Replacing '{escape(printable(target))}' with '{escape(chosen)}'", highlight=False)
            return self._apply(playlist_path, target, chosen, Action.REPLACED)

        console.print(f"  Skipped replacement for '{escape(printable(target))}'", highlight=False)
        return Repair(str(playlist_path), target, Action.SKIPPED)

    def _apply(
        self, playlist_path: Path, target: str, replacement: Optional[str], action: Action
    ) -> Repair:
        if not update_playlist_line(playlist_path, target, replacement):
            return Repair(str(playlist_path), target, Action.UNRESOLVED)
        return Repair(str(playlist_path), target, action, replacement)


def reconcile(
    directory: Union[str, Path],
    store: CatalogStore,
    chooser: Optional[Chooser] = None,
    **options,
) -> ReconcileReport:
    """Prune, index and repair every playlist below ``directory`` in one catalog transaction."""
    return PlaylistReconciler(store, chooser, **options).reconcile(directory)
