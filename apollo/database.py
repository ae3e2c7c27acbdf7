"""
Manages the apollo catalog database.

The catalog is a single SQLite file holding two tables keyed by filesystem
path: ``tracks`` and ``playlists``. A ``CatalogStore`` is opened once per
invocation and handed to the scanner, the playlist reconciler and the
duplicate detector; it is the only place SQL is written.

Every pass that mutates the catalog wraps its writes in
``CatalogStore.transaction()`` so a failure part way through leaves the last
committed state untouched.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, List, Optional, Tuple, Union

from .errors import FilesystemFailure, StorageError

logger = logging.getLogger(__name__)

# Extensions the scanner indexes
AUDIO_EXTENSIONS = {".mp3", ".flac", ".wav"}
# Extensions a catalog track may carry (m4a is ranked for quality, not scanned)
CATALOG_EXTENSIONS = AUDIO_EXTENSIONS | {".m4a"}
PLAYLIST_EXTENSIONS = {".m3u", ".m3u8"}

TRACKS_TABLE = """
CREATE TABLE IF NOT EXISTS tracks (
    id INTEGER PRIMARY KEY,
    path TEXT NOT NULL UNIQUE,
    artist TEXT,
    album TEXT,
    albumartist TEXT,
    title TEXT,
    duration INTEGER DEFAULT 0
)
"""

PLAYLISTS_TABLE = """
CREATE TABLE IF NOT EXISTS playlists (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    path TEXT NOT NULL UNIQUE
)
"""

_TRACK_COLUMNS = "path, artist, album, albumartist, title, duration"


@dataclass(frozen=True)
class Track:
    path: str
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    title: str = ""
    duration: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Track":
        return cls(
            path=row["path"],
            artist=row["artist"] or "",
            album=row["album"] or "",
            album_artist=row["albumartist"] or "",
            title=row["title"] or "",
            duration=int(row["duration"] or 0),
        )


@dataclass(frozen=True)
class CatalogSummary:
    tracks: int
    artists: int
    albums: int
    duration: int


def _normalize_path(path_input: Union[str, Path]) -> Path:
    """Strip stray quotes and expand ``~`` in a user supplied path."""
    return Path(str(path_input).strip("'\"")).expanduser()


def _check_extension(path: str, allowed: set, kind: str) -> None:
    if Path(path).suffix.lower() not in allowed:
        raise ValueError(f"Not a recognized {kind} file: {path}")


def _check_encodable(path: str) -> None:
    # os.walk keeps undecodable name bytes as surrogates, which SQLite rejects
    try:
        path.encode("utf-8")
    except UnicodeEncodeError as e:
        raise FilesystemFailure(path, ValueError("file name is not valid UTF-8")) from e


class CatalogStore:
    """Handle on an open catalog database.

    Use ``CatalogStore.open`` (or ``open_store``) rather than the constructor.
    """

    def __init__(self, conn: sqlite3.Connection, location: Path):
        self._conn = conn
        self._depth = 0
        self.location = location

    @classmethod
    def open(cls, location: Union[str, Path]) -> "CatalogStore":
        """Open or create the catalog at ``location``.

        Raises:
            StorageError: If the file cannot be created, opened, or is not a
                usable SQLite database.
        """
        path = _normalize_path(location)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create database directory {path.parent}: {e}") from e

        conn = None
        try:
            # Autocommit mode; transaction() issues BEGIN/COMMIT itself
            conn = sqlite3.connect(str(path), isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute(TRACKS_TABLE)
            conn.execute(PLAYLISTS_TABLE)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise StorageError(f"Cannot open catalog {path}: {e}") from e

        logger.debug(f"Opened catalog {path}")
        return cls(conn, path)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "CatalogStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Generator["CatalogStore", None, None]:
        """Group writes into one atomic unit.

        Nested use joins the outermost transaction. On any exception the whole
        unit is rolled back and the exception propagates; SQLite errors are
        re-raised as StorageError.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        try:
            self._conn.execute("BEGIN")
        except sqlite3.Error as e:
            raise StorageError(f"Cannot start transaction: {e}") from e
        self._depth = 1
        try:
            yield self
        except BaseException as e:
            self._depth = 0
            self._conn.rollback()
            if isinstance(e, sqlite3.Error):
                raise StorageError(f"Catalog write failed: {e}") from e
            raise
        self._depth = 0
        try:
            self._conn.commit()
        except sqlite3.Error as e:
            self._conn.rollback()
            raise StorageError(f"Cannot commit catalog changes: {e}") from e

    ############################################################################
    # TRACKS
    ############################################################################

    def prune_missing_tracks(self) -> List[str]:
        """Delete tracks whose file no longer exists. Returns the removed paths."""
        return self._prune("tracks", "file")

    def upsert_track(
        self,
        path: Union[str, Path],
        artist: str = "",
        album: str = "",
        album_artist: str = "",
        title: str = "",
        duration: int = 0,
    ) -> bool:
        """Insert a track unless its path is already catalogued.

        An existing row is never overwritten. Returns True if a row was added.

        Raises:
            FilesystemFailure: If the path cannot be stored as UTF-8 text.
        """
        path = str(path)
        _check_extension(path, CATALOG_EXTENSIONS, "audio")
        _check_encodable(path)
        cur = self._conn.execute(
            "INSERT OR IGNORE INTO tracks (path, artist, album, albumartist, title, duration) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (path, artist, album, album_artist, title, duration),
        )
        return cur.rowcount == 1

    def update_track_duration(self, path: Union[str, Path], duration: int) -> bool:
        cur = self._conn.execute(
            "UPDATE tracks SET duration = ? WHERE path = ?", (int(duration), str(path))
        )
        return cur.rowcount > 0

    def delete_track(self, path: Union[str, Path]) -> bool:
        cur = self._conn.execute("DELETE FROM tracks WHERE path = ?", (str(path),))
        return cur.rowcount > 0

    def delete_tracks_by_artist_title(
        self, artist: str, title: str, keep_path: Union[str, Path]
    ) -> List[str]:
        """Delete every (artist, title) track except ``keep_path``.

        Returns the deleted paths in catalog order.
        """
        keep_path = str(keep_path)
        doomed = [
            t.path
            for t in self.query_tracks(artist=artist, title=title)
            if t.path != keep_path
        ]
        self._conn.executemany(
            "DELETE FROM tracks WHERE path = ?", [(p,) for p in doomed]
        )
        return doomed

    def get_track(self, path: Union[str, Path]) -> Optional[Track]:
        row = self._conn.execute(
            f"SELECT {_TRACK_COLUMNS} FROM tracks WHERE path = ?", (str(path),)
        ).fetchone()
        return Track.from_row(row) if row else None

    def query_tracks(
        self,
        artist: Optional[str] = None,
        title: Optional[str] = None,
        missing_duration: bool = False,
    ) -> List[Track]:
        """Return tracks in insertion order.

        With no arguments every track is returned. ``artist`` and ``title``
        must be given together and select one (artist, title) group;
        ``missing_duration`` selects tracks whose duration is still 0.
        """
        if (artist is None) != (title is None):
            raise ValueError("artist and title must be given together")

        clauses: List[str] = []
        params: List[Union[str, int]] = []
        if artist is not None:
            clauses.append("artist = ? AND title = ?")
            params.extend([artist, title])
        if missing_duration:
            clauses.append("(duration = 0 OR duration IS NULL)")

        sql = f"SELECT {_TRACK_COLUMNS} FROM tracks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY id"
        return [Track.from_row(row) for row in self._conn.execute(sql, params)]

    def duplicate_keys(self) -> List[Tuple[str, str, int]]:
        """(artist, title, count) for every non-empty pair shared by 2+ tracks."""
        rows = self._conn.execute(
            "SELECT artist, title, COUNT(*) AS count FROM tracks "
            "WHERE artist != '' AND title != '' "
            "GROUP BY artist, title HAVING count > 1 "
            "ORDER BY MIN(id)"
        )
        return [(row["artist"], row["title"], row["count"]) for row in rows]

    def summary(self) -> CatalogSummary:
        row = self._conn.execute(
            "SELECT COUNT(*) AS tracks, COUNT(DISTINCT artist) AS artists, "
            "COUNT(DISTINCT album) AS albums, COALESCE(SUM(duration), 0) AS duration "
            "FROM tracks"
        ).fetchone()
        return CatalogSummary(
            tracks=row["tracks"],
            artists=row["artists"],
            albums=row["albums"],
            duration=int(row["duration"]),
        )

    ############################################################################
    # PLAYLISTS
    ############################################################################

    def prune_missing_playlists(self) -> List[str]:
        """Delete playlists whose file no longer exists. Returns the removed paths."""
        return self._prune("playlists", "playlist")

    def upsert_playlist(self, name: str, path: Union[str, Path]) -> bool:
        """Insert a playlist record unless its path is already known."""
        path = str(path)
        _check_extension(path, PLAYLIST_EXTENSIONS, "playlist")
        _check_encodable(path)
        cur = self._conn.execute(
            "INSERT OR IGNORE INTO playlists (name, path) VALUES (?, ?)", (name, path)
        )
        return cur.rowcount == 1

    def query_playlist_paths(self) -> List[str]:
        return [row["path"] for row in self._conn.execute("SELECT path FROM playlists ORDER BY id")]

    def _prune(self, table: str, kind: str) -> List[str]:
        if table not in ("tracks", "playlists"):
            raise ValueError(f"Unknown table: {table}")
        paths = [row["path"] for row in self._conn.execute(f"SELECT path FROM {table}")]
        missing = [p for p in paths if not os.path.exists(p)]
        for path in missing:
            logger.info(f"Removing missing {kind} from database: {path}")
        self._conn.executemany(f"DELETE FROM {table} WHERE path = ?", [(p,) for p in missing])
        return missing


@contextmanager
def open_store(db_path: Union[str, Path]) -> Generator[CatalogStore, None, None]:
    """Context manager that opens the catalog and always closes it."""
    store = CatalogStore.open(db_path)
    try:
        yield store
    finally:
        store.close()
