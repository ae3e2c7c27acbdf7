"""CSV export of the catalog."""
import csv
import logging
from pathlib import Path
from typing import Optional, Union

from .database import CatalogStore

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "tracks_export.csv"
HEADER = ("Artist", "Album", "Title")


def default_export_path(store: CatalogStore) -> Path:
    """``tracks_export.csv`` next to the database file."""
    return store.location.parent / EXPORT_FILENAME


def export_tracks(store: CatalogStore, output: Optional[Union[str, Path]] = None) -> Path:
    """Write artist, album and title of every track as CSV. Returns the file written."""
    csv_path = Path(output).expanduser() if output else default_export_path(store)
    csv_path.parent.mkdir(parents=True, exist_ok=True)
    tracks = store.query_tracks()
    with open(csv_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerows((t.artist, t.album, t.title) for t in tracks)
    logger.info(f"Exported {len(tracks)} tracks to {csv_path}")
    return csv_path
