"""
apollo: keeps a music library, its catalog and its playlists in sync.

This package provides a suite of tools for:
- Indexing audio files into a local SQLite catalog, optionally renaming them
  after their tags.
- Reporting duplicate tracks and lower quality copies, with interactive cleanup.
- Repairing playlist entries that point at missing files by fuzzy matching
  against the catalog.
- Listing, exporting and summarizing the catalog.
"""

__version__ = "0.3.0"
