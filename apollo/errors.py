"""
Exception types shared across apollo.

Only StorageError is fatal to a pass. Everything else is caught at item
granularity, logged, and the pass moves on to the next file or reference.
"""
import os
from pathlib import Path
from typing import Union


def printable(path: Union[str, Path]) -> str:
    """``path`` as text that always encodes; undecodable bytes show as ``\\xNN``."""
    return os.fsencode(path).decode("utf-8", "backslashreplace")


class ApolloError(Exception):
    """Base class for all apollo errors."""


class StorageError(ApolloError):
    """The catalog database cannot be opened, created or committed."""


class ExtractionFailure(ApolloError):
    """Tags or duration could not be read from an audio file."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot read {printable(self.path)}: {reason}")


class FilesystemFailure(ApolloError):
    """A single file cannot be moved, deleted or catalogued."""

    def __init__(self, path: Union[str, Path], error: Exception):
        self.path = str(path)
        self.error = error
        super().__init__(f"{printable(self.path)}: {error}")


class ReferenceUnresolved(ApolloError):
    """A broken playlist reference has no replacement candidate."""

    def __init__(self, playlist: Union[str, Path], reference: Union[str, Path]):
        self.playlist = str(playlist)
        self.reference = str(reference)
        super().__init__(
            f"No candidate for '{printable(self.reference)}' in {printable(self.playlist)}"
        )
