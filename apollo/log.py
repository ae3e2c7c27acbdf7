"""Logging setup for the apollo command line."""

import logging

from rich.logging import RichHandler

from .config import console


def setup_logging(log_level: str = "INFO") -> None:
    """Route all log records through a single rich handler.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = [
        h for h in root_logger.handlers if not isinstance(h, RichHandler)
    ]

    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root_logger.addHandler(handler)

    # Mutagen is chatty about malformed frames
    logging.getLogger("mutagen").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging initialized - Level: %s", log_level)
