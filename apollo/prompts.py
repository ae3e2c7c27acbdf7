"""
Interactive choice between a handful of options.

Anything that needs a human decision (which duplicate to keep, which track
replaces a broken playlist entry) goes through a ``Chooser``. The terminal
implementation uses rich prompts; ``DefaultChooser`` answers without asking so
batch and test runs never block.
"""
from __future__ import annotations

import logging
from typing import Protocol, Sequence, Union

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from .config import console as default_console

logger = logging.getLogger(__name__)


class _Cancelled:
    def __repr__(self) -> str:
        return "CANCELLED"

    def __bool__(self) -> bool:
        return False


# Returned when the user declines to choose. A normal outcome, not an error.
CANCELLED = _Cancelled()

Choice = Union[str, _Cancelled]


class Chooser(Protocol):
    """Present options, receive one of them back or CANCELLED."""

    def choose(self, prompt: str, options: Sequence[str]) -> Choice:
        ...


class DefaultChooser:
    """Headless chooser that always gives the same answer (skip by default)."""

    def __init__(self, default: Choice = CANCELLED):
        self.default = default

    def choose(self, prompt: str, options: Sequence[str]) -> Choice:
        if self.default is not CANCELLED and self.default not in options:
            logger.debug(f"Default '{self.default}' not offered for: {prompt}")
            return CANCELLED
        return self.default


class RichChooser:
    """Numbered menu on the terminal.

    Callers include their own "Skip" entry in ``options``. Typing 's' or 'abort',
    Ctrl-C or EOF cancels.
    """

    def __init__(self, console: Console = default_console):
        self.console = console

    def choose(self, prompt: str, options: Sequence[str]) -> Choice:
        if not options:
            return CANCELLED
        self.console.print(f"\n[bold yellow]{escape(prompt)}[/bold yellow]")
        for i, option in enumerate(options, 1):
            self.console.print(f"  {i}) {option}", markup=False)
        try:
            answer = Prompt.ask(
                "Choice",
                choices=[str(i) for i in range(1, len(options) + 1)] + ["s", "abort"],
                show_choices=False,
                console=self.console,
            )
        except (KeyboardInterrupt, EOFError):
            self.console.print("[yellow]No selection made.[/yellow]")
            return CANCELLED
        if answer.isdigit():
            return options[int(answer) - 1]
        return CANCELLED
