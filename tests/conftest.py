from pathlib import Path
from typing import Callable, Dict, Sequence

import pytest

from apollo.database import CatalogStore
from apollo.metadata import EMPTY_TAGS, TrackTags
from apollo.prompts import CANCELLED


class ScriptedChooser:
    """Chooser that replays canned answers and records what it was asked."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts: list[tuple[str, list[str]]] = []

    def choose(self, prompt: str, options: Sequence[str]):
        self.prompts.append((prompt, list(options)))
        if not self.answers:
            return CANCELLED
        answer = self.answers.pop(0)
        return answer(options) if callable(answer) else answer


class FakeTagReader:
    """Tag reader keyed by file name; unknown files read as untagged."""

    def __init__(self, tags: Dict[str, TrackTags]):
        self.tags = tags
        self.calls: list[Path] = []

    def __call__(self, path: Path) -> TrackTags:
        self.calls.append(Path(path))
        return self.tags.get(Path(path).name, EMPTY_TAGS)


@pytest.fixture
def store(tmp_path: Path):
    """Fresh catalog in a temporary directory."""
    catalog = CatalogStore.open(tmp_path / "catalog" / "apollo.db")
    yield catalog
    catalog.close()


@pytest.fixture
def library(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def make_file() -> Callable[..., Path]:
    """Create a file (and its parents) with placeholder content."""

    def _make(path: Path, content: str = "not really audio") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _make
