import sys
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from .config import CONFIG_FILE, DEFAULTS, config, console, save_config
from .database import CatalogStore, open_store
from .duplicates import find_duplicates
from .errors import StorageError
from .export import export_tracks
from .log import setup_logging
from .matching import reconcile
from .prompts import Chooser, DefaultChooser, RichChooser
from .scanner import index_library
from .stats import collect_stats

app = typer.Typer(help="Keep a music library, its catalog and its playlists in sync.")
config_app = typer.Typer(help="Edit or show configuration")


def _chooser(no_input: bool) -> Chooser:
    if no_input or not sys.stdin.isatty():
        return DefaultChooser()
    return RichChooser(console)


def _open_catalog() -> CatalogStore:
    try:
        return CatalogStore.open(config["DB_PATH"])
    except StorageError as e:
        console.print(f"[bold red]{escape(str(e))}[/bold red]")
        raise typer.Exit(1)


def _fail(message: str) -> None:
    console.print(f"[bold red]{escape(message)}[/bold red]")
    raise typer.Exit(1)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="DEBUG, INFO, WARNING or ERROR (default from config)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Shortcut for --log-level DEBUG"),
):
    setup_logging("DEBUG" if verbose else (log_level or config["LOG_LEVEL"]))


@app.command()
def index(
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be moved but don't actually move files; playlist repair still runs",
    ),
    no_input: bool = typer.Option(
        False, "--no-input", help="Never prompt; broken playlist entries are skipped"
    ),
):
    """
    Index the music library, then index and repair playlists.

    Tracks whose files are gone are removed, new audio files are added (and
    moved to FILE_PATTERN when it is configured), and broken playlist entries
    are replaced with the closest catalogued track.
    """
    music_dir = config["MUSIC_DIRECTORY"]
    store = _open_catalog()
    try:
        index_library(store, music_dir, config["FILE_PATTERN"], dry_run=dry_run)
        report = reconcile(music_dir, store, chooser=_chooser(no_input))
    except StorageError as e:
        _fail(str(e))
    except OSError as e:
        _fail(f"Cannot index {music_dir}: {e}")
    finally:
        store.close()

    console.print(
        f"[green]{report.playlists} playlist(s) checked, "
        f"{len(report.repairs)} broken entr{'y' if len(report.repairs) == 1 else 'ies'} found.[/green]"
    )


@app.command()
def dupes(
    fix: bool = typer.Option(False, "--fix", help="Interactively fix duplicates"),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt; every group is skipped"),
):
    """Find duplicate tracks and lower quality copies."""
    store = _open_catalog()
    try:
        find_duplicates(store, fix=fix, chooser=_chooser(no_input))
    except StorageError as e:
        _fail(str(e))
    finally:
        store.close()


@app.command(name="ls")
def list_tracks():
    """List all tracks."""
    with _open_catalog() as store:
        tracks = store.query_tracks()
    table = Table("Track", "Artist", "Album")
    for track in tracks:
        table.add_row(escape(track.title), escape(track.artist), escape(track.album))
    console.print(table)


@app.command()
def export(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="CSV file to write (default: next to the database)"
    ),
):
    """Export tracks to CSV."""
    with _open_catalog() as store:
        csv_path = export_tracks(store, output)
    console.print(f"Exported tracks to {escape(str(csv_path))}", highlight=False)


@app.command()
def stats():
    """Show statistics."""
    music_dir = config["MUSIC_DIRECTORY"]
    try:
        with open_store(config["DB_PATH"]) as store:
            result = collect_stats(store, music_dir)
    except StorageError as e:
        _fail(str(e))

    console.print(f"Total tracks: {result.tracks}")
    console.print(f"Total artists: {result.artists}")
    console.print(f"Total albums: {result.albums}")
    console.print(f"Total size: {result.size}")
    console.print(f"Total time: {result.duration}")


@config_app.command(name="show")
def config_show():
    """Show current configuration values."""
    for k, v in config.items():
        console.print(f"[cyan]{k}[/cyan]=[white]{escape(str(v))}[/white]")


@config_app.command(name="edit")
def config_edit():
    """Run the interactive setup wizard and save the configuration."""
    console.print("[bold green]Let's set up apollo.[/bold green]")
    music_dir = Prompt.ask(
        "[bold]Music directory[/bold]", default=str(config["MUSIC_DIRECTORY"])
    ).strip()
    if not Path(music_dir).expanduser().is_dir():
        console.print(f"[yellow]Warning: '{escape(music_dir)}' is not a directory yet.[/yellow]")
    db_path = Prompt.ask("[bold]Database file[/bold]", default=str(config["DB_PATH"])).strip()
    file_pattern = Prompt.ask(
        "[bold]File naming pattern[/bold] [dim](blank to never move files)[/dim]",
        default=config["FILE_PATTERN"] or "",
    ).strip()

    new_config = {k: config[k] for k in DEFAULTS}
    new_config.update(
        MUSIC_DIRECTORY=music_dir,
        DB_PATH=db_path,
        FILE_PATTERN=file_pattern or None,
    )
    path = save_config(new_config, CONFIG_FILE)
    console.print(f"\n[bold green]✓ Configuration saved to {escape(str(path))}[/bold green]")


app.add_typer(config_app, name="config")


if __name__ == "__main__":
    app()
