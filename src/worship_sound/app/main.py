"""CLI entry point for worship-sound.

Provides the `worship-sound` command: search and browse spiritual tracks
from the Deezer catalog and play their previews. This module is the
composition root: it builds one client, classifier, orchestrator and
playback engine per invocation from the loaded configuration.
"""

import asyncio
import queue
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn, TimeRemainingColumn
from rich.table import Table

from worship_sound import __version__
from worship_sound.app.config import AppConfig, ensure_app_config_exists, get_app_config_path
from worship_sound.app.errors import ErrorKind
from worship_sound.app.logging_config import setup_logging
from worship_sound.app.models import (
    Empty,
    Failed,
    Found,
    PlaybackFailed,
    PlaybackState,
    ProgressChanged,
    SearchOutcome,
    SearchRequest,
    StateChanged,
    Track,
)
from worship_sound.app.services.audio_backend import MiniaudioBackend
from worship_sound.app.services.catalog import CatalogService
from worship_sound.app.services.classifier import SpiritualClassifier
from worship_sound.app.services.deezer import DeezerClient
from worship_sound.app.services.playback import PlaybackEngine
from worship_sound.app.services.search import SearchOrchestrator

app = typer.Typer(
    name="worship-sound",
    help="Worship Sound - discover and preview spiritual music",
    no_args_is_help=True,
)
console = Console()

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to config file")


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
    ),
) -> None:
    """Worship Sound - discover and preview spiritual music."""
    if version:
        console.print(f"worship-sound version {__version__}")
        raise typer.Exit()


def _load_config(config_path: Optional[Path]) -> AppConfig:
    """Load config from an explicit path or the default location, then start logging."""
    try:
        config = AppConfig.load(config_path) if config_path else ensure_app_config_exists()
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(1)

    logger = setup_logging(config.log_dir)
    logger.info(f"API: {config.api_base_url}")
    return config


def build_orchestrator(config: AppConfig, classifier: SpiritualClassifier) -> SearchOrchestrator:
    """Build the search orchestrator for a configuration."""
    client = DeezerClient(base_url=config.api_base_url, timeout=config.timeout_seconds)
    return SearchOrchestrator(client, classifier, fallback_limit=config.fallback_limit)


def build_engine(config: AppConfig) -> PlaybackEngine:
    """Build the playback engine for a configuration."""
    backend = MiniaudioBackend(volume=config.volume, buffer_ms=config.buffer_ms, timeout=config.timeout_seconds)
    return PlaybackEngine(backend, progress_interval_ms=config.progress_interval_ms)


def _render_tracks(tracks: list[Track], catalog: CatalogService, title: str) -> None:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Artist", style="cyan")
    table.add_column("Album")
    table.add_column("Length", justify="right")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Match")

    for index, item in enumerate(catalog.annotate(tracks), start=1):
        track = item.track
        table.add_row(
            str(index),
            track.title,
            track.artist_name,
            track.album_title,
            track.formatted_duration,
            str(item.spiritual_score),
            item.score_label,
        )

    console.print(table)


def _report_outcome(outcome: Optional[SearchOutcome], catalog: CatalogService, title: str) -> None:
    """Print an outcome; exit non-zero unless tracks were found."""
    if isinstance(outcome, Found):
        _render_tracks(outcome.tracks, catalog, title)
        console.print(
            f"[dim]{outcome.kept_after_filter} spiritual track(s) kept from {outcome.total_returned} returned[/dim]"
        )
        return

    if isinstance(outcome, Empty):
        console.print(f"[yellow]{outcome.reason}[/yellow]")
    elif isinstance(outcome, Failed):
        hint = {
            ErrorKind.TRANSPORT: "Check your connection and try again.",
            ErrorKind.DECODING: "The search service sent an unexpected response.",
            ErrorKind.INVALID_QUERY: "Enter a search term.",
        }[outcome.error_kind]
        console.print(f"[red]Search failed: {outcome.message}[/red]\n{hint}")
    else:
        console.print("[yellow]Search was cancelled[/yellow]")
    raise typer.Exit(1)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search terms"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of results to request"),
    offset: int = typer.Option(0, "--offset", help="Starting index for pagination"),
    min_score: Optional[int] = typer.Option(
        None,
        "--min-score",
        min=0,
        max=100,
        help="Only keep tracks with at least this spiritual score",
    ),
    high_quality: bool = typer.Option(
        False,
        "--high-quality",
        "-q",
        help="Only keep tracks reaching the configured minimum score",
    ),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Search spiritual tracks."""
    config = _load_config(config_path)
    classifier = SpiritualClassifier()
    orchestrator = build_orchestrator(config, classifier)

    if min_score is None and high_quality:
        min_score = config.minimum_score

    if min_score is None:
        request = SearchRequest(query, limit or config.default_limit, offset)
        coro = orchestrator.search(request.raw_query, request.limit, request.offset)
    else:
        request = SearchRequest(query, limit or config.high_quality_limit, offset)
        coro = orchestrator.high_quality_search(request.raw_query, min_score, request.limit, request.offset)

    with console.status(f"Searching for [bold]{query}[/bold]..."):
        outcome = asyncio.run(coro)

    _report_outcome(outcome, CatalogService(classifier), f'Results for "{query}"')


@app.command()
def trending(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of results to request"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Show trending spiritual tracks."""
    config = _load_config(config_path)
    classifier = SpiritualClassifier()
    orchestrator = build_orchestrator(config, classifier)

    with console.status("Loading trending worship music..."):
        outcome = asyncio.run(orchestrator.trending(limit or config.default_limit))

    _report_outcome(outcome, CatalogService(classifier), "Trending")


def _play_until_done(engine: PlaybackEngine, track: Track) -> bool:
    """Play a track, rendering progress until it ends, fails or Ctrl+C.

    Returns:
        True unless playback failed
    """
    events: queue.Queue = queue.Queue()
    engine.set_listener(events.put)
    failure: Optional[str] = None

    with Progress(
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TimeRemainingColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task(f"{track.title} - {track.artist_name}", total=None)
        engine.play(track)
        try:
            while True:
                event = events.get()
                if isinstance(event, ProgressChanged):
                    progress.update(task_id, completed=event.position_ms, total=event.duration_ms or None)
                elif isinstance(event, PlaybackFailed):
                    failure = event.message
                elif isinstance(event, StateChanged):
                    if event.state == PlaybackState.PLAYING:
                        progress.update(task_id, total=engine.duration_ms or None)
                    elif event.state in (PlaybackState.IDLE, PlaybackState.ERROR):
                        break
        except KeyboardInterrupt:
            engine.stop()
            console.print("\n[yellow]Stopped[/yellow]")
        finally:
            engine.release()

    if failure:
        console.print(f"[red]Playback failed: {failure}[/red]")
        return False
    return True


@app.command()
def play(
    query: str = typer.Argument(..., help="Search terms"),
    index: int = typer.Option(1, "--index", "-i", min=1, help="Which search result to play"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Search and play the preview of one result."""
    config = _load_config(config_path)
    classifier = SpiritualClassifier()
    orchestrator = build_orchestrator(config, classifier)

    request = SearchRequest(query, config.default_limit)
    with console.status(f"Searching for [bold]{query}[/bold]..."):
        outcome = asyncio.run(orchestrator.search(request.raw_query, request.limit, request.offset))

    if not isinstance(outcome, Found):
        _report_outcome(outcome, CatalogService(classifier), query)
        return

    if index > len(outcome.tracks):
        console.print(f"[red]Only {len(outcome.tracks)} result(s) found[/red]")
        raise typer.Exit(1)

    track = outcome.tracks[index - 1]
    console.print(
        Panel.fit(
            f"[bold]{track.title}[/bold]\n{track.artist_name} - {track.album_title}\n"
            f"[dim]Spiritual score: {classifier.calculate_spiritual_score(track)}[/dim]",
            title="Now playing",
            border_style="green",
        )
    )

    if not _play_until_done(build_engine(config), track):
        raise typer.Exit(1)


@app.command()
def config(
    show: bool = typer.Option(True, "--show/--no-show", help="Show current configuration"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Create or show the configuration file."""
    path = config_path or get_app_config_path()
    if not path.exists():
        AppConfig().save(path)
        console.print(f"[green]Created default config at {path}[/green]")

    if show:
        settings = AppConfig.load(path)
        console.print(f"[bold]Config file:[/bold] {path}")
        console.print(f"[bold]API:[/bold] {settings.api_base_url} (timeout {settings.timeout_seconds}s)")
        console.print(
            f"[bold]Search:[/bold] limit {settings.default_limit}, fallback {settings.fallback_limit}, "
            f"min score {settings.minimum_score}"
        )
        console.print(f"[bold]Playback:[/bold] volume {settings.volume}, tick {settings.progress_interval_ms}ms")
        console.print(f"[bold]Log dir:[/bold] {settings.log_dir}")


def cli_entry() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli_entry()
