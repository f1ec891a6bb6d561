"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from monochrome_dl import __version__
from monochrome_dl.api.client import MonochromeAPIClient, create_client
from monochrome_dl.core.download_manager import DownloadManager
from monochrome_dl.exceptions import ConfigurationError, MonochromeError
from monochrome_dl.media.downloader import close_connection_pool
from monochrome_dl.models.catalog import Artist, Release, Track
from monochrome_dl.models.config import DownloadConfig
from monochrome_dl.storage.config_manager import ConfigManager, get_config_dir
from monochrome_dl.utils.selection import parse_selection

from .formatters import (
    print_artist_list,
    print_config,
    print_release_table,
    print_summary_panel,
    print_template_help,
)
from .status import RichStatusReporter

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("monochrome_dl")

app = typer.Typer(
    name="monochrome-dl",
    help=(
        "Search artists and download albums, EPs and singles from Monochrome API"
        " instances. Use 'monochrome-dl <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: Optional[dict] = None) -> DownloadConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except ConfigurationError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the effective configuration."
    ),
    template_help: bool = typer.Option(
        False,
        "--template-help",
        help="Show the naming template placeholders and exit.",
        is_eager=True,
    ),
):
    """Monochrome downloader CLI"""
    if template_help:
        print_template_help(console)
        raise typer.Exit()

    if version:
        console.print(f"[bold]monochrome-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("monochrome_dl").setLevel(log_level)

    if show_config:
        print_config(console, CONFIG_FILE, _load_config())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a configuration file with the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config()
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]monochrome-dl download <ARTIST>[/cyan]")


@app.command()
def search(
    artist: List[str] = typer.Argument(..., help="Artist name to search for."),  # noqa: B008
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Use this single API instance instead of the built-in list."
    ),
):
    """Search for artists by name."""
    query = " ".join(artist).strip()
    config = _load_config({"api_url": api_url})

    async def _search_async():
        with RichStatusReporter(console) as reporter:
            client = create_client(config, reporter=reporter)
            try:
                console.print(f"Searching for \"{escape(query)}\"...")
                artists = await client.search_artists(query)
            finally:
                await client.close()
        if not artists:
            console.print("[yellow]No artists found.[/yellow]")
            return
        print_artist_list(console, artists)

    asyncio.run(_search_async())


async def _ask(question: str, default: str = "") -> str:
    answer = await asyncio.to_thread(
        typer.prompt, question, default=default, show_default=bool(default)
    )
    return (answer or "").strip()


async def _pick_artist(artists: List[Artist]) -> Artist:
    artist = artists[0]
    if len(artists) > 1:
        console.print("\n[bold]Artists found:[/bold]")
        print_artist_list(console, artists)
        if sys.stdin.isatty():
            pick = await _ask(f"Pick artist (1-{len(artists)})", default="1")
            selected = parse_selection(pick, len(artists))
            if selected:
                artist = artists[selected[0] - 1]
    return artist


async def _choose_releases(
    releases: List[Release], select: Optional[str]
) -> List[Release]:
    if select is None:
        if not sys.stdin.isatty():
            console.print("\n[dim]Skipping download (non-interactive). Use --select.[/dim]")
            return []
        select = await _ask(
            "\nDownload: all, or numbers e.g. 1,3,5 or 1-4", default="skip"
        )
    if not select or select.lower() == "skip":
        console.print("Skipping download.")
        return []
    indices = parse_selection(select, len(releases))
    if not indices:
        console.print("[yellow]No valid selection.[/yellow]")
    return [releases[i - 1] for i in indices]


def _make_progress_printer(reporter: RichStatusReporter):
    def on_track_done(current: int, total: int, track: Track) -> None:
        reporter.clear()
        console.print(f"    [dim]{current}/{total}[/dim] {escape(track.display_title)}")

    return on_track_done


async def _run_downloads(
    client: MonochromeAPIClient,
    config: DownloadConfig,
    reporter: RichStatusReporter,
    release_ids: List[str],
) -> DownloadManager:
    manager = DownloadManager(config, client, reporter=reporter)
    console.print(
        f"\nSaving to [cyan]{escape(str(config.download_dir))}[/cyan] "
        f"(quality: {config.quality.label})\n"
    )
    await manager.download_releases(
        release_ids, progress_callback=_make_progress_printer(reporter)
    )
    reporter.clear()
    return manager


async def _refresh_instances(client: MonochromeAPIClient, config: DownloadConfig) -> None:
    if not config.instances_url or config.api_url:
        return
    console.print(f"[dim]Loading instance list from {escape(config.instances_url)}...[/dim]")
    if not await client.refresh_instances(config.instances_url):
        console.print("[yellow]Keeping the built-in instance list.[/yellow]")


def _download_options(
    quality: Optional[str],
    output: Optional[Path],
    track_delay: Optional[int],
    release_delay: Optional[int],
    api_url: Optional[str],
    instances_url: Optional[str] = None,
) -> dict:
    return {
        "quality": quality,
        "download_dir": output,
        "track_delay_ms": track_delay,
        "release_delay_ms": release_delay,
        "api_url": api_url,
        "instances_url": instances_url,
    }


QUALITY_OPTION = typer.Option(
    None,
    "-q",
    "--quality",
    help="HI_RES_LOSSLESS, LOSSLESS, HIGH or LOW (aliases such as 'hifi' work too).",
)
OUTPUT_OPTION = typer.Option(
    None, "-o", "--output", help="Root directory for downloads."
)
TRACK_DELAY_OPTION = typer.Option(
    None, "--track-delay", help="Milliseconds to wait between tracks."
)
RELEASE_DELAY_OPTION = typer.Option(
    None, "--release-delay", help="Milliseconds to wait between releases."
)
API_URL_OPTION = typer.Option(
    None, "--api-url", help="Use this single API instance instead of the built-in list."
)
INSTANCES_URL_OPTION = typer.Option(
    None,
    "--instances-url",
    help="Load the instance list from this JSON document before starting.",
)


@app.command(name="download")
def download_command(
    artist: Optional[List[str]] = typer.Argument(  # noqa: B008
        None, help="Artist name to search for (prompted if omitted)."
    ),
    quality: Optional[str] = QUALITY_OPTION,
    output: Optional[Path] = OUTPUT_OPTION,
    track_delay: Optional[int] = TRACK_DELAY_OPTION,
    release_delay: Optional[int] = RELEASE_DELAY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    instances_url: Optional[str] = INSTANCES_URL_OPTION,
    select: Optional[str] = typer.Option(
        None,
        "--select",
        help="Releases to download without prompting: 'all', '1,3,5' or '1-4'.",
    ),
):
    """Search an artist, pick releases and download them."""
    config = _load_config(
        _download_options(
            quality, output, track_delay, release_delay, api_url, instances_url
        )
    )
    query = " ".join(artist or []).strip()
    if not query:
        if not sys.stdin.isatty():
            console.print("[red]✗ No artist name given.[/red]")
            raise typer.Exit(code=1)
        query = typer.prompt("Artist name?", default="", show_default=False).strip()
        if not query:
            console.print("No artist name given. Exiting.")
            raise typer.Exit()

    async def _download_async() -> Optional[DownloadManager]:
        with RichStatusReporter(console) as reporter:
            client = create_client(config, reporter=reporter)
            try:
                await _refresh_instances(client, config)

                console.print(f"Searching for \"{escape(query)}\"...")
                artists = await client.search_artists(query)
                if not artists:
                    console.print("[yellow]No artists found.[/yellow]")
                    return None
                chosen = await _pick_artist(artists)

                reporter.report_transient(f"Fetching releases for {chosen.name}...")
                discography = await client.get_artist(chosen.id)
                reporter.clear()
                releases = discography.releases
                if not releases:
                    console.print("[yellow]No albums or EPs found for this artist.[/yellow]")
                    return None
                print_release_table(console, chosen.name, releases)

                selected = await _choose_releases(releases, select)
                if not selected:
                    return None
                return await _run_downloads(
                    client, config, reporter, [r.id for r in selected]
                )
            finally:
                await close_connection_pool()
                await client.close()

    start_time = time.monotonic()
    manager = asyncio.run(_download_async())
    if manager:
        print_summary_panel(console, manager.stats, time.monotonic() - start_time)
        if manager.stats.tracks_failed and not manager.stats.tracks_downloaded:
            raise typer.Exit(code=1)


@app.command(name="album")
def album_command(
    album_ids: List[str] = typer.Argument(..., help="One or more album IDs."),  # noqa: B008
    quality: Optional[str] = QUALITY_OPTION,
    output: Optional[Path] = OUTPUT_OPTION,
    track_delay: Optional[int] = TRACK_DELAY_OPTION,
    release_delay: Optional[int] = RELEASE_DELAY_OPTION,
    api_url: Optional[str] = API_URL_OPTION,
    instances_url: Optional[str] = INSTANCES_URL_OPTION,
):
    """Download releases directly by album ID."""
    config = _load_config(
        _download_options(
            quality, output, track_delay, release_delay, api_url, instances_url
        )
    )

    async def _album_async() -> DownloadManager:
        with RichStatusReporter(console) as reporter:
            client = create_client(config, reporter=reporter)
            try:
                await _refresh_instances(client, config)
                return await _run_downloads(client, config, reporter, album_ids)
            finally:
                await close_connection_pool()
                await client.close()

    start_time = time.monotonic()
    try:
        manager = asyncio.run(_album_async())
    except MonochromeError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e
    print_summary_panel(console, manager.stats, time.monotonic() - start_time)
    if manager.stats.tracks_failed and not manager.stats.tracks_downloaded:
        raise typer.Exit(code=1)
