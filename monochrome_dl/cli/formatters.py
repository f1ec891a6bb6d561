"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from monochrome_dl.models.catalog import Artist, Release
from monochrome_dl.models.config import DownloadConfig
from monochrome_dl.models.stats import DownloadStats
from monochrome_dl.utils.formatting import (
    format_duration,
    format_release_label,
    format_size,
)

SUGGESTIONS = {
    "AuthError": [
        "• The instance rejected the request; it may require credentials.",
        "• Point --api-url at a different instance, or unset MONOCHROME_API_URL.",
    ],
    "UnsupportedStreamError": [
        "• Only direct stream URLs can be downloaded.",
        "• Try quality LOSSLESS with -q, or another release.",
    ],
    "ExhaustedInstancesError": [
        "• Every known instance failed for this request.",
        "• Check your internet connection.",
        "• Pass --instances-url (or set MONOCHROME_INSTANCES_URL) to load a current instance list.",
        "• Increase --track-delay if you are being rate limited.",
    ],
    "ConfigurationError": [
        "• Check the values in your configuration file and MONOCHROME_* variables.",
        "• Run `monochrome-dl init --force` to write a fresh default config.",
    ],
    "InvalidRequestError": [
        "• The instance rejected the request parameters.",
        "• Double-check the album or artist ID.",
    ],
    "DownloadIOError": [
        "• Check that the output directory is writable and has free space.",
    ],
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions = SUGGESTIONS.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(console: Console, config_path: Path, config: DownloadConfig):
    """Displays the effective configuration."""
    content = ""
    for key, value in config.model_dump(exclude={"config_path"}).items():
        if hasattr(value, "value"):
            value = value.value
        content += f"{key} = {value if value is not None else ''}\n"

    console.print(
        Panel(
            escape(content.strip()),
            title=f"Configuration ([dim]{escape(str(config_path))}[/dim])",
            border_style="cyan",
        )
    )


def print_artist_list(console: Console, artists: Sequence[Artist]):
    table = Table(box=box.SIMPLE, show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Artist", style="cyan")
    table.add_column("ID", style="dim")
    for i, artist in enumerate(artists, 1):
        table.add_row(str(i), escape(artist.name), artist.id)
    console.print(table)


def print_release_table(console: Console, artist_name: str, releases: Sequence[Release]):
    """Lists releases as ``n. [Album] Title (year)``."""
    table = Table(
        title=f"Releases by {escape(artist_name)} (Albums, EPs, Singles)",
        box=box.SIMPLE,
        show_header=False,
    )
    table.add_column(style="dim", justify="right")
    table.add_column()
    for i, release in enumerate(releases, 1):
        table.add_row(
            f"{i}.",
            escape(
                format_release_label(
                    release.release_type.label, release.title, release.year
                )
            ),
        )
    console.print(table)


def print_summary_panel(console: Console, stats: DownloadStats, duration_s: float):
    """Displays the final summary of the download session."""
    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.tracks_downloaded}[/bold green]"
    )

    skip_sections = []
    if stats.tracks_skipped_exists > 0:
        skip_sections.append(f"[yellow]{stats.tracks_skipped_exists} (exists)[/yellow]")
    if stats.tracks_skipped_unavailable > 0:
        skip_sections.append(
            f"[yellow]{stats.tracks_skipped_unavailable} (unavailable)[/yellow]"
        )
    if skip_sections:
        stats_table.add_row("○ Skipped:", " + ".join(skip_sections))

    if stats.releases_skipped > 0:
        stats_table.add_row(
            "⚠ Releases Skipped:", f"[yellow]{stats.releases_skipped}[/yellow]"
        )

    if stats.tracks_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.tracks_failed}[/bold red]")

    stats_table.add_row("", "")
    stats_table.add_row("Releases:", str(len(stats.releases_processed)))
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    avg_speed = stats.total_size_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row(
        "Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    border_color = "red" if stats.tracks_failed and not stats.tracks_downloaded else "green"
    console.print()
    console.print(
        Panel(
            stats_table,
            title="🎵 [bold]Download Complete![/bold]",
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )

    if stats.failures:
        console.print("[bold red]Failed tracks:[/bold red]")
        for failure in stats.failures:
            console.print(f"  [red]✗[/red] {escape(failure.title)} [dim]({escape(failure.error)})[/dim]")
    console.print()


def print_template_help(console: Console):
    """Displays the naming template placeholders."""
    ph_table = Table(
        box=box.ROUNDED,
        title="[bold]Naming Template Placeholders[/bold]",
        title_style="",
    )
    ph_table.add_column("Placeholder", style="bold magenta", no_wrap=True)
    ph_table.add_column("Description")
    ph_table.add_column("Example")

    rows: list[tuple[str, str, Any]] = [
        ("{trackNumber}", "Track number, zero-padded to two digits.", "'03'"),
        ("{artist}", "Primary track artist.", "'Artist A'"),
        ("{title}", "Track title including its version.", "'Song (Live)'"),
        ("{album}", "Album title.", "'The Album'"),
        ("{albumArtist}", "Primary album artist.", "'The Main Band'"),
        ("{albumTitle}", "Album title (folder template).", "'The Album'"),
        ("{year}", "Four-digit release year.", "'1999'"),
    ]
    for placeholder, description, example in rows:
        ph_table.add_row(escape(placeholder), description, example)

    console.print(ph_table)
    console.print(
        "[dim]Every value is sanitized: \\ / : * ? \" < > | become '_' and runs of"
        " whitespace collapse to one space.[/dim]"
    )
