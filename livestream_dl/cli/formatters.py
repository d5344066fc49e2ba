"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, List

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt
from rich.table import Table
from rich.text import Text

from livestream_dl.core.playlist import Variant
from livestream_dl.models.stats import CaptureStats
from livestream_dl.utils.formatting import format_bitrate, format_duration, format_size


def _error_chain(error: BaseException) -> List[BaseException]:
    """Follows `__cause__` / `__context__` from the outermost error inwards."""
    chain = []
    seen = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        chain.append(current)
        seen.add(id(current))
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )
    return chain


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error, its causes and actionable suggestions into a Rich Panel."""
    chain = _error_chain(error)

    suggestions_map = {
        "NetworkError": [
            "• Check that the playlist URL is still live and reachable.",
            "• Some servers require cookies; pass a cookie file with --cookies.",
            "• Signed URLs may need --copy-query to authorize segment requests.",
        ],
        "ParsePlaylistError": [
            "• Make sure the URL points at an .m3u8 playlist, not a web page.",
            "• Run the command with -v to see the fetched playlist URLs.",
        ],
        "EncryptionError": [
            "• Only AES-128 encrypted streams are supported.",
            "• Streams using SAMPLE-AES or DRM key formats cannot be captured.",
        ],
        "ExternalToolError": [
            "• Install ffmpeg and make sure ffmpeg and ffprobe are on your PATH.",
            "• Use --ffmpeg / --ffprobe to point at custom binaries.",
        ],
        "RemuxError": [
            "• The raw segments were kept in the 'segments' directory.",
            "• Rerun with --no-remux to skip muxing, or mux them manually.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `livestream-dl config --init` to write a fresh default file.",
        ],
        "TimeoutError": [
            "• The server is slow to respond; try a larger --timeout.",
            "• Lower --concurrency if the server is throttling requests.",
        ],
    }

    suggestions: List[str] = []
    for exc in chain:
        suggestions = suggestions_map.get(type(exc).__name__, [])
        if suggestions:
            break
    if not suggestions:
        suggestions = ["• Run the command with -v for detailed logs."]

    error_text = Text()
    error_text.append(f"{type(error).__name__}: ", style="bold red")
    error_text.append(str(error))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)

    if len(chain) > 1:
        cause_text = Text()
        for depth, cause in enumerate(chain[1:], 1):
            cause_text.append(f"{'  ' * depth}↳ caused by ", style="dim")
            cause_text.append(f"{type(cause).__name__}: ", style="red")
            cause_text.append(f"{cause}\n")
        cause_text.rstrip()
        content.add_row(cause_text)

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


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the stored configuration."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim](empty)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def prompt_for_variant(variants: List[Variant]) -> Variant:
    """Lists the variants of a master playlist and asks which one to capture."""
    console = Console()
    table = Table(box=box.ROUNDED, title="[bold]Available Streams[/bold]")
    table.add_column("#", style="bold magenta", justify="right")
    table.add_column("Bitrate", style="cyan", justify="right")
    table.add_column("Resolution")
    table.add_column("Codecs", style="dim")

    for index, variant in enumerate(variants, 1):
        resolution = (
            f"{variant.resolution[0]}x{variant.resolution[1]}" if variant.resolution else "-"
        )
        table.add_row(
            str(index), format_bitrate(variant.bandwidth), resolution, variant.codecs or "-"
        )
    console.print(table)

    choice = IntPrompt.ask(
        "Select a stream",
        choices=[str(i) for i in range(1, len(variants) + 1)],
        default=1,
        console=console,
    )
    return variants[choice - 1]


def print_summary_panel(stats: CaptureStats, duration_s: float, interrupted: bool = False):
    """Displays the final summary of the capture session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Segments:", f"[bold green]{stats.segments_downloaded}[/bold green]"
    )
    for track_name, count in stats.segments_per_track.items():
        stats_table.add_row(f"{track_name}:", f"[green]{count}[/green]")

    if stats.segments_failed > 0:
        stats_table.add_row("✗ Dropped:", f"[bold red]{stats.segments_failed}[/bold red]")
    if stats.pollers_failed > 0:
        stats_table.add_row(
            "✗ Failed Tracks:", f"[bold red]{stats.pollers_failed}[/bold red]"
        )

    stats_table.add_row("", "")  # Spacer

    stats_table.add_row("Total Size:", f"[cyan]{format_size(stats.bytes_written)}[/cyan]")
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.muxed_files:
        stats_table.add_row("", "")  # Spacer
        for path in stats.muxed_files:
            stats_table.add_row("Output:", f"[magenta]{path}[/magenta]")

    if stats.pollers_failed > 0:
        title = "✗ [bold]Capture Failed[/bold]"
        border_color = "red"
    elif interrupted:
        title = "⏹ [bold]Capture Stopped[/bold]"
        border_color = "yellow"
    else:
        title = "📺 [bold]Capture Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )

    console.print()
