"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from livestream_dl import __version__
from livestream_dl.core.capture import CaptureSession
from livestream_dl.core.stopper import Stopper
from livestream_dl.media.probe import MediaTools
from livestream_dl.models.stats import CaptureStats
from livestream_dl.net.client import HttpClient
from livestream_dl.storage.config_manager import ConfigManager
from livestream_dl.utils.path import create_dir, default_output_dir, is_non_empty_dir

from .formatters import print_config, print_summary_panel, prompt_for_variant

LOG_LEVEL_ENV = "LIVESTREAM_DL_LOG"

console = Console()


def _default_log_level() -> str:
    level = os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper()
    return level if isinstance(logging.getLevelName(level), int) else "INFO"


logging.basicConfig(
    level="WARNING",
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
log = logging.getLogger("livestream_dl")
log.setLevel(_default_log_level())

app = typer.Typer(
    name="livestream-dl",
    help=(
        "Capture live HLS streams: follows the playlist, downloads and decrypts"
        " every segment, then muxes the tracks with ffmpeg."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "livestream-dl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Enable debug logging.",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Live HLS stream downloader"""
    if version:
        console.print(f"[bold]livestream-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 1:
        log.setLevel("DEBUG")

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _resolve_output_dir(output: Path | None, assume_yes: bool) -> Path:
    if output is None:
        return default_output_dir(Path.cwd())
    if is_non_empty_dir(output) and not assume_yes:
        if not typer.confirm(
            f"Output directory '{output}' is not empty. Files in it may be overwritten."
            " Continue?"
        ):
            raise typer.Abort()
    return output


@app.command(name="download")
def download_command(
    url: str = typer.Argument(..., help="URL of a master or media .m3u8 playlist."),
    output: Path | None = typer.Option(  # noqa: B008
        None,
        "-o",
        "--output",
        help="Output directory (default: ./<YYYYMMDD>-stream-download).",
    ),
    assume_yes: bool = typer.Option(
        False, "-y", "--yes", help="Do not ask before writing into a non-empty directory."
    ),
    choose_stream: bool = typer.Option(
        False, "--choose-stream", help="Pick the variant interactively instead of the best."
    ),
    no_remux: bool = typer.Option(
        False, "--no-remux", help="Only download segments, skip concatenation and muxing."
    ),
    # --- Network Options ---
    concurrency: int | None = typer.Option(
        None, "-c", "--concurrency", help="Maximum concurrent segment downloads."
    ),
    max_retries: int | None = typer.Option(
        None, "--retries", help="Retries for transient network errors."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Timeout in seconds for a single request."
    ),
    retry_min_delay: float | None = typer.Option(
        None, "--retry-min-delay", help="Minimum delay in seconds between retries."
    ),
    retry_max_delay: float | None = typer.Option(
        None, "--retry-max-delay", help="Maximum delay in seconds between retries."
    ),
    cookies: Path | None = typer.Option(  # noqa: B008
        None, "--cookies", help="Netscape format cookie file."
    ),
    copy_query: bool | None = typer.Option(
        None,
        "--copy-query/--no-copy-query",
        help="Append the query string of URL to every request.",
    ),
    user_agent: str | None = typer.Option(None, "--user-agent", help="User-Agent header."),
    # --- Capture Behavior Options ---
    fail_fast: bool | None = typer.Option(
        None,
        "--fail-fast/--no-fail-fast",
        help="Stop every track as soon as one playlist fails.",
    ),
    segment_retries: int | None = typer.Option(
        None,
        "--segment-retries",
        help="Extra attempts for a failed segment before it is dropped.",
    ),
    init_cache_size: int | None = typer.Option(
        None,
        "--init-cache-size",
        help="Number of initialization segments to keep (default: concurrency).",
    ),
    # --- External Tools ---
    ffmpeg_path: str | None = typer.Option(None, "--ffmpeg", help="Path to ffmpeg."),
    ffprobe_path: str | None = typer.Option(None, "--ffprobe", help="Path to ffprobe."),
):
    """Capture a live stream until it ends or Ctrl-C is pressed."""
    output_dir = _resolve_output_dir(output, assume_yes)

    cli_options = {
        "url": url,
        "output_dir": str(output_dir),
        "choose_stream": choose_stream,
        "no_remux": no_remux,
        "max_concurrent_downloads": concurrency,
        "max_retries": max_retries,
        "timeout": timeout,
        "retry_min_delay": retry_min_delay,
        "retry_max_delay": retry_max_delay,
        "cookies": str(cookies) if cookies else None,
        "copy_query": copy_query,
        "user_agent": user_agent,
        "fail_fast": fail_fast,
        "segment_retries": segment_retries,
        "init_cache_size": init_cache_size,
        "ffmpeg_path": ffmpeg_path,
        "ffprobe_path": ffprobe_path,
    }
    config = ConfigManager(CONFIG_FILE).load_config(cli_options)

    tools = MediaTools.from_config(config)
    tools.check_available(need_ffmpeg=not config.no_remux)

    async def _download_async():
        stopper = Stopper()
        stats = CaptureStats()
        try:
            create_dir(output_dir)
            console.print(f"[bold cyan]📺 Capturing into {output_dir}[/bold cyan]")
            async with HttpClient.from_config(config) as client:
                session = CaptureSession(
                    config,
                    client,
                    tools,
                    stopper=stopper,
                    stats=stats,
                    chooser=prompt_for_variant if config.choose_stream else None,
                )
                await session.run_interruptible(output_dir)
        finally:
            print_summary_panel(stats, stats.elapsed, interrupted=stopper.stopped())

    try:
        asyncio.run(_download_async())
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Capture interrupted.[/yellow]")
        raise typer.Exit(code=130) from None


@app.command(name="config")
def config_command(
    init: bool = typer.Option(
        False, "--init", help="Write a configuration file with the default settings."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing file without asking."
    ),
):
    """Show or initialize the configuration file."""
    config_manager = ConfigManager(CONFIG_FILE)

    if init:
        if CONFIG_FILE.exists() and not force and not typer.confirm(
            "Configuration file already exists. Overwrite it with the defaults?"
        ):
            raise typer.Abort()
        config_manager.save_new_config()
        console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
        return

    if not CONFIG_FILE.is_file():
        console.print(
            "[yellow]No configuration file found.[/yellow] Built-in defaults are used;"
            " run [cyan]livestream-dl config --init[/cyan] to create one."
        )
        raise typer.Exit()

    print_config(CONFIG_FILE, config_manager.stored_settings())
