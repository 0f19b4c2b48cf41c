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
from rich.markup import escape

from track_extractor import __version__
from track_extractor.core.orchestrator import ExtractionEngine
from track_extractor.core.packager import save_result
from track_extractor.exceptions import ExtractorError, ToolError
from track_extractor.media.channel import RawFiles
from track_extractor.media.context import ToolKind
from track_extractor.models.media import ExtractionMode, MediaFile
from track_extractor.storage.config_manager import ConfigManager
from track_extractor.utils.path import resolve_executable, validate_media_path
from track_extractor.utils.structured_logger import create_structured_logger

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_plan_table,
    print_streams_table,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

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
log = logging.getLogger("track_extractor")

app = typer.Typer(
    name="track-extractor",
    help=(
        "Extract subtitle and audio tracks from video files with ffmpeg. Use"
        " 'track-extractor <command> --help' for more info."
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
    return base_dir.expanduser() / "track-extractor"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"

_state: dict = {"log_dir": None}


def _load_config(cli_options: dict | None = None):
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except ExtractorError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


def _open_media(path: Path) -> MediaFile:
    try:
        return MediaFile.from_path(validate_media_path(path))
    except ExtractorError as e:
        console.print(format_error_with_suggestions(e))
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
        False, "--show-config", help="Display the current configuration."
    ),
    log_dir: Path | None = typer.Option(  # noqa: B008
        None, "--log-dir", help="Write JSON-lines job logs into this directory."
    ),
):
    """Track Extractor CLI"""
    if version:
        console.print(
            f"[bold]track-extractor[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("track_extractor").setLevel(log_level)
    _state["log_dir"] = log_dir

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[yellow]No config file found; defaults are in use.[/] Run"
                " [cyan]track-extractor init[/cyan] to create one."
            )
            raise typer.Exit()
        config_manager = ConfigManager(CONFIG_FILE)
        config_manager.load_config()
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {}
    for key, tool in (("ffmpeg_path", "ffmpeg"), ("ffprobe_path", "ffprobe")):
        if resolved := resolve_executable(tool):
            settings[key] = resolved
            console.print(f"[green]✓ Found {tool}:[/green] [dim]{resolved}[/dim]")
        else:
            console.print(
                f"[yellow]⚠️  {tool} not found on PATH; set '{key}' manually.[/yellow]"
            )

    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready! Try: [cyan]track-extractor extract <FILE>[/cyan]")


@app.command(name="extract")
def extract_command(
    file: Path = typer.Argument(..., help="Video file (MKV, MP4, AVI, WebM, MOV)."),  # noqa: B008
    mode: ExtractionMode = typer.Option(
        ExtractionMode.SUBTITLES,
        "-m",
        "--mode",
        help="What to extract.",
        case_sensitive=False,
    ),
    output_dir: Path | None = typer.Option(  # noqa: B008
        None, "-o", "--output", help="Directory for the extracted files."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Probe and plan only; do not extract anything."
    ),
):
    """Extract all subtitle or audio tracks from a video file."""
    cli_options = {"dry_run": dry_run}
    if output_dir is not None:
        cli_options["output_dir"] = str(output_dir)
    config = _load_config(cli_options)
    media = _open_media(file)

    async def _extract_async():
        log_dir = _state["log_dir"] or (
            Path(config.config_path) / "logs" if config.json_logs else None
        )
        base_logger, job_logger = create_structured_logger(
            log_dir, enable_json=log_dir is not None
        )
        engine = ExtractionEngine(config, job_logger=job_logger)
        try:
            if config.dry_run:
                probe, tasks = await engine.plan(media, mode)
                print_streams_table(media, probe)
                print_plan_table(tasks)
                return

            job = engine.create_job(media, mode)
            result = None
            async with ProgressManager(console, media.name) as progress:
                async for update in job.run():
                    progress.handle(update)
                    if update.error is not None:
                        raise update.error
                    result = update.result

            written = await save_result(result, Path(config.output_dir))
            print_summary_panel(job.stats, result, written)
        except ToolError as e:
            if e.diagnostics:
                log.debug(f"Last tool output:\n{escape(e.diagnostic_tail(10))}")
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        except ExtractorError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        except OSError as e:
            console.print(f"[bold red]Could not write output: {e}[/bold red]")
            raise typer.Exit(code=1) from e
        finally:
            base_logger.close()

    asyncio.run(_extract_async())


@app.command()
def probe(
    file: Path = typer.Argument(..., help="Video file to inspect."),  # noqa: B008
):
    """List the streams contained in a video file."""
    config = _load_config()
    media = _open_media(file)

    async def _probe_async():
        engine = ExtractionEngine(config)
        try:
            result = await engine.probe(media)
        except ExtractorError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        print_streams_table(media, result)

    asyncio.run(_probe_async())


@app.command()
def validate():
    """Validate the current configuration."""
    config = _load_config()
    print_validation_table(config)


@app.command()
def diagnose():
    """Diagnose tool availability and list the muxers ffmpeg supports."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False
    config = _load_config()
    if CONFIG_FILE.is_file():
        console.print(f"[green]✓[/] Config file exists at: [dim]{CONFIG_FILE}[/dim]")
    else:
        console.print("[yellow]○[/] No config file; using defaults.")

    for label, command in (("ffmpeg", config.ffmpeg_path), ("ffprobe", config.ffprobe_path)):
        if resolved := resolve_executable(command):
            console.print(f"[green]✓[/] {label} found: [dim]{resolved}[/dim]")
        else:
            console.print(f"[red]✗ {label} not found ('{command}').[/red]")
            issues_found = True

    async def _muxers_async() -> list[str]:
        engine = ExtractionEngine(config)
        output: RawFiles = await engine.new_channel().invoke(
            ToolKind.EXTRACT, ["-hide_banner", "-muxers"], timeout=30
        )
        return output.stdout

    if not issues_found:
        console.print("\n[dim]Querying available muxers...[/dim]")
        try:
            lines = asyncio.run(_muxers_async())
        except ToolError as e:
            console.print(f"[red]✗ Muxer query failed: {e}[/red]")
            issues_found = True
        else:
            available = {
                parts[1]
                for line in lines
                if len(parts := line.split()) >= 2 and "E" in parts[0]
            }
            for muxer in ("matroska", "mov", "mp4", "adts", "mp3", "srt"):
                mark = "[green]✓[/]" if muxer in available else "[red]✗[/]"
                console.print(f"  {mark} {muxer}")
                if muxer not in available:
                    issues_found = True

    console.print()
    if not issues_found:
        console.print(
            "[bold green]✓ All checks passed! Your setup looks good.[/bold green]\n"
        )
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)
