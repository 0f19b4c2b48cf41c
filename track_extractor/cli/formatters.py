"""
Functions for formatting and displaying data in the console using Rich.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from track_extractor.models.config import AUDIO_FORMATS, ExtractorConfig
from track_extractor.models.media import (
    ExtractionTask,
    JobResult,
    MediaFile,
    ProbeResult,
    StreamKind,
)
from track_extractor.models.stats import JobStats
from track_extractor.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "NoTracksFound": [
            "• Run `track-extractor probe <FILE>` to list the file's streams.",
            "• Try a different mode with -m (subtitles, audio-original, "
            "audio-transcription).",
        ],
        "ExtractionFailed": [
            "• The tool accepted the job but produced no usable output.",
            "• Run with -vv to see which formats were attempted.",
            "• Check `track-extractor diagnose` for missing muxers.",
        ],
        "ToolFailure": [
            "• ffmpeg/ffprobe exited with an error; the last lines of its output "
            "are shown above with -vv.",
            "• The file may be damaged or use an unsupported container.",
        ],
        "ToolTimeout": [
            "• The tool did not finish in time.",
            "• Raise `invocation_timeout` in the configuration for very large files.",
        ],
        "JobTimeout": [
            "• The whole job ran past `job_timeout`.",
            "• Raise `job_timeout` in the configuration.",
        ],
        "InvalidMediaFileError": [
            "• Supported containers: MKV, MP4, AVI, WebM, MOV.",
            "• Check the path and file name.",
        ],
        "ConfigurationError": [
            "• Run `track-extractor validate` to inspect your settings.",
            "• Run `track-extractor init --force` to restore defaults.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

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
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        if isinstance(value, list):
            value = ", ".join(value)
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            escape(content.strip()),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: ExtractorConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("ffmpeg:", config.ffmpeg_path)
    table.add_row("ffprobe:", config.ffprobe_path)
    table.add_row("Output Directory:", f"[dim]{escape(config.output_dir)}[/dim]")
    table.add_row(
        "Timeouts:",
        f"{config.invocation_timeout:g}s per call, {config.job_timeout:g}s per job",
    )
    table.add_row(
        "Fallback Formats:",
        " → ".join(
            f"{ext} [dim]({AUDIO_FORMATS[ext]})[/dim]" for ext in config.fallback_formats
        ),
    )
    table.add_row("Archive Audio At:", f"{config.archive_threshold}+ files")
    table.add_row("JSON Logs:", "✓ Enabled" if config.json_logs else "✗ Disabled")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_streams_table(file: MediaFile, probe: ProbeResult):
    """Lists the streams found by probing a file."""
    console = Console()
    table = Table(
        title=f"[bold]{escape(file.name)}[/bold] [dim]({format_size(file.size)}, "
        f"{probe.format_name or 'unknown format'}"
        f"{', ' + format_duration(probe.duration) if probe.duration else ''})[/dim]",
        box=box.ROUNDED,
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind")
    table.add_column("Codec", style="cyan")
    table.add_column("Language", style="green")
    table.add_column("Title")

    kind_styles = {
        StreamKind.SUBTITLE: "yellow",
        StreamKind.AUDIO: "magenta",
        StreamKind.VIDEO: "blue",
    }
    for stream in probe.streams:
        style = kind_styles.get(stream.kind, "dim")
        table.add_row(
            str(stream.index),
            f"[{style}]{stream.kind.value}[/{style}]",
            stream.codec,
            stream.language,
            escape(stream.title),
        )
    console.print(table)


def print_plan_table(tasks: Sequence[ExtractionTask]):
    """Displays the planned tool arguments (dry run)."""
    console = Console()
    table = Table(title="[bold]Planned Extraction[/bold]", box=box.ROUNDED)
    table.add_column("Stream", justify="right", style="dim")
    table.add_column("Attempt", justify="right")
    table.add_column("Output", style="cyan")
    table.add_column("Arguments", style="dim")
    for task in tasks:
        table.add_row(
            str(task.stream_index),
            str(task.attempt + 1),
            escape(task.output_name),
            escape(" ".join(task.arguments()[:-1])),
        )
    console.print(table)


def print_summary_panel(
    stats: JobStats, result: JobResult | None, written: Sequence[Path] = ()
):
    """Displays the final summary of an extraction job."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("Tracks Found:", str(stats.streams_found))
    stats_table.add_row(
        "✓ Extracted:", f"[bold green]{stats.streams_extracted}[/bold green]"
    )
    if stats.streams_skipped > 0:
        skipped = ", ".join(f"#{i}" for i in stats.skipped_streams)
        stats_table.add_row(
            "○ Skipped:", f"[yellow]{stats.streams_skipped} ({skipped})[/yellow]"
        )
    if stats.candidates_failed > 0:
        stats_table.add_row(
            "Formats Rejected:", f"[yellow]{stats.candidates_failed}[/yellow]"
        )
    stats_table.add_row("Tool Invocations:", str(stats.invocations))

    stats_table.add_row("", "")

    stats_table.add_row("Total Size:", f"[cyan]{format_size(stats.bytes_produced)}[/cyan]")
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(stats.duration_s)}[/blue]"
    )

    if result is not None:
        delivery = (
            f"ZIP archive ({len(result.files)} entries)"
            if result.is_archive
            else f"{len(result.files)} direct file(s)"
        )
        stats_table.add_row("Delivery:", delivery)
    for path in written:
        stats_table.add_row("→", f"[dim]{escape(str(path))}[/dim]")

    console.print()
    console.print(
        Panel(
            stats_table,
            title="🎬 [bold]Extraction Complete![/bold]",
            border_style="green",
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
