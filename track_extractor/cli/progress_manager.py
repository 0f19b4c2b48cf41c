"""
Renders a job's status updates as a Rich progress bar.
"""

import logging

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from track_extractor.models.media import JobPhase, JobUpdate

log = logging.getLogger("track_extractor")

PHASE_STYLES = {
    JobPhase.IDLE: "dim",
    JobPhase.PROBING: "cyan",
    JobPhase.PLANNING: "cyan",
    JobPhase.EXTRACTING: "magenta",
    JobPhase.PACKAGING: "blue",
    JobPhase.DONE: "green",
    JobPhase.FAILED: "red",
}


class ProgressManager:
    """Consumes JobUpdates and keeps a single progress task in sync with them."""

    def __init__(self, console: Console, file_name: str):
        self.console = console
        self.file_name = file_name
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.fields[phase]}", style="bold"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TextColumn("{task.description}"),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None
        self._last_message = ""

    def handle(self, update: JobUpdate) -> None:
        if self._task_id is None:
            return
        style = PHASE_STYLES.get(update.phase, "white")
        self.progress.update(
            self._task_id,
            completed=update.percent,
            description=escape(update.message),
            phase=f"[{style}]{update.phase.value}[/{style}]",
        )
        if update.message != self._last_message:
            log.debug(f"{update.phase.value}: {update.message} ({update.percent}%)")
            self._last_message = update.message

    async def __aenter__(self):
        self.progress.start()
        self._task_id = self.progress.add_task(
            f"Processing {escape(self.file_name)}", total=100, phase="idle"
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._task_id is not None:
            self.progress.stop()
