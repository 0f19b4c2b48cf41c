"""
Dataclass for tracking the statistics of one extraction job.
"""

import time
from dataclasses import dataclass, field


@dataclass
class JobStats:
    """Counts what a job probed, planned, attempted and produced."""

    streams_found: int = 0
    tasks_planned: int = 0
    invocations: int = 0
    candidates_failed: int = 0
    streams_extracted: int = 0
    streams_skipped: int = 0
    files_produced: int = 0
    bytes_produced: int = 0
    dry_run: bool = False
    skipped_streams: list[int] = field(default_factory=list)
    _started_at: float = field(default=0.0, repr=False)
    _finished_at: float | None = field(default=None, repr=False)

    def __post_init__(self):
        self._started_at = time.monotonic()

    def record_skip(self, stream_index: int) -> None:
        self.streams_skipped += 1
        self.skipped_streams.append(stream_index)

    def record_files(self, count: int, size: int) -> None:
        self.files_produced += count
        self.bytes_produced += size

    def finish(self) -> None:
        if self._finished_at is None:
            self._finished_at = time.monotonic()

    @property
    def duration_s(self) -> float:
        end = self._finished_at if self._finished_at is not None else time.monotonic()
        return end - self._started_at
