"""
Event logging for extraction jobs.

Every job event goes to the `track_extractor` logger as a readable
`[event] key=value` line and, when a log directory is configured, to a
JSON-lines file that can be grepped or loaded into a dataframe later.
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import IO, Any


class JsonLinesSink:
    """Append-only `.jsonl` file, one object per event."""

    def __init__(self, log_dir: Path):
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        self.path = log_dir / f"track_extractor_{stamp}.jsonl"
        self._fh: IO[str] | None = open(self.path, "a", encoding="utf-8")  # noqa: SIM115

    @property
    def closed(self) -> bool:
        return self._fh is None or self._fh.closed

    def write(self, record: dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self._fh.write(json.dumps(record, default=str) + "\n")
            self._fh.flush()
        except (OSError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def close(self) -> None:
        if not self.closed:
            self._fh.close()


class StructuredLogger:
    """
    Emits named events with keyword fields.

    Usage:
        logger = StructuredLogger("track_extractor", log_dir=Path("logs"))
        logger.info("job_completed", job_id="a1b2c3d4", files=2, size_mb=45.2)

    Args:
        name: Name of the stdlib logger that receives the readable line.
        log_dir: Directory for the JSON-lines file; None disables it.
        enable_json: Write JSON lines when `log_dir` is set.
        enable_console: Forward events to the stdlib logger.
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        self.name = name
        self.enable_console = enable_console
        self._logger = logging.getLogger(name)
        self._sink = JsonLinesSink(log_dir) if enable_json and log_dir else None
        self.enable_json = self._sink is not None
        self._base_fields: dict[str, Any] = {
            "pid": os.getpid(),
            "started": datetime.now().isoformat(timespec="seconds"),
        }

    @property
    def json_path(self) -> Path | None:
        return self._sink.path if self._sink else None

    def _emit(self, level: int, event: str, **fields) -> None:
        if self.enable_console:
            line = " ".join([f"[{event}]", *(f"{k}={v}" for k, v in fields.items())])
            # markup off: Rich would treat "[event]" as a tag
            self._logger.log(level, line, extra={"markup": False})
        if self._sink:
            self._sink.write(
                {
                    "timestamp": datetime.now().isoformat(),
                    "level": logging.getLevelName(level),
                    "event": event,
                    **self._base_fields,
                    **fields,
                }
            )

    def debug(self, event: str, **fields) -> None:
        self._emit(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields) -> None:
        self._emit(logging.INFO, event, **fields)

    def warning(self, event: str, **fields) -> None:
        self._emit(logging.WARNING, event, **fields)

    def error(self, event: str, **fields) -> None:
        self._emit(logging.ERROR, event, **fields)

    def close(self) -> None:
        if self._sink:
            self._sink.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _mb(size_bytes: int) -> float:
    return round(size_bytes / (1024 * 1024), 2)


class JobLogger:
    """Job lifecycle events, all tagged with the job id."""

    def __init__(self, logger: StructuredLogger, job_id: str = ""):
        self.logger = logger
        self.job_id = job_id

    def bind(self, job_id: str) -> "JobLogger":
        return JobLogger(self.logger, job_id)

    def job_started(self, file_name: str, size_bytes: int, mode: str):
        self.logger.info(
            "job_started",
            job_id=self.job_id,
            file=file_name,
            size_mb=_mb(size_bytes),
            mode=mode,
        )

    def probe_completed(self, streams: int, format_name: str):
        self.logger.debug(
            "probe_completed", job_id=self.job_id, streams=streams, format=format_name
        )

    def plan_created(self, tasks: int, streams: int):
        self.logger.debug(
            "plan_created", job_id=self.job_id, tasks=tasks, streams=streams
        )

    def candidate_attempted(self, stream_index: int, codec: str, candidate: str):
        self.logger.debug(
            "candidate_attempted",
            job_id=self.job_id,
            stream=stream_index,
            codec=codec,
            candidate=candidate,
        )

    def candidate_failed(self, stream_index: int, candidate: str, reason: str):
        self.logger.debug(
            "candidate_failed",
            job_id=self.job_id,
            stream=stream_index,
            candidate=candidate,
            reason=reason,
        )

    def candidate_succeeded(self, stream_index: int, candidate: str, size_bytes: int):
        self.logger.debug(
            "candidate_succeeded",
            job_id=self.job_id,
            stream=stream_index,
            candidate=candidate,
            bytes=size_bytes,
        )

    def stream_skipped(self, stream_index: int, codec: str, attempted: list[str]):
        self.logger.warning(
            "stream_skipped",
            job_id=self.job_id,
            stream=stream_index,
            codec=codec,
            attempted=",".join(attempted),
        )

    def job_completed(
        self, files: int, size_bytes: int, archive: str | None, duration_s: float
    ):
        self.logger.info(
            "job_completed",
            job_id=self.job_id,
            files=files,
            size_mb=_mb(size_bytes),
            archive=archive or "-",
            seconds=round(duration_s, 2),
        )

    def job_failed(self, error_type: str, error: str, phase: str):
        self.logger.error(
            "job_failed",
            job_id=self.job_id,
            error_type=error_type,
            error=error,
            phase=phase,
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, JobLogger]:
    """Returns the base logger and an unbound JobLogger writing through it."""
    base = StructuredLogger("track_extractor", log_dir=log_dir, enable_json=enable_json)
    return base, JobLogger(base)
