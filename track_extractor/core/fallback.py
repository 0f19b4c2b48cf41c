"""
Container fallback for audio streams.

Not every audio codec can be stream-copied into every container, and the
tool only finds out when it tries. The cascade walks an ordered list of
candidate containers per stream and keeps the first one that yields bytes.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from track_extractor.exceptions import ToolError
from track_extractor.media.channel import RawFiles, ToolChannel, input_reference
from track_extractor.media.context import ToolKind
from track_extractor.models.config import DEFAULT_FALLBACK_FORMATS
from track_extractor.models.media import (
    Candidate,
    ExtractedFile,
    ExtractionMode,
    ExtractionTask,
    MediaFile,
    StreamDescriptor,
)
from track_extractor.models.stats import JobStats
from track_extractor.utils.structured_logger import JobLogger

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyRule:
    """Candidates to try first for one codec, limited to the given modes."""

    codec: str
    prepend: tuple[Candidate, ...]
    modes: frozenset[ExtractionMode]


# E-AC-3 copies into an auto-detected .mka come out unplayable with the
# bundled tool build; forcing the matroska muxer fixes it.
EAC3_FORCED_MATROSKA = PolicyRule(
    codec="eac3",
    prepend=(Candidate("mka", "matroska"),),
    modes=frozenset({ExtractionMode.AUDIO_ORIGINAL}),
)

DEFAULT_RULES = (EAC3_FORCED_MATROSKA,)


class FallbackPolicy:
    """Declarative codec -> ordered candidate table."""

    def __init__(
        self,
        default: Sequence[Candidate] | None = None,
        rules: Sequence[PolicyRule] = DEFAULT_RULES,
    ):
        self.default = tuple(
            default
            if default is not None
            else (Candidate(ext) for ext in DEFAULT_FALLBACK_FORMATS)
        )
        if not self.default:
            raise ValueError("A fallback policy needs at least one candidate.")
        self.rules = tuple(rules)

    @classmethod
    def from_formats(cls, formats: Sequence[str]) -> "FallbackPolicy":
        return cls(default=[Candidate(ext) for ext in formats])

    def candidates_for(self, codec: str, mode: ExtractionMode) -> list[Candidate]:
        candidates: list[Candidate] = []
        for rule in self.rules:
            if rule.codec == codec and mode in rule.modes:
                candidates.extend(rule.prepend)
        candidates.extend(self.default)
        return candidates


@dataclass
class CascadeOutcome:
    stream: StreamDescriptor
    files: list[ExtractedFile] = field(default_factory=list)
    attempted: list[str] = field(default_factory=list)
    winner: str | None = None

    @property
    def skipped(self) -> bool:
        return not self.files


def _describe(task: ExtractionTask) -> str:
    ext = task.output_name.rsplit(".", 1)[-1]
    return f"{task.container_hint or 'auto'}.{ext}"


class FallbackCascade:
    def __init__(
        self,
        channel: ToolChannel,
        stats: JobStats | None = None,
        job_logger: JobLogger | None = None,
    ):
        self.channel = channel
        self.stats = stats
        self.job_logger = job_logger

    async def run(
        self,
        stream: StreamDescriptor,
        tasks: Sequence[ExtractionTask],
        file: MediaFile,
        timeout: Callable[[], float] | None = None,
    ) -> CascadeOutcome:
        """
        Tries `tasks` in order until one produces a non-empty file.

        Per-candidate tool failures are logged and swallowed. An exhausted
        cascade returns an outcome with `skipped` set instead of raising.

        Args:
            stream: The audio stream being extracted.
            tasks: Candidate tasks for that stream, in attempt order.
            file: The mounted source file.
            timeout: Returns the wait to allow for the next invocation. It may
                raise to abort the job.
        """
        outcome = CascadeOutcome(stream=stream)
        input_ref = input_reference(file)

        for task in tasks:
            if task.stream_index != stream.index:
                raise ValueError(
                    f"Task for stream {task.stream_index} passed to cascade for "
                    f"stream {stream.index}."
                )
            if not task.is_direct_copy:
                raise ValueError(
                    f"Refusing non-copy codec arguments {task.codec_args}: the "
                    "tool build cannot encode."
                )

            label = _describe(task)
            outcome.attempted.append(label)
            log.debug(
                f"Trying {label} for stream {stream.index} (codec {stream.codec})"
            )
            if self.job_logger:
                self.job_logger.candidate_attempted(stream.index, stream.codec, label)

            args = ["-i", input_ref, *task.arguments()]
            try:
                output: RawFiles = await self.channel.invoke(
                    ToolKind.EXTRACT,
                    args,
                    file=file,
                    timeout=timeout() if timeout else None,
                )
            except ToolError as e:
                self._record_failure(stream, label, str(e))
                continue

            produced = output.non_empty
            if not produced:
                self._record_failure(stream, label, "no output")
                continue

            outcome.winner = label
            outcome.files = [
                ExtractedFile(name=f.name, data=f.data, stream_index=stream.index)
                for f in produced
            ]
            log.debug(f"Stream {stream.index} extracted as {label}")
            if self.job_logger:
                self.job_logger.candidate_succeeded(
                    stream.index, label, sum(f.size for f in outcome.files)
                )
            return outcome

        log.warning(
            f"[yellow]All formats failed for audio stream {stream.index} "
            f"({stream.codec}); tried {', '.join(outcome.attempted)}.[/yellow]"
        )
        if self.job_logger:
            self.job_logger.stream_skipped(stream.index, stream.codec, outcome.attempted)
        return outcome

    def _record_failure(self, stream: StreamDescriptor, label: str, reason: str) -> None:
        if self.stats:
            self.stats.candidates_failed += 1
        log.debug(f"Format {label} failed for stream {stream.index}: {reason}")
        if self.job_logger:
            self.job_logger.candidate_failed(stream.index, label, reason)
