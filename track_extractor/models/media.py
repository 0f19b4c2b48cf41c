"""
Domain types shared by the extraction engine: the input file, probed streams,
planned tasks, produced files and the job's status updates.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class StreamKind(str, Enum):
    SUBTITLE = "subtitle"
    AUDIO = "audio"
    VIDEO = "video"
    OTHER = "other"

    @classmethod
    def from_codec_type(cls, codec_type: str | None) -> "StreamKind":
        try:
            return cls((codec_type or "").lower())
        except ValueError:
            return cls.OTHER


class ExtractionMode(str, Enum):
    SUBTITLES = "subtitles"
    AUDIO_ORIGINAL = "audio-original"
    AUDIO_TRANSCRIPTION = "audio-transcription"

    @property
    def is_audio(self) -> bool:
        return self is not ExtractionMode.SUBTITLES

    @property
    def is_transcription(self) -> bool:
        return self is ExtractionMode.AUDIO_TRANSCRIPTION

    @property
    def label(self) -> str:
        return {
            ExtractionMode.SUBTITLES: "subtitles",
            ExtractionMode.AUDIO_ORIGINAL: "original quality",
            ExtractionMode.AUDIO_TRANSCRIPTION: "transcription-ready (original AAC)",
        }[self]


class JobPhase(str, Enum):
    IDLE = "idle"
    PROBING = "probing"
    PLANNING = "planning"
    EXTRACTING = "extracting"
    PACKAGING = "packaging"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.DONE, JobPhase.FAILED)


@dataclass(frozen=True)
class MediaFile:
    """A read-only handle on the container file supplied for one job."""

    path: Path
    name: str
    size: int

    @classmethod
    def from_path(cls, path: str | Path) -> "MediaFile":
        resolved = Path(path).expanduser().resolve()
        return cls(path=resolved, name=resolved.name, size=resolved.stat().st_size)


@dataclass(frozen=True)
class StreamDescriptor:
    index: int
    kind: StreamKind
    codec: str
    language: str = "unk"
    title: str = "untitled"


@dataclass(frozen=True)
class ProbeResult:
    """Structured probe output: the stream list plus container-level facts."""

    streams: tuple[StreamDescriptor, ...]
    format_name: str = ""
    duration: float = 0.0

    def of_kind(self, kind: StreamKind) -> list[StreamDescriptor]:
        return [s for s in self.streams if s.kind is kind]


@dataclass(frozen=True)
class Candidate:
    """One fallback option: an output extension and an optional forced muxer."""

    extension: str
    container: str | None = None

    def __str__(self) -> str:
        return f"{self.container or 'auto'}.{self.extension}"


@dataclass(frozen=True)
class ExtractionTask:
    stream_index: int
    output_name: str
    codec_args: tuple[str, ...]
    container_hint: str | None = None
    attempt: int = 0

    @property
    def is_direct_copy(self) -> bool:
        return len(self.codec_args) == 2 and self.codec_args[1] == "copy"

    def arguments(self) -> list[str]:
        """Renders the `-map ... <output>` group for this task."""
        args = ["-map", f"0:{self.stream_index}", *self.codec_args]
        if self.container_hint:
            args += ["-f", self.container_hint]
        args.append(self.output_name)
        return args


@dataclass(frozen=True)
class ExtractedFile:
    name: str
    data: bytes = field(repr=False)
    stream_index: int | None = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class JobResult:
    """
    Terminal value of a successful job.

    When `archive_name` is set the files are delivered as one zip archive
    (`archive_bytes`); otherwise each file is delivered on its own.
    """

    mode: ExtractionMode
    base_name: str
    files: tuple[ExtractedFile, ...]
    archive_name: str | None = None
    archive_bytes: bytes | None = field(default=None, repr=False)

    @property
    def is_archive(self) -> bool:
        return self.archive_name is not None

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)


@dataclass(frozen=True)
class JobUpdate:
    phase: JobPhase
    percent: int
    message: str
    result: JobResult | None = None
    error: Exception | None = None

    @property
    def is_terminal(self) -> bool:
        return self.result is not None or self.error is not None
