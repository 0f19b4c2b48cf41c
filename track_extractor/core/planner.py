"""
Turns probed streams into the minimal set of extraction tasks for a job.
"""

import logging
import re
from collections.abc import Sequence

from track_extractor.exceptions import NoTracksFound
from track_extractor.models.media import (
    ExtractionMode,
    ExtractionTask,
    StreamDescriptor,
    StreamKind,
)

from .fallback import FallbackPolicy

log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".mkv", ".mp4", ".avi", ".webm", ".mov")

_CONTAINER_SUFFIX = re.compile(r"\.(mkv|mp4|avi|webm|mov)$", re.IGNORECASE)

# Subtitle codecs that cannot be copied out as-is and are converted to SubRip
REFORMAT_SUBTITLE_CODECS = {"mov_text"}

# Codec name -> file extension for subtitle copies
SUBTITLE_EXTENSIONS = {"subrip": "srt"}


def derive_base_name(file_name: str) -> str:
    """Strips a supported container suffix from `file_name`."""
    return _CONTAINER_SUFFIX.sub("", file_name)


def needs_subtitle_reformat(file_name: str) -> bool:
    """MP4 sources only carry mov_text-style subtitles, so they are always converted."""
    return file_name.lower().endswith(".mp4")


def build_extract_arguments(
    input_ref: str, tasks: Sequence[ExtractionTask]
) -> list[str]:
    args = ["-i", input_ref]
    for task in tasks:
        args.extend(task.arguments())
    return args


def group_by_stream(
    tasks: Sequence[ExtractionTask],
) -> dict[int, list[ExtractionTask]]:
    """Groups tasks by source stream, keeping probe order and attempt order."""
    grouped: dict[int, list[ExtractionTask]] = {}
    for task in tasks:
        grouped.setdefault(task.stream_index, []).append(task)
    return grouped


class StreamPlanner:
    def __init__(self, policy: FallbackPolicy | None = None):
        self.policy = policy or FallbackPolicy()

    def plan(
        self,
        streams: Sequence[StreamDescriptor],
        mode: ExtractionMode,
        base_name: str,
        *,
        reformat: bool = False,
    ) -> list[ExtractionTask]:
        """
        Plans the extraction tasks for a job.

        Args:
            streams: Streams in probe order.
            mode: Requested extraction mode.
            base_name: Prefix for every output name.
            reformat: Convert every subtitle to SubRip regardless of codec.

        Returns:
            Subtitle mode: one task per subtitle stream. Audio modes: one task
            per fallback candidate per audio stream, grouped by stream.

        Raises:
            NoTracksFound: If no stream of the requested kind exists.
        """
        if mode is ExtractionMode.SUBTITLES:
            return self._plan_subtitles(streams, base_name, reformat)
        return self._plan_audio(streams, mode, base_name)

    def _plan_subtitles(
        self, streams: Sequence[StreamDescriptor], base_name: str, reformat: bool
    ) -> list[ExtractionTask]:
        subtitles = [s for s in streams if s.kind is StreamKind.SUBTITLE]
        if not subtitles:
            raise NoTracksFound("No subtitle tracks found in this video file")

        by_name: dict[str, ExtractionTask] = {}
        for stream in subtitles:
            convert = reformat or stream.codec in REFORMAT_SUBTITLE_CODECS
            if convert:
                ext, codec_args = "srt", ("-c:s", "srt")
            else:
                ext = SUBTITLE_EXTENSIONS.get(stream.codec, stream.codec)
                codec_args = ("-c:s", "copy")
            output_name = f"{base_name}_{stream.language}_{stream.title}.{ext}"

            if output_name in by_name:
                log.warning(
                    f"[yellow]Subtitle streams {by_name[output_name].stream_index} and "
                    f"{stream.index} share the name '{output_name}'; keeping stream "
                    f"{stream.index}.[/yellow]"
                )
                del by_name[output_name]
            by_name[output_name] = ExtractionTask(
                stream_index=stream.index,
                output_name=output_name,
                codec_args=codec_args,
            )
        return list(by_name.values())

    def _plan_audio(
        self,
        streams: Sequence[StreamDescriptor],
        mode: ExtractionMode,
        base_name: str,
    ) -> list[ExtractionTask]:
        audio = [s for s in streams if s.kind is StreamKind.AUDIO]
        if not audio:
            raise NoTracksFound("No audio tracks found in this video file")

        tasks = []
        for ordinal, stream in enumerate(audio):
            candidates = self.policy.candidates_for(stream.codec, mode)
            for attempt, candidate in enumerate(candidates):
                tasks.append(
                    ExtractionTask(
                        stream_index=stream.index,
                        output_name=(
                            f"{base_name}_{stream.language}_{ordinal}"
                            f".{candidate.extension}"
                        ),
                        codec_args=("-c:a", "copy"),
                        container_hint=candidate.container,
                        attempt=attempt,
                    )
                )
        return tasks
