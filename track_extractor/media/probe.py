"""
Probing: builds the ffprobe request and turns its JSON document into
StreamDescriptors.
"""

import logging
from typing import Any

from rich.markup import escape

from track_extractor.models.media import MediaFile, ProbeResult, StreamDescriptor, StreamKind
from track_extractor.utils.formatting import describe_stream

from .channel import ParsedOutput, ToolChannel, input_reference
from .context import ToolKind

log = logging.getLogger(__name__)


def build_probe_arguments(input_ref: str) -> list[str]:
    return [input_ref, "-print_format", "json", "-show_streams", "-show_format"]


def _tag(tags: dict[str, Any], key: str) -> str | None:
    """Case-insensitive tag lookup; Matroska muxers sometimes upper-case keys."""
    for name, value in tags.items():
        if name.lower() == key and value:
            return str(value)
    return None


def parse_stream(entry: dict[str, Any]) -> StreamDescriptor:
    tags = entry.get("tags") or {}
    return StreamDescriptor(
        index=int(entry["index"]),
        kind=StreamKind.from_codec_type(entry.get("codec_type")),
        codec=entry.get("codec_name") or "unknown",
        language=_tag(tags, "language") or "unk",
        title=_tag(tags, "title") or "untitled",
    )


def parse_probe_document(document: dict[str, Any]) -> ProbeResult:
    """Converts a parsed ffprobe document into a ProbeResult."""
    streams = []
    for entry in document.get("streams") or []:
        if "index" not in entry:
            log.debug(f"Ignoring probe stream without index: {entry}")
            continue
        streams.append(parse_stream(entry))

    fmt = document.get("format") or {}
    try:
        duration = float(fmt.get("duration", 0) or 0)
    except (TypeError, ValueError):
        duration = 0.0
    return ProbeResult(
        streams=tuple(streams),
        format_name=fmt.get("format_name", ""),
        duration=duration,
    )


async def probe_media(
    channel: ToolChannel, file: MediaFile, timeout: float | None = None
) -> ProbeResult:
    """Runs the probe tool against `file` and returns its parsed streams."""
    output: ParsedOutput = await channel.invoke(
        ToolKind.PROBE,
        build_probe_arguments(input_reference(file)),
        file=file,
        timeout=timeout,
    )
    result = parse_probe_document(output.document)
    log.debug(
        f"Probed '{file.name}': {len(result.streams)} stream(s), "
        f"format={result.format_name or '?'}"
    )
    for stream in result.streams:
        log.debug(f"  {escape(describe_stream(stream))}")
    return result
