"""
Human-readable renderings of sizes, durations and streams.
"""

from track_extractor.models.media import StreamDescriptor

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(bytes_size: float) -> str:
    """'145.3 MB' style size; binary multiples."""
    if bytes_size <= 0:
        return "0 B"
    unit = 0
    while bytes_size >= 1024 and unit < len(_SIZE_UNITS) - 1:
        bytes_size /= 1024
        unit += 1
    return f"{bytes_size:.1f} {_SIZE_UNITS[unit]}"


def format_duration(seconds: float) -> str:
    """'2h 34m 12s' style duration, zero components omitted."""
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    parts = [f"{value}{unit}" for value, unit in ((hours, "h"), (minutes, "m")) if value]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def describe_stream(stream: StreamDescriptor) -> str:
    """One-line label for a stream, e.g. '#2 subtitle subrip (en, Full)'."""
    return (
        f"#{stream.index} {stream.kind.value} {stream.codec} "
        f"({stream.language}, {stream.title})"
    )
