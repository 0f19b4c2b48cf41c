import pytest

from track_extractor.models.media import StreamDescriptor, StreamKind
from track_extractor.utils.formatting import describe_stream, format_duration, format_size


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (512, "512.0 B"), (1536, "1.5 KB"), (3 * 1024**3, "3.0 GB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0s"), (59.9, "59s"), (3600, "1h"), (9252, "2h 34m 12s")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_describe_stream():
    stream = StreamDescriptor(2, StreamKind.SUBTITLE, "subrip", "en", "Full")

    assert describe_stream(stream) == "#2 subtitle subrip (en, Full)"
