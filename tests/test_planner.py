import pytest

from track_extractor.core.fallback import FallbackPolicy
from track_extractor.core.planner import (
    StreamPlanner,
    build_extract_arguments,
    derive_base_name,
    group_by_stream,
    needs_subtitle_reformat,
)
from track_extractor.exceptions import NoTracksFound
from track_extractor.models.media import ExtractionMode, StreamDescriptor, StreamKind


def sub(index, codec="subrip", language="en", title="Full"):
    return StreamDescriptor(index, StreamKind.SUBTITLE, codec, language, title)


def audio(index, codec="aac", language="en", title="untitled"):
    return StreamDescriptor(index, StreamKind.AUDIO, codec, language, title)


VIDEO = StreamDescriptor(0, StreamKind.VIDEO, "h264")


@pytest.fixture
def planner():
    return StreamPlanner()


def test_single_subrip_stream_is_copied_as_srt(planner):
    tasks = planner.plan([sub(2)], ExtractionMode.SUBTITLES, "movie")

    assert len(tasks) == 1
    assert tasks[0].output_name == "movie_en_Full.srt"
    assert tasks[0].codec_args == ("-c:s", "copy")
    assert tasks[0].is_direct_copy
    assert tasks[0].stream_index == 2


def test_subtitles_without_subtitle_streams_raise(planner):
    with pytest.raises(NoTracksFound):
        planner.plan([VIDEO, audio(1)], ExtractionMode.SUBTITLES, "movie")


def test_mov_text_is_reformatted_to_srt(planner):
    tasks = planner.plan([sub(3, codec="mov_text")], ExtractionMode.SUBTITLES, "clip")

    assert tasks[0].output_name == "clip_en_Full.srt"
    assert tasks[0].codec_args == ("-c:s", "srt")
    assert not tasks[0].is_direct_copy


def test_other_codecs_keep_their_name_as_extension(planner):
    streams = [sub(2, codec="ass", title="Signs"), sub(3, codec="hdmv_pgs_subtitle")]

    tasks = planner.plan(streams, ExtractionMode.SUBTITLES, "show")

    assert [t.output_name for t in tasks] == [
        "show_en_Signs.ass",
        "show_en_Full.hdmv_pgs_subtitle",
    ]
    assert all(t.codec_args == ("-c:s", "copy") for t in tasks)


def test_reformat_flag_converts_every_subtitle(planner):
    tasks = planner.plan(
        [sub(2, codec="ass")], ExtractionMode.SUBTITLES, "movie", reformat=True
    )

    assert tasks[0].output_name == "movie_en_Full.srt"
    assert tasks[0].codec_args == ("-c:s", "srt")


def test_default_language_and_title_are_used(planner):
    stream = StreamDescriptor(4, StreamKind.SUBTITLE, "subrip")

    tasks = planner.plan([stream], ExtractionMode.SUBTITLES, "movie")

    assert tasks[0].output_name == "movie_unk_untitled.srt"


def test_title_is_not_sanitized_by_the_planner(planner):
    tasks = planner.plan(
        [sub(2, title="SDH: Forced/Signs")], ExtractionMode.SUBTITLES, "movie"
    )

    assert tasks[0].output_name == "movie_en_SDH: Forced/Signs.srt"


def test_later_subtitle_wins_a_name_collision(planner):
    streams = [sub(2), sub(5), sub(6, language="de")]

    tasks = planner.plan(streams, ExtractionMode.SUBTITLES, "movie")

    assert [(t.stream_index, t.output_name) for t in tasks] == [
        (5, "movie_en_Full.srt"),
        (6, "movie_de_Full.srt"),
    ]
    assert len({t.output_name for t in tasks}) == len(tasks)


def test_audio_gets_one_task_per_candidate(planner):
    tasks = planner.plan([VIDEO, audio(1)], ExtractionMode.AUDIO_ORIGINAL, "movie")

    assert [t.output_name for t in tasks] == [
        "movie_en_0.mka",
        "movie_en_0.mov",
        "movie_en_0.mp4",
        "movie_en_0.aac",
        "movie_en_0.mp3",
    ]
    assert [t.attempt for t in tasks] == [0, 1, 2, 3, 4]
    assert all(t.codec_args == ("-c:a", "copy") for t in tasks)
    assert all(t.container_hint is None for t in tasks)


def test_eac3_original_mode_starts_with_forced_matroska(planner):
    tasks = planner.plan([audio(1, codec="eac3")], ExtractionMode.AUDIO_ORIGINAL, "m")

    assert (tasks[0].output_name, tasks[0].container_hint) == ("m_en_0.mka", "matroska")
    assert (tasks[1].output_name, tasks[1].container_hint) == ("m_en_0.mka", None)
    assert len(tasks) == 6


def test_eac3_transcription_mode_uses_default_order(planner):
    tasks = planner.plan(
        [audio(1, codec="eac3")], ExtractionMode.AUDIO_TRANSCRIPTION, "m"
    )

    assert tasks[0].container_hint is None
    assert len(tasks) == 5


def test_audio_names_use_ordinal_among_audio_streams(planner):
    streams = [VIDEO, audio(1, language="en"), sub(2), audio(3, language="ja")]

    tasks = planner.plan(streams, ExtractionMode.AUDIO_ORIGINAL, "movie")
    grouped = group_by_stream(tasks)

    assert list(grouped) == [1, 3]
    assert grouped[1][0].output_name == "movie_en_0.mka"
    assert grouped[3][0].output_name == "movie_ja_1.mka"


def test_audio_without_audio_streams_raise(planner):
    with pytest.raises(NoTracksFound):
        planner.plan([VIDEO, sub(2)], ExtractionMode.AUDIO_TRANSCRIPTION, "movie")


def test_custom_policy_changes_candidate_order():
    planner = StreamPlanner(FallbackPolicy.from_formats(["mp4", "mka"]))

    tasks = planner.plan([audio(1)], ExtractionMode.AUDIO_ORIGINAL, "movie")

    assert [t.output_name for t in tasks] == ["movie_en_0.mp4", "movie_en_0.mka"]


def test_build_extract_arguments_renders_groups(planner):
    tasks = planner.plan(
        [sub(2), sub(3, codec="mov_text", language="fr")],
        ExtractionMode.SUBTITLES,
        "movie",
    )

    args = build_extract_arguments("data/movie.mkv", tasks)

    assert args == [
        "-i", "data/movie.mkv",
        "-map", "0:2", "-c:s", "copy", "movie_en_Full.srt",
        "-map", "0:3", "-c:s", "srt", "movie_fr_Full.srt",
    ]  # fmt: skip


def test_forced_container_is_rendered_before_output(planner):
    tasks = planner.plan([audio(1, codec="eac3")], ExtractionMode.AUDIO_ORIGINAL, "m")

    assert tasks[0].arguments() == [
        "-map", "0:1", "-c:a", "copy", "-f", "matroska", "m_en_0.mka",
    ]  # fmt: skip


@pytest.mark.parametrize(
    "file_name, expected",
    [
        ("movie.mkv", "movie"),
        ("Movie.Name.2020.MP4", "Movie.Name.2020"),
        ("clip.webm", "clip"),
        ("clip.mov", "clip"),
        ("archive.tar", "archive.tar"),
    ],
)
def test_derive_base_name(file_name, expected):
    assert derive_base_name(file_name) == expected


def test_mp4_sources_need_reformat():
    assert needs_subtitle_reformat("movie.MP4")
    assert not needs_subtitle_reformat("movie.mkv")
