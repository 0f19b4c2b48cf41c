import pytest

from track_extractor.core.fallback import FallbackCascade, FallbackPolicy
from track_extractor.core.planner import StreamPlanner
from track_extractor.exceptions import JobTimeout
from track_extractor.media.channel import ToolChannel
from track_extractor.media.context import ContextMessage, MessageType, RawFile
from track_extractor.models.media import (
    Candidate,
    ExtractionMode,
    ExtractionTask,
    StreamDescriptor,
    StreamKind,
)
from track_extractor.models.stats import JobStats

from .helpers import done_with, error

EAC3 = StreamDescriptor(1, StreamKind.AUDIO, "eac3", "en")
AAC = StreamDescriptor(1, StreamKind.AUDIO, "aac", "en")


def tasks_for(stream, mode=ExtractionMode.AUDIO_ORIGINAL):
    return StreamPlanner().plan([stream], mode, "movie")


def output_of(args):
    return args[-1]


def test_default_policy_order():
    policy = FallbackPolicy()

    assert [str(c) for c in policy.candidates_for("aac", ExtractionMode.AUDIO_ORIGINAL)] == [
        "auto.mka", "auto.mov", "auto.mp4", "auto.aac", "auto.mp3",
    ]  # fmt: skip


def test_eac3_rule_only_applies_to_original_mode():
    policy = FallbackPolicy()

    original = policy.candidates_for("eac3", ExtractionMode.AUDIO_ORIGINAL)
    transcription = policy.candidates_for("eac3", ExtractionMode.AUDIO_TRANSCRIPTION)

    assert original[0] == Candidate("mka", "matroska")
    assert original[1:] == transcription


def test_empty_policy_is_rejected():
    with pytest.raises(ValueError):
        FallbackPolicy(default=[])


async def test_first_working_candidate_wins(toolbox, media_file):
    toolbox.responder = lambda kind, args: done_with(RawFile(output_of(args), b"MKA"))
    stats = JobStats()
    cascade = FallbackCascade(ToolChannel(toolbox), stats)

    outcome = await cascade.run(AAC, tasks_for(AAC), media_file)

    assert not outcome.skipped
    assert outcome.winner == "auto.mka"
    assert [(f.name, f.data, f.stream_index) for f in outcome.files] == [
        ("movie_en_0.mka", b"MKA", 1)
    ]
    assert len(toolbox.contexts) == 1
    assert stats.candidates_failed == 0


async def test_failures_move_on_to_the_next_candidate(toolbox, media_file):
    def responder(kind, args):
        name = output_of(args)
        if name.endswith(".mka"):
            return error("exit status 1")
        if name.endswith(".mov"):
            return done_with(RawFile(name, b""))
        return done_with(RawFile(name, b"MP4DATA"))

    toolbox.responder = responder
    stats = JobStats()
    cascade = FallbackCascade(ToolChannel(toolbox), stats)

    outcome = await cascade.run(AAC, tasks_for(AAC), media_file)

    assert outcome.winner == "auto.mp4"
    assert outcome.attempted == ["auto.mka", "auto.mov", "auto.mp4"]
    assert [f.name for f in outcome.files] == ["movie_en_0.mp4"]
    assert stats.candidates_failed == 2
    assert all(context.terminated for context in toolbox.contexts)
    assert toolbox.max_live == 1


async def test_every_attempt_is_a_direct_copy(toolbox, media_file):
    toolbox.responder = lambda kind, args: error()
    cascade = FallbackCascade(ToolChannel(toolbox))

    await cascade.run(EAC3, tasks_for(EAC3), media_file)

    for args in toolbox.extract_requests():
        assert args[:2] == ["-i", "data/movie.mkv"]
        assert args[args.index("-c:a") + 1] == "copy"


async def test_eac3_tries_forced_matroska_before_auto(toolbox, media_file):
    def responder(kind, args):
        if "-f" in args:
            return error()
        return done_with(RawFile(output_of(args), b"EAC3"))

    toolbox.responder = responder
    cascade = FallbackCascade(ToolChannel(toolbox))

    outcome = await cascade.run(EAC3, tasks_for(EAC3), media_file)

    first, second = toolbox.extract_requests()
    assert first[-3:] == ["-f", "matroska", "movie_en_0.mka"]
    assert "-f" not in second
    assert outcome.attempted == ["matroska.mka", "auto.mka"]
    assert outcome.winner == "auto.mka"


async def test_exhausted_cascade_skips_the_stream(toolbox, media_file, caplog):
    toolbox.responder = lambda kind, args: error()
    stats = JobStats()
    cascade = FallbackCascade(ToolChannel(toolbox), stats)

    with caplog.at_level("WARNING"):
        outcome = await cascade.run(AAC, tasks_for(AAC), media_file)

    assert outcome.skipped
    assert outcome.winner is None
    assert len(outcome.attempted) == 5
    assert stats.candidates_failed == 5
    assert "All formats failed for audio stream 1" in caplog.text


async def test_context_closing_early_counts_as_failure(toolbox, media_file):
    calls = []

    def responder(kind, args):
        calls.append(args)
        if len(calls) == 1:
            return [ContextMessage(MessageType.STDERR, "killed"), None]
        return done_with(RawFile(output_of(args), b"MOV"))

    toolbox.responder = responder
    cascade = FallbackCascade(ToolChannel(toolbox))

    outcome = await cascade.run(AAC, tasks_for(AAC), media_file)

    assert outcome.winner == "auto.mov"


async def test_non_copy_arguments_are_refused(toolbox, media_file):
    task = ExtractionTask(1, "movie_en_0.mp3", ("-c:a", "libmp3lame"))
    cascade = FallbackCascade(ToolChannel(toolbox))

    with pytest.raises(ValueError):
        await cascade.run(AAC, [task], media_file)
    assert toolbox.contexts == []


async def test_tasks_for_another_stream_are_refused(toolbox, media_file):
    task = ExtractionTask(7, "movie_en_0.mka", ("-c:a", "copy"))
    cascade = FallbackCascade(ToolChannel(toolbox))

    with pytest.raises(ValueError):
        await cascade.run(AAC, [task], media_file)


async def test_job_deadline_aborts_the_cascade(toolbox, media_file):
    toolbox.responder = lambda kind, args: error()
    attempts = []

    def timeout():
        attempts.append(1)
        if len(attempts) > 2:
            raise JobTimeout("Job exceeded its 1s time limit")
        return 1.0

    cascade = FallbackCascade(ToolChannel(toolbox))

    with pytest.raises(JobTimeout):
        await cascade.run(AAC, tasks_for(AAC), media_file, timeout)
    assert len(toolbox.contexts) == 2
