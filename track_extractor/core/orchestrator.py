"""
The main orchestrator: probe -> plan -> extract (with fallback) -> package.

`ExtractionEngine` is the single entry point for callers. Every submitted job
gets its own `ExtractionJob` state machine and its own `ToolChannel`, so no
two jobs ever share a context or mounted file.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable

from track_extractor.exceptions import (
    ExtractionFailed,
    ExtractorError,
    JobTimeout,
    NoTracksFound,
)
from track_extractor.media.channel import RawFiles, ToolChannel, input_reference
from track_extractor.media.context import (
    ExecutionContextFactory,
    SubprocessContextFactory,
    ToolKind,
)
from track_extractor.media.probe import probe_media
from track_extractor.models.config import ExtractorConfig
from track_extractor.models.media import (
    ExtractedFile,
    ExtractionMode,
    ExtractionTask,
    JobPhase,
    JobResult,
    JobUpdate,
    MediaFile,
    ProbeResult,
    StreamKind,
)
from track_extractor.models.stats import JobStats
from track_extractor.utils.structured_logger import JobLogger

from .fallback import FallbackCascade, FallbackPolicy
from .packager import ResultPackager
from .planner import (
    StreamPlanner,
    build_extract_arguments,
    derive_base_name,
    group_by_stream,
    needs_subtitle_reformat,
)
from .progress import ProgressEstimator, ProgressHandle

log = logging.getLogger(__name__)

_TRANSITIONS: dict[JobPhase, set[JobPhase]] = {
    JobPhase.IDLE: {JobPhase.PROBING},
    JobPhase.PROBING: {JobPhase.PLANNING, JobPhase.FAILED},
    JobPhase.PLANNING: {JobPhase.EXTRACTING, JobPhase.FAILED},
    JobPhase.EXTRACTING: {JobPhase.PACKAGING, JobPhase.FAILED},
    JobPhase.PACKAGING: {JobPhase.DONE, JobPhase.FAILED},
    JobPhase.DONE: set(),
    JobPhase.FAILED: set(),
}

PROBING_PERCENT = 0
PLANNING_PERCENT = 5


class ExtractionJob:
    """One-shot state machine driving a single extraction job."""

    def __init__(
        self,
        file: MediaFile,
        mode: ExtractionMode,
        config: ExtractorConfig,
        channel: ToolChannel,
        planner: StreamPlanner,
        packager: ResultPackager,
        estimator: ProgressEstimator,
        job_logger: JobLogger | None = None,
    ):
        self.job_id = uuid.uuid4().hex[:8]
        self.file = file
        self.mode = mode
        self.config = config
        self.channel = channel
        self.planner = planner
        self.packager = packager
        self.estimator = estimator
        self.job_logger = job_logger.bind(self.job_id) if job_logger else None
        self.stats = JobStats(dry_run=config.dry_run)
        self.cascade = FallbackCascade(channel, self.stats, self.job_logger)
        self.base_name = derive_base_name(file.name)
        self.state = JobPhase.IDLE
        self.result: JobResult | None = None
        self.error: ExtractorError | None = None
        self._percent = 0
        self._deadline: float | None = None
        self._started = False

    def _transition(self, new_state: JobPhase) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal job transition {self.state.value} -> {new_state.value}"
            )
        log.debug(f"[{self.job_id}] {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _update(self, percent: int, message: str, **terminal) -> JobUpdate:
        self._percent = max(self._percent, percent)
        return JobUpdate(self.state, self._percent, message, **terminal)

    def _invocation_timeout(self) -> float:
        """Per-invocation wait, capped by what is left of the job deadline."""
        remaining = self._deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise JobTimeout(
                f"Job exceeded its {self.config.job_timeout:g}s time limit"
            )
        return min(self.config.invocation_timeout, remaining)

    async def run(self) -> AsyncIterator[JobUpdate]:
        """
        Runs the job, yielding status updates.

        The final update carries either `result` or `error`; job-terminal
        errors are reported there instead of being raised.
        """
        if self._started:
            raise RuntimeError("An extraction job can only be run once.")
        self._started = True
        self._deadline = asyncio.get_running_loop().time() + self.config.job_timeout
        if self.job_logger:
            self.job_logger.job_started(self.file.name, self.file.size, self.mode.value)

        try:
            async for update in self._execute():
                yield update
        except ExtractorError as e:
            failed_in = self.state
            self._transition(JobPhase.FAILED)
            self.error = e
            self.stats.invocations = self.channel.invocation_count
            self.stats.finish()
            log.debug(f"[{self.job_id}] failed during {failed_in.value}: {e}")
            if self.job_logger:
                self.job_logger.job_failed(type(e).__name__, str(e), failed_in.value)
            yield self._update(self._percent, str(e) or type(e).__name__, error=e)

    async def _execute(self) -> AsyncIterator[JobUpdate]:
        self._transition(JobPhase.PROBING)
        yield self._update(PROBING_PERCENT, "Analyzing video file...")
        probe = await probe_media(self.channel, self.file, self._invocation_timeout())
        if self.job_logger:
            self.job_logger.probe_completed(len(probe.streams), probe.format_name)

        kind = StreamKind.AUDIO if self.mode.is_audio else StreamKind.SUBTITLE
        relevant = probe.of_kind(kind)
        self.stats.streams_found = len(relevant)
        if not relevant:
            raise NoTracksFound(f"No {kind.value} tracks found in this video file")

        self._transition(JobPhase.PLANNING)
        yield self._update(
            PLANNING_PERCENT, f"Planning {len(relevant)} {kind.value} track(s)..."
        )
        tasks = self.planner.plan(
            probe.streams,
            self.mode,
            self.base_name,
            reformat=needs_subtitle_reformat(self.file.name),
        )
        self.stats.tasks_planned = len(tasks)
        if self.job_logger:
            self.job_logger.plan_created(len(tasks), len(relevant))

        self._transition(JobPhase.EXTRACTING)
        handle = self.estimator.start()
        files: list[ExtractedFile] = []
        if self.mode is ExtractionMode.SUBTITLES:
            message = f"Extracting {len(tasks)} subtitle(s)..."
            yield self._update(handle.percent, message)
            job = asyncio.create_task(self._extract_subtitles(tasks))
            async for update in self._pump(job, handle, message):
                yield update
            files = job.result()
            if not files:
                raise ExtractionFailed("Extraction failed - no subtitle files created")
        else:
            async for update in self._extract_audio(probe, tasks, handle, files):
                yield update
            if not files:
                raise ExtractionFailed("Extraction failed - no audio files created")

        self.stats.record_files(len(files), sum(f.size for f in files))
        yield self._update(self.estimator.complete(handle), "Extraction complete")

        self._transition(JobPhase.PACKAGING)
        if self.mode.is_audio and not self.packager.should_archive(self.mode, len(files)):
            yield self._update(100, "Preparing audio files for download...")
        else:
            yield self._update(100, f"Creating ZIP with {len(files)} file(s)...")
        self.result = self.packager.package(files, self.mode, self.base_name)

        self._transition(JobPhase.DONE)
        self.stats.invocations = self.channel.invocation_count
        self.stats.finish()
        if self.job_logger:
            self.job_logger.job_completed(
                len(self.result.files),
                self.result.total_size,
                self.result.archive_name,
                self.stats.duration_s,
            )
        yield self._update(100, "Done!", result=self.result)

    async def _pump(
        self, job: asyncio.Task, handle: ProgressHandle, message: str
    ) -> AsyncIterator[JobUpdate]:
        """Samples the estimator every tick until `job` finishes."""
        try:
            while True:
                done, _ = await asyncio.wait({job}, timeout=self.estimator.tick)
                if done:
                    return
                yield self._update(self.estimator.sample(handle), message)
        finally:
            if not job.done():
                job.cancel()
                try:
                    await job
                except asyncio.CancelledError:
                    pass

    async def _extract_subtitles(self, tasks: list[ExtractionTask]) -> list[ExtractedFile]:
        args = build_extract_arguments(input_reference(self.file), tasks)
        output: RawFiles = await self.channel.invoke(
            ToolKind.EXTRACT, args, file=self.file, timeout=self._invocation_timeout()
        )
        by_name = {task.output_name: task for task in tasks}
        files = []
        for raw in output.non_empty:
            task = by_name.get(raw.name)
            if task is None:
                log.debug(f"[{self.job_id}] ignoring unplanned output '{raw.name}'")
                continue
            files.append(ExtractedFile(raw.name, raw.data, task.stream_index))
        self.stats.streams_extracted = len(files)
        return files

    async def _extract_audio(
        self,
        probe: ProbeResult,
        tasks: list[ExtractionTask],
        handle: ProgressHandle,
        files: list[ExtractedFile],
    ) -> AsyncIterator[JobUpdate]:
        grouped = group_by_stream(tasks)
        streams = [s for s in probe.of_kind(StreamKind.AUDIO) if s.index in grouped]
        yield self._update(
            handle.percent,
            f"Extracting {len(streams)} audio track(s) - {self.mode.label}...",
        )
        for position, stream in enumerate(streams, 1):
            message = (
                f"Extracting audio track {position}/{len(streams)} ({stream.language})..."
            )
            yield self._update(self.estimator.sample(handle), message)
            job = asyncio.create_task(
                self.cascade.run(
                    stream, grouped[stream.index], self.file, self._invocation_timeout
                )
            )
            async for update in self._pump(job, handle, message):
                yield update
            outcome = job.result()
            if outcome.skipped:
                self.stats.record_skip(stream.index)
                continue
            self.stats.streams_extracted += 1
            files.extend(outcome.files)


class ExtractionEngine:
    """
    Entry point for callers: submit a file and a mode, receive updates.

    Args:
        config: Validated application configuration.
        context_factory: Creates execution contexts; defaults to real
            ffprobe/ffmpeg subprocesses.
        job_logger: Optional structured event logger.
        estimator_factory: Creates the progress estimator for each job.
    """

    def __init__(
        self,
        config: ExtractorConfig,
        context_factory: ExecutionContextFactory | None = None,
        job_logger: JobLogger | None = None,
        estimator_factory: Callable[[], ProgressEstimator] | None = None,
    ):
        self.config = config
        self.context_factory = context_factory or SubprocessContextFactory(
            config.ffmpeg_path, config.ffprobe_path
        )
        self.job_logger = job_logger
        self.policy = FallbackPolicy.from_formats(config.fallback_formats)
        self.planner = StreamPlanner(self.policy)
        self.packager = ResultPackager(config.archive_threshold)
        self.estimator_factory = estimator_factory or self._default_estimator

    def _default_estimator(self) -> ProgressEstimator:
        return ProgressEstimator(
            floor=self.config.progress_floor,
            ceiling=self.config.progress_ceiling,
            tick=self.config.progress_tick,
            step_range=(self.config.progress_step_min, self.config.progress_step_max),
        )

    def new_channel(self) -> ToolChannel:
        return ToolChannel(self.context_factory, self.config.invocation_timeout)

    def create_job(self, file: MediaFile, mode: ExtractionMode) -> ExtractionJob:
        return ExtractionJob(
            file=file,
            mode=mode,
            config=self.config,
            channel=self.new_channel(),
            planner=self.planner,
            packager=self.packager,
            estimator=self.estimator_factory(),
            job_logger=self.job_logger,
        )

    async def submit(
        self, file: MediaFile, mode: ExtractionMode
    ) -> AsyncIterator[JobUpdate]:
        """Runs a fresh job and streams its updates; the last one is terminal."""
        job = self.create_job(file, mode)
        async for update in job.run():
            yield update

    async def run(
        self,
        file: MediaFile,
        mode: ExtractionMode,
        on_update: Callable[[JobUpdate], None] | None = None,
    ) -> JobResult:
        """Runs a job to completion, raising its terminal error if it failed."""
        async for update in self.submit(file, mode):
            if on_update:
                on_update(update)
            if update.error is not None:
                raise update.error
            if update.result is not None:
                return update.result
        raise RuntimeError("Job ended without a terminal update.")

    async def probe(self, file: MediaFile) -> ProbeResult:
        return await probe_media(self.new_channel(), file)

    async def plan(
        self, file: MediaFile, mode: ExtractionMode
    ) -> tuple[ProbeResult, list[ExtractionTask]]:
        """Probes and plans without extracting anything (dry run)."""
        probe = await self.probe(file)
        tasks = self.planner.plan(
            probe.streams,
            mode,
            derive_base_name(file.name),
            reformat=needs_subtitle_reformat(file.name),
        )
        return probe, tasks
