"""
Decides how a job's files are delivered and builds the downloadable artifact.
"""

import asyncio
import io
import logging
import os
import zipfile
from collections.abc import Sequence
from pathlib import Path

import aiofiles
from pathvalidate import sanitize_filename

from track_extractor.models.media import ExtractedFile, ExtractionMode, JobResult
from track_extractor.utils.path import create_dir

log = logging.getLogger(__name__)


def safe_name(name: str) -> str:
    return sanitize_filename(name, platform="universal") or "untitled"


def archive_name_for(mode: ExtractionMode, base_name: str) -> str:
    suffix = "subtitles" if mode is ExtractionMode.SUBTITLES else "audio_tracks"
    return f"{base_name}_{suffix}.zip"


def build_archive(files: Sequence[ExtractedFile]) -> bytes:
    """
    Zips `files` flat, one entry per sanitized name.

    Entries sharing a name are not deduplicated: the last one written wins
    and the archive holds a single entry for that name.
    """
    entries: dict[str, bytes] = {}
    for f in files:
        name = safe_name(f.name)
        if name in entries:
            log.debug(f"Archive entry '{name}' overwritten by a later file")
        entries[name] = f.data

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


class ResultPackager:
    def __init__(self, archive_threshold: int = 3):
        if archive_threshold < 2:
            raise ValueError("Archive threshold must be at least 2.")
        self.archive_threshold = archive_threshold

    def should_archive(self, mode: ExtractionMode, count: int) -> bool:
        if mode is ExtractionMode.SUBTITLES:
            return True
        return count >= self.archive_threshold

    def package(
        self, files: Sequence[ExtractedFile], mode: ExtractionMode, base_name: str
    ) -> JobResult:
        """
        Packages a job's surviving files.

        Subtitles always ship as `{base}_subtitles.zip`. Audio ships as
        `{base}_audio_tracks.zip` once there are `archive_threshold` files or
        more; one or two audio files are delivered directly.
        """
        files = tuple(files)
        if not files:
            raise ValueError("Nothing to package.")
        if not self.should_archive(mode, len(files)):
            return JobResult(mode=mode, base_name=base_name, files=files)

        archive = archive_name_for(mode, base_name)
        log.debug(f"Creating {archive} with {len(files)} file(s)")
        return JobResult(
            mode=mode,
            base_name=base_name,
            files=files,
            archive_name=archive,
            archive_bytes=build_archive(files),
        )


async def _write_atomic(path: Path, data: bytes) -> None:
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        async with aiofiles.open(temp_path, "wb") as f:
            await f.write(data)
        await asyncio.to_thread(os.replace, temp_path, path)
    finally:
        if temp_path.exists():
            try:
                os.remove(temp_path)
            except OSError:
                pass


async def save_result(result: JobResult, output_dir: Path) -> list[Path]:
    """Writes the artifact(s) of `result` into `output_dir`."""
    create_dir(output_dir)
    if result.is_archive:
        deliveries = [(safe_name(result.archive_name), result.archive_bytes)]
    else:
        deliveries = [(safe_name(f.name), f.data) for f in result.files]

    written = []
    for name, data in deliveries:
        path = output_dir / name
        await _write_atomic(path, data)
        written.append(path)
    return written
