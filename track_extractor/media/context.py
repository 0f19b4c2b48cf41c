"""
Execution contexts: isolated, single-use environments that run exactly one
tool invocation.

A context speaks a small message protocol. It announces READY, accepts a
single RunRequest, streams STDOUT/STDERR lines and ends with DONE (carrying the
files it produced) or ERROR. `SubprocessContext` implements it on top of an
asyncio subprocess confined to a private temporary directory.
"""

import asyncio
import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Protocol

import aiofiles

log = logging.getLogger(__name__)

# Logical mount directory, relative to the context's working directory
MOUNT_POINT = "data"

READ_CHUNK = 64 * 1024
LINE_BREAK = re.compile(rb"\r\n|\r|\n")


class ToolKind(str, Enum):
    PROBE = "probe"
    EXTRACT = "extract"


class MessageType(str, Enum):
    READY = "ready"
    STDOUT = "stdout"
    STDERR = "stderr"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ContextMessage:
    type: MessageType
    data: Any = None


@dataclass(frozen=True)
class Mount:
    """A host file exposed read-only inside the context under MOUNT_POINT."""

    source: Path
    name: str

    @property
    def logical_path(self) -> str:
        return f"{MOUNT_POINT}/{self.name}"


@dataclass(frozen=True)
class RunRequest:
    arguments: list[str]
    mounts: list[Mount] = field(default_factory=list)


@dataclass(frozen=True)
class RawFile:
    name: str
    data: bytes = field(repr=False)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


async def _drain(stream: asyncio.StreamReader | None) -> None:
    while stream is not None and await stream.read(READ_CHUNK):
        pass


class ExecutionContext(Protocol):
    invocation_id: str

    async def start(self) -> None: ...

    async def post(self, request: RunRequest) -> None: ...

    def messages(self) -> AsyncIterator[ContextMessage]: ...

    async def terminate(self) -> None: ...


ExecutionContextFactory = Callable[[ToolKind, str], ExecutionContext]


class SubprocessContext:
    """
    Runs one tool process inside a throwaway working directory.

    Mounts are symlinked (hard linked where symlinks are not permitted) under
    `data/`; everything else the process leaves at the top level of the
    working directory is reported as produced output.
    """

    def __init__(self, executable: str, invocation_id: str):
        self.executable = executable
        self.invocation_id = invocation_id
        self.workdir: Path | None = None
        self._queue: asyncio.Queue[ContextMessage] = asyncio.Queue()
        self._process: asyncio.subprocess.Process | None = None
        self._pump_task: asyncio.Task | None = None
        self._posted = False

    async def start(self) -> None:
        self.workdir = Path(
            await asyncio.to_thread(
                tempfile.mkdtemp, prefix=f"tx-{self.invocation_id}-"
            )
        )
        await self._queue.put(ContextMessage(MessageType.READY))

    async def post(self, request: RunRequest) -> None:
        if self.workdir is None:
            raise RuntimeError("Context has not been started.")
        if self._posted:
            raise RuntimeError("Execution contexts accept a single run request.")
        self._posted = True

        if request.mounts:
            try:
                self._mount_all(request.mounts)
            except OSError as e:
                await self._queue.put(
                    ContextMessage(MessageType.ERROR, f"Could not mount input files: {e}")
                )
                return

        log.debug(
            f"[{self.invocation_id}] {self.executable} {' '.join(request.arguments)}"
        )
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.executable,
                *request.arguments,
                cwd=self.workdir,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            await self._queue.put(
                ContextMessage(MessageType.ERROR, f"Could not start {self.executable}: {e}")
            )
            return
        self._pump_task = asyncio.create_task(self._pump())

    def _mount_all(self, mounts: list[Mount]) -> None:
        mount_dir = self.workdir / MOUNT_POINT
        mount_dir.mkdir()
        for mount in mounts:
            target = mount_dir / mount.name
            try:
                os.symlink(mount.source, target)
            except OSError as e:
                # Symlinks need a privilege on Windows; a hard link does not
                log.debug(f"[{self.invocation_id}] symlink failed ({e}), hard linking")
                os.link(mount.source, target)

    async def _forward(self, stream: asyncio.StreamReader, kind: MessageType) -> None:
        # ffmpeg ends its stats lines with a bare \r, so split on both
        pending = b""
        while chunk := await stream.read(READ_CHUNK):
            *lines, pending = LINE_BREAK.split(pending + chunk)
            for raw in lines:
                if raw:
                    await self._queue.put(ContextMessage(kind, _decode(raw)))
            if len(pending) > READ_CHUNK:
                await self._queue.put(ContextMessage(kind, _decode(pending)))
                pending = b""
        if pending:
            await self._queue.put(ContextMessage(kind, _decode(pending)))

    async def _pump(self) -> None:
        process = self._process
        try:
            await asyncio.gather(
                self._forward(process.stdout, MessageType.STDOUT),
                self._forward(process.stderr, MessageType.STDERR),
            )
        except (OSError, ValueError) as e:
            await self._queue.put(
                ContextMessage(MessageType.ERROR, f"Could not read tool output: {e}")
            )
            return
        returncode = await process.wait()
        if returncode != 0:
            await self._queue.put(
                ContextMessage(MessageType.ERROR, f"exit status {returncode}")
            )
            return
        try:
            files = await self._collect_outputs()
        except OSError as e:
            await self._queue.put(
                ContextMessage(MessageType.ERROR, f"Could not read outputs: {e}")
            )
            return
        await self._queue.put(ContextMessage(MessageType.DONE, files))

    async def _collect_outputs(self) -> list[RawFile]:
        files = []
        for entry in sorted(self.workdir.iterdir()):
            if entry.name == MOUNT_POINT or not entry.is_file() or entry.is_symlink():
                continue
            async with aiofiles.open(entry, "rb") as f:
                files.append(RawFile(entry.name, await f.read()))
        return files

    async def messages(self) -> AsyncIterator[ContextMessage]:
        while True:
            message = await self._queue.get()
            yield message
            if message.type in (MessageType.DONE, MessageType.ERROR):
                return

    async def terminate(self) -> None:
        # The pump must stop reading before the pipes are drained below
        if self._pump_task and not self._pump_task.done():
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
        if self._process:
            if self._process.returncode is None:
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
            await asyncio.gather(
                _drain(self._process.stdout),
                _drain(self._process.stderr),
                self._process.wait(),
            )
        if self.workdir is not None:
            await asyncio.to_thread(shutil.rmtree, self.workdir, True)
            self.workdir = None


class SubprocessContextFactory:
    """Creates a SubprocessContext bound to ffprobe or ffmpeg depending on the kind."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        self.executables = {
            ToolKind.PROBE: ffprobe_path,
            ToolKind.EXTRACT: ffmpeg_path,
        }

    def __call__(self, kind: ToolKind, invocation_id: str) -> SubprocessContext:
        return SubprocessContext(self.executables[kind], invocation_id)
