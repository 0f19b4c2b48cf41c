"""
Request/response bridge to the external media tools.

Each `invoke` spins up a fresh execution context, drives its message protocol
to a terminal message and tears the context down again. Contexts are never
reused, so nothing mounted or written by one invocation leaks into the next.
"""

import asyncio
import json
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from track_extractor.exceptions import ToolFailure, ToolTimeout
from track_extractor.models.media import MediaFile

from .context import (
    ExecutionContext,
    ExecutionContextFactory,
    MessageType,
    Mount,
    RawFile,
    RunRequest,
    ToolKind,
)

log = logging.getLogger(__name__)

DIAGNOSTIC_LINES = 200


@dataclass(frozen=True)
class ParsedOutput:
    """Terminal payload of a probe invocation."""

    document: dict[str, Any]
    diagnostics: list[str] = field(default_factory=list, repr=False)


@dataclass(frozen=True)
class RawFiles:
    """Terminal payload of an extract invocation."""

    files: list[RawFile]
    stdout: list[str] = field(default_factory=list, repr=False)
    diagnostics: list[str] = field(default_factory=list, repr=False)

    @property
    def non_empty(self) -> list[RawFile]:
        return [f for f in self.files if f.data]


def input_reference(file: MediaFile) -> str:
    """The path under which `file` is visible to the tool once mounted."""
    return Mount(file.path, file.name).logical_path


class ToolChannel:
    """
    Sequential gateway to execution contexts.

    At most one context is alive at a time; concurrent callers queue on an
    internal lock.
    """

    def __init__(self, context_factory: ExecutionContextFactory, timeout: float = 600.0):
        self.context_factory = context_factory
        self.timeout = timeout
        self._lock = asyncio.Lock()
        self.invocation_count = 0

    async def invoke(
        self,
        kind: ToolKind,
        args: list[str],
        file: MediaFile | None = None,
        timeout: float | None = None,
    ) -> ParsedOutput | RawFiles:
        """
        Runs one tool invocation to completion.

        Args:
            kind: Which tool to run (probe or extract).
            args: Ordered argument list passed to the tool.
            file: Optional media file to mount read-only under `data/`.
            timeout: Bounded wait for the terminal message; defaults to the
                channel's timeout.

        Raises:
            ToolFailure: If the context reports an error or returns unusable output.
            ToolTimeout: If no terminal message arrives in time.
        """
        wait = self.timeout if timeout is None else timeout
        mounts = [Mount(file.path, file.name)] if file else []
        request = RunRequest(arguments=list(args), mounts=mounts)

        async with self._lock:
            self.invocation_count += 1
            invocation_id = uuid.uuid4().hex[:12]
            context = self.context_factory(kind, invocation_id)
            diagnostics: deque[str] = deque(maxlen=DIAGNOSTIC_LINES)
            log.debug(f"[{invocation_id}] {kind.value} invocation started")
            try:
                return await asyncio.wait_for(
                    self._converse(kind, context, request, diagnostics), timeout=wait
                )
            except asyncio.TimeoutError as e:
                raise ToolTimeout(
                    f"{kind.value} did not finish within {wait:g}s",
                    list(diagnostics),
                ) from e
            except OSError as e:
                raise ToolFailure(
                    f"{kind.value} context failed: {e}", list(diagnostics)
                ) from e
            finally:
                await context.terminate()
                log.debug(f"[{invocation_id}] context torn down")

    async def _converse(
        self,
        kind: ToolKind,
        context: ExecutionContext,
        request: RunRequest,
        diagnostics: deque,
    ) -> ParsedOutput | RawFiles:
        stdout: list[str] = []
        await context.start()
        async for message in context.messages():
            if message.type is MessageType.READY:
                await context.post(request)
            elif message.type is MessageType.STDOUT:
                stdout.append(message.data)
                diagnostics.append(message.data)
            elif message.type is MessageType.STDERR:
                diagnostics.append(message.data)
            elif message.type is MessageType.ERROR:
                raise ToolFailure(
                    f"{kind.value} terminated abnormally ({message.data})",
                    list(diagnostics),
                )
            elif message.type is MessageType.DONE:
                return self._terminal_payload(kind, message.data, stdout, diagnostics)
        raise ToolFailure(
            f"{kind.value} context closed without a terminal message",
            list(diagnostics),
        )

    @staticmethod
    def _terminal_payload(
        kind: ToolKind, files: list[RawFile] | None, stdout: list[str], diagnostics: deque
    ) -> ParsedOutput | RawFiles:
        if kind is ToolKind.PROBE:
            try:
                document = json.loads("\n".join(stdout))
            except json.JSONDecodeError as e:
                raise ToolFailure(
                    f"probe returned malformed JSON: {e}", list(diagnostics)
                ) from e
            if not isinstance(document, dict):
                raise ToolFailure("probe returned a non-object document", list(diagnostics))
            return ParsedOutput(document=document, diagnostics=list(diagnostics))
        return RawFiles(
            files=list(files or []), stdout=stdout, diagnostics=list(diagnostics)
        )
