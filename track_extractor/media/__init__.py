"""
Media Tool Layer.

This package is responsible for talking to the external media tools:
spawning isolated execution contexts, driving the request/response protocol
and parsing probe output.
"""

from .channel import ParsedOutput, RawFiles, ToolChannel, input_reference
from .context import (
    MOUNT_POINT,
    ContextMessage,
    MessageType,
    Mount,
    RawFile,
    RunRequest,
    SubprocessContext,
    SubprocessContextFactory,
    ToolKind,
)
from .probe import build_probe_arguments, parse_probe_document, probe_media

__all__ = [
    "MOUNT_POINT",
    "ContextMessage",
    "MessageType",
    "Mount",
    "ParsedOutput",
    "RawFile",
    "RawFiles",
    "RunRequest",
    "SubprocessContext",
    "SubprocessContextFactory",
    "ToolChannel",
    "ToolKind",
    "build_probe_arguments",
    "input_reference",
    "parse_probe_document",
    "probe_media",
]
