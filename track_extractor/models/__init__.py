"""
Data Models Layer.

This package contains the Pydantic configuration model and the dataclasses
that describe a job: input file, probed streams, planned tasks, produced
files, results and statistics.
"""

from .config import ExtractorConfig
from .media import (
    Candidate,
    ExtractedFile,
    ExtractionMode,
    ExtractionTask,
    JobPhase,
    JobResult,
    JobUpdate,
    MediaFile,
    ProbeResult,
    StreamDescriptor,
    StreamKind,
)
from .stats import JobStats

__all__ = [
    "Candidate",
    "ExtractedFile",
    "ExtractionMode",
    "ExtractionTask",
    "ExtractorConfig",
    "JobPhase",
    "JobResult",
    "JobStats",
    "JobUpdate",
    "MediaFile",
    "ProbeResult",
    "StreamDescriptor",
    "StreamKind",
]
