"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class ExtractorError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(ExtractorError):
    """Raised for issues related to configuration loading or validation."""


class InvalidMediaFileError(ExtractorError):
    """Raised when the input file is missing or has an unsupported extension."""


class NoTracksFound(ExtractorError):
    """Raised when probing succeeded but no stream of the requested kind exists."""


class ExtractionFailed(ExtractorError):
    """Raised when every task or fallback candidate of a job produced no bytes."""


class JobTimeout(ExtractorError):
    """Raised when a job runs past its hard deadline."""


class ToolError(ExtractorError):
    """
    Base class for failures of a single tool invocation.

    Carries the tail of the diagnostic output the tool emitted before failing.
    """

    def __init__(self, message: str, diagnostics: list[str] | None = None):
        super().__init__(message)
        self.diagnostics = list(diagnostics or [])

    def diagnostic_tail(self, lines: int = 5) -> str:
        return "\n".join(self.diagnostics[-lines:])


class ToolFailure(ToolError):
    """Raised when the execution context terminates abnormally."""


class ToolTimeout(ToolError):
    """Raised when no terminal signal arrives within the bounded wait."""
