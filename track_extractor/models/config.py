"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import PurePath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Extensions the fallback cascade knows how to try, with a display name
AUDIO_FORMATS = {
    "mka": "Matroska Audio",
    "mov": "QuickTime",
    "mp4": "MPEG-4",
    "m4a": "MPEG-4 Audio",
    "aac": "Raw AAC (ADTS)",
    "mp3": "Raw MP3",
    "ac3": "Raw AC-3",
    "eac3": "Raw E-AC-3",
    "flac": "FLAC",
    "opus": "Ogg Opus",
    "ogg": "Ogg",
    "wav": "WAV",
}

DEFAULT_FALLBACK_FORMATS = ["mka", "mov", "mp4", "aac", "mp3"]


class ExtractorConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Output
    output_dir: str = "."
    archive_threshold: int = 3

    # Timeouts (seconds)
    invocation_timeout: float = 600.0
    job_timeout: float = 3600.0

    # Progress smoothing
    progress_tick: float = 0.2
    progress_floor: int = 10
    progress_ceiling: int = 90
    progress_step_min: float = 2.0
    progress_step_max: float = 10.0

    # Fallback cascade
    fallback_formats: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FALLBACK_FORMATS)
    )

    # Logging
    json_logs: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field(default="", repr=False)
    dry_run: bool = Field(default=False, repr=False)

    @field_validator("ffmpeg_path", "ffprobe_path")
    @classmethod
    def validate_tool_path(cls, v: str) -> str:
        if not v:
            raise ValueError("Tool path cannot be empty.")
        return v

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        if not v:
            return "."
        if ".." in PurePath(v).parts:
            raise ValueError("Output directory cannot contain relative '..' parts.")
        return v

    @field_validator("invocation_timeout")
    @classmethod
    def validate_invocation_timeout(cls, v: float) -> float:
        if v < 1 or v > 86400:
            raise ValueError("Invocation timeout must be between 1 and 86400 seconds.")
        return v

    @field_validator("archive_threshold")
    @classmethod
    def validate_archive_threshold(cls, v: int) -> int:
        if v < 2:
            raise ValueError("Archive threshold must be at least 2.")
        return v

    @field_validator("progress_tick")
    @classmethod
    def validate_tick(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Progress tick must be positive.")
        return v

    @field_validator("fallback_formats", mode="before")
    @classmethod
    def split_formats(cls, v):
        if isinstance(v, str):
            v = [part.strip() for part in v.split(",")]
        return [part.lower().lstrip(".") for part in v if part]

    @field_validator("fallback_formats")
    @classmethod
    def validate_formats(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("At least one fallback format is required.")
        unknown = [ext for ext in v if ext not in AUDIO_FORMATS]
        if unknown:
            raise ValueError(
                f"Unknown fallback format(s): {', '.join(unknown)}. "
                f"Choose from: {', '.join(AUDIO_FORMATS)}."
            )
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def validate_timeouts(self) -> "ExtractorConfig":
        if self.job_timeout < self.invocation_timeout:
            raise ValueError(
                "Job timeout must be greater than or equal to the invocation timeout."
            )
        return self

    @model_validator(mode="after")
    def validate_progress_curve(self) -> "ExtractorConfig":
        if not 0 <= self.progress_floor < self.progress_ceiling < 100:
            raise ValueError(
                "Progress bounds must satisfy 0 <= floor < ceiling < 100."
            )
        if not 0 < self.progress_step_min <= self.progress_step_max:
            raise ValueError("Progress steps must satisfy 0 < min <= max.")
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "dry_run"}
        return {key for key in cls.model_fields if key not in internal_fields}
