"""
Utilities for handling input and output paths.
"""

import os
import shutil
from pathlib import Path

from track_extractor.exceptions import InvalidMediaFileError

VALID_MEDIA_EXTENSIONS = (".mkv", ".mp4", ".avi", ".webm", ".mov")


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def validate_media_path(path: Path) -> Path:
    """
    Checks that `path` is an existing file with a supported container extension.

    Raises:
        InvalidMediaFileError: If the file is missing or not a supported container.
    """
    path = path.expanduser()
    if not path.is_file():
        raise InvalidMediaFileError(f"File not found: '{path}'")
    if not path.name.lower().endswith(VALID_MEDIA_EXTENSIONS):
        raise InvalidMediaFileError(
            "Please select a valid video file "
            f"({', '.join(e.lstrip('.').upper() for e in VALID_MEDIA_EXTENSIONS)})"
            f"\n\nFile: {path.name}"
        )
    return path


def resolve_executable(command: str) -> str | None:
    """Returns the absolute path of `command` if it can be executed."""
    if os.path.sep in command or (os.altsep and os.altsep in command):
        candidate = Path(command).expanduser()
        return str(candidate) if os.access(candidate, os.X_OK) else None
    return shutil.which(command)
