"""Error taxonomy for the conversion pipeline.

Only `RootPathError` is fatal for a run. Everything else is scoped to a
single file: the task reports it and the walk continues.
"""

from pathlib import Path
from typing import Optional


class HbcError(Exception):
    """Base class for all HBC errors."""


class RootPathError(HbcError):
    """The input root cannot be read."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Cannot read input directory {path}: {reason}")


class ProbeFailure(HbcError):
    """ffprobe crashed or produced no usable output."""


class LockContention(HbcError):
    """A lock sentinel already exists for the file."""

    def __init__(self, path: Path, lock_path: Path):
        self.path = path
        self.lock_path = lock_path
        super().__init__(f"{path} is locked ({lock_path} exists)")


class UnsafeOutputPath(HbcError):
    """Every output name candidate collides with the input file."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Cannot derive an output name distinct from {path}")


class EncodeFailure(HbcError):
    """One ffmpeg attempt did not produce a usable output."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        self.returncode = returncode
        super().__init__(message)
