import sys
from pathlib import Path
from typing import Callable, Iterator, Optional, Tuple
from hbc.domain.errors import UnsafeOutputPath

# Inserted before the extension, in order, when plain extension replacement collides
OUTPUT_MARKERS: Tuple[str, ...] = (".x265", "-x265", " x265")


def filesystem_is_case_insensitive() -> bool:
    return sys.platform in ("win32", "darwin")


def converted_suffixes(extension: str = ".mp4") -> Tuple[str, ...]:
    """Name endings that identify files produced by an earlier run."""
    return tuple(f"{marker}{extension}" for marker in OUTPUT_MARKERS)


def is_converted_name(path: Path, extension: str = ".mp4") -> bool:
    name = path.name.lower()
    return any(name.endswith(suffix.lower()) for suffix in converted_suffixes(extension))


def output_candidates(input_path: Path, extension: str = ".mp4") -> Iterator[Path]:
    stem = input_path.stem if input_path.suffix else input_path.name
    yield input_path.with_name(f"{stem}{extension}")
    for marker in OUTPUT_MARKERS:
        yield input_path.with_name(f"{stem}{marker}{extension}")


def _collides(candidate: Path, input_path: Path, case_insensitive: bool) -> bool:
    if candidate == input_path:
        return True
    return case_insensitive and str(candidate).lower() == str(input_path).lower()


def distinct_output_candidates(
    input_path: Path,
    extension: str = ".mp4",
    case_insensitive: Optional[bool] = None,
) -> Iterator[Path]:
    """Output candidates in order, minus those that name the input itself."""
    if case_insensitive is None:
        case_insensitive = filesystem_is_case_insensitive()
    for candidate in output_candidates(input_path, extension):
        if not _collides(candidate, input_path, case_insensitive):
            yield candidate


def derive_output_path(
    input_path: Path,
    extension: str = ".mp4",
    case_insensitive: Optional[bool] = None,
    is_taken: Optional[Callable[[Path], bool]] = None,
) -> Path:
    """First output name that does not collide with the input.

    ``is_taken`` rejects further candidates (e.g. names already on disk).
    Raises UnsafeOutputPath when no candidate is left.
    """
    for candidate in distinct_output_candidates(input_path, extension, case_insensitive):
        if is_taken is None or not is_taken(candidate):
            return candidate
    raise UnsafeOutputPath(input_path)
