import re
import subprocess
from pathlib import Path
from typing import Optional
from hbc.domain.errors import ProbeFailure
from hbc.domain.models import MediaInfo

CODEC_NAME_RE = re.compile(r"codec_name=(\w+)")
CODED_WIDTH_RE = re.compile(r"coded_width=(\d+)")
CODED_HEIGHT_RE = re.compile(r"coded_height=(\d+)")


def _first_int(pattern: "re.Pattern[str]", text: str) -> int:
    match = pattern.search(text)
    return int(match.group(1)) if match else -1


def parse_probe_output(text: str) -> Optional[MediaInfo]:
    """Extracts codec and coded size from ``ffprobe -show_streams`` key=value text.

    Returns None when no ``codec_name`` token is present.
    """
    codecs = CODEC_NAME_RE.findall(text or "")
    if not codecs:
        return None
    return MediaInfo(
        codec=codecs[0],
        width=_first_int(CODED_WIDTH_RE, text),
        height=_first_int(CODED_HEIGHT_RE, text),
        stream_codecs=codecs,
    )


class FFprobeAdapter:
    """Wrapper around ffprobe to extract stream information."""

    def __init__(self, executable: str = "ffprobe"):
        self.executable = executable

    def probe(self, file_path: Path) -> str:
        """Runs ffprobe and returns its raw text output."""
        cmd = [
            self.executable,
            "-v", "quiet",
            "-show_format",
            "-show_streams",
            str(file_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
        except OSError as e:
            raise ProbeFailure(f"ffprobe could not be started for {file_path}: {e}")
        if result.returncode != 0:
            raise ProbeFailure(f"ffprobe failed for {file_path} (code {result.returncode}): {result.stderr}")
        return result.stdout

    def get_media_info(self, file_path: Path) -> Optional[MediaInfo]:
        return parse_probe_output(self.probe(file_path))
