"""Line classifier for ffmpeg's textual progress output.

ffmpeg writes a ``Duration: 00:01:40.00`` banner for every input and then
periodic status lines such as::

    frame= 1200 fps= 48 q=28.0 size=    2048kB time=00:00:50.00 bitrate= 512.0kbits/s speed=2.0x

Everything else (codec banners, warnings, stream maps) is noise. The parser
never raises: missing or garbled fields fall back to zero.
"""

import re
from typing import Optional
from hbc.domain.models import ProgressSnapshot

DURATION_RE = re.compile(r"Duration:\s*(\d+:\d+:\d+(?:\.\d+)?)")
TIME_RE = re.compile(r"time=\s*(\d+:\d+:\d+(?:\.\d+)?)")
BITRATE_RE = re.compile(r"bitrate=\s*(\d+(?:\.\d+)?)\s*kbits/s")
SPEED_RE = re.compile(r"speed=\s*(\d+(?:\.\d+)?)x")
SIZE_RE = re.compile(r"size=\s*(\d+)\s*(?:kB|KiB)")

PROGRESS_MARKER = "speed="


def timestamp_to_seconds(timestamp: str) -> float:
    """Converts ``H:MM:SS.ms`` to seconds; malformed input yields 0.0."""
    parts = (timestamp or "").strip().split(":")
    if len(parts) != 3:
        return 0.0
    try:
        hours, minutes, seconds = (float(p) for p in parts)
    except ValueError:
        return 0.0
    return hours * 3600 + minutes * 60 + seconds


def _match_float(pattern: "re.Pattern[str]", line: str) -> float:
    match = pattern.search(line)
    if not match:
        return 0.0
    try:
        return float(match.group(1))
    except ValueError:
        return 0.0


class TelemetryParser:
    """Per-conversion state machine over ffmpeg output lines.

    Holds the first announced total duration and the latest snapshot. Create a
    fresh parser for every ffmpeg attempt.
    """

    def __init__(self):
        self.known_total_duration: Optional[str] = None
        self.snapshot = ProgressSnapshot()

    @property
    def total_seconds(self) -> Optional[float]:
        if self.known_total_duration is None:
            return None
        return timestamp_to_seconds(self.known_total_duration)

    def feed(self, line: str) -> Optional[ProgressSnapshot]:
        """Consumes one line; returns a new snapshot for progress lines, else None."""
        if not line:
            return None

        if self.known_total_duration is None:
            match = DURATION_RE.search(line)
            if match:
                # Only the first announcement is authoritative (inputs come first)
                self.known_total_duration = match.group(1)
                self.snapshot = self.snapshot.model_copy(update={
                    "total_seconds": self.total_seconds,
                    "duration_text": self.known_total_duration,
                })
                return None

        if PROGRESS_MARKER not in line:
            return None

        time_match = TIME_RE.search(line)
        time_text = time_match.group(1) if time_match else ""
        size_match = SIZE_RE.search(line)

        self.snapshot = ProgressSnapshot(
            total_seconds=self.total_seconds,
            elapsed_seconds=timestamp_to_seconds(time_text),
            speed=_match_float(SPEED_RE, line),
            size_kb=int(size_match.group(1)) if size_match else 0,
            bitrate_kbps=_match_float(BITRATE_RE, line),
            time_text=time_text,
            duration_text=self.known_total_duration or "",
        )
        return self.snapshot
