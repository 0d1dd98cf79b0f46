from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field

class AudioMode(str, Enum):
    COPY = "copy"
    REENCODE = "aac"

class AttemptStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    INTERRUPTED = "INTERRUPTED"  # Ctrl+C during encoding

class TaskOutcome(str, Enum):
    CONVERTED = "CONVERTED"
    FAILED = "FAILED"
    INTERRUPTED = "INTERRUPTED"
    SKIPPED_CONVERTED_NAME = "SKIPPED_CONVERTED_NAME"
    SKIPPED_TARGET_CODEC = "SKIPPED_TARGET_CODEC"
    SKIPPED_UNKNOWN = "SKIPPED_UNKNOWN"
    SKIPPED_LOCKED = "SKIPPED_LOCKED"
    ABORTED_UNSAFE = "ABORTED_UNSAFE"
    ERROR = "ERROR"

class MediaInfo(BaseModel):
    codec: str
    width: int = -1  # -1 = unknown
    height: int = -1
    stream_codecs: List[str] = Field(default_factory=list)

class FileCandidate(BaseModel):
    path: Path
    size_bytes: int
    media: Optional[MediaInfo] = None

class ConversionDecision(BaseModel):
    should_convert: bool
    reason: str = ""
    skip_outcome: Optional[TaskOutcome] = None
    output_path: Optional[Path] = None
    audio_mode: AudioMode = AudioMode.COPY
    video_filter_args: List[str] = Field(default_factory=list)

class LockToken(BaseModel):
    path: Path
    lock_path: Path

class ProgressSnapshot(BaseModel):
    """Progress of one running encode, as scraped from ffmpeg telemetry."""

    total_seconds: Optional[float] = None
    elapsed_seconds: float = 0.0
    speed: float = 0.0
    size_kb: int = 0
    bitrate_kbps: float = 0.0
    time_text: str = ""
    duration_text: str = ""

    @property
    def size_bytes(self) -> int:
        return self.size_kb * 1024

    @property
    def bitrate_bps(self) -> float:
        return self.bitrate_kbps * 1000

    @property
    def percent_complete(self) -> float:
        """Fraction in [0, 1]; 0.0 while the total duration is unknown."""
        if not self.total_seconds:
            return 0.0
        return min(1.0, self.elapsed_seconds / self.total_seconds)

    @property
    def bitrate_str(self) -> str:
        if self.bitrate_kbps > 1024:
            return f"{self.bitrate_kbps / 1024:.1f}mbps"
        return f"{self.bitrate_kbps:.1f}kbps"

    @property
    def speed_str(self) -> str:
        return f"{self.speed}x"

    @property
    def human_size(self) -> str:
        if self.size_kb > 1024:
            return f"{self.size_kb / 1024:.2f}MB"
        return f"{self.size_kb}kB"

    @property
    def time_human(self) -> str:
        text = self.time_text
        return text[3:] if text.startswith("00:") else text

    @property
    def duration_human(self) -> str:
        text = self.duration_text
        return text[3:] if text.startswith("00:") else text

class EncodeAttempt(BaseModel):
    index: int = Field(ge=0)
    status: AttemptStatus
    error_message: Optional[str] = None
    snapshot: Optional[ProgressSnapshot] = None

class EncodeResult(BaseModel):
    success: bool
    output_bytes: int = 0
    attempts: List[EncodeAttempt] = Field(default_factory=list)

    @property
    def interrupted(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].status == AttemptStatus.INTERRUPTED

class RunStatsSnapshot(BaseModel):
    total_input: int = 0
    total_output: int = 0
    files_converted: int = 0

    @property
    def percent_saved(self) -> float:
        if self.total_input <= 0:
            return 0.0
        return (self.total_input - self.total_output) / self.total_input * 100.0
