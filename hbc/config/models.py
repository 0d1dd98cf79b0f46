from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

MIN_THREADS = 1
MAX_THREADS = 10

DEFAULT_EXTENSIONS = [
    ".avi", ".wmv", ".rmvb", ".rm", ".asf", ".divx", ".mpg", ".mpeg", ".mpe",
    ".mp4", ".mkv", ".mov", ".vob", ".3gp", ".flv", ".ts", ".webm", ".m4v",
    ".f4v", ".f4p", ".f4a", ".f4b", ".mts",
]


def clamp_threads(value: int) -> int:
    return max(MIN_THREADS, min(MAX_THREADS, int(value)))


class GeneralConfig(BaseModel):
    threads: int = Field(default=3)  # clamped to [1, 10], never rejected
    reverse: bool = False
    force_audio_reencode: bool = False
    preset: str = "fast"
    crf: int = Field(default=25, ge=0, le=51)
    max_height: Optional[int] = Field(default=None, gt=0)
    verbose: bool = False
    debug: bool = False
    log_path: str = "hbc.log"
    target_codec: str = "hevc"
    video_encoder: str = "libx265"
    codec_tag: Optional[str] = "hvc1"
    hwaccel: Optional[str] = "auto"
    output_extension: str = ".mp4"
    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    reencode_audio_codecs: List[str] = Field(default_factory=lambda: ["wmav2", "wmav1", "wmapro"])
    max_attempts: int = Field(default=3, ge=1)
    retry_backoff_s: float = Field(default=1.0, ge=0.0)

    @field_validator("threads", mode="before")
    @classmethod
    def clamp_thread_count(cls, v) -> int:
        try:
            return clamp_threads(v)
        except (TypeError, ValueError):
            raise ValueError(f"threads must be an integer, got {v!r}")

    @field_validator("output_extension")
    @classmethod
    def normalize_output_extension(cls, v: str) -> str:
        v = v.strip()
        if not v or v == ".":
            raise ValueError("output_extension must not be empty")
        return v if v.startswith(".") else f".{v}"

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        return [(ext if ext.startswith(".") else f".{ext}").lower() for ext in v]

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
