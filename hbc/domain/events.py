"""Domain events for the conversion pipeline.

Events are published on the EventBus by the walker, the file task and the
encoder adapter, and consumed by the console reporter. They decouple the
pipeline from presentation.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel
from .models import (
    ConversionDecision,
    FileCandidate,
    ProgressSnapshot,
    RunStatsSnapshot,
    TaskOutcome,
)


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class DirectoryEntered(Event):
    directory: Path


class DirectoryLeft(Event):
    directory: Path


class FileSkipped(Event):
    """Emitted when a file is left untouched (already converted, locked, unknown codec...)."""

    path: Path
    outcome: TaskOutcome
    reason: str


class JobEvent(Event):
    """Base class for events related to a single conversion."""

    candidate: FileCandidate
    decision: ConversionDecision


class JobStarted(JobEvent):
    pass


class CommandPrepared(JobEvent):
    """Emitted with the full ffmpeg argument list before each attempt."""

    command: List[str]


class JobProgressUpdated(JobEvent):
    snapshot: ProgressSnapshot


class AttemptFailed(JobEvent):
    """Emitted when one ffmpeg attempt fails; `will_retry` tells whether another follows."""

    attempt: int
    error_message: str
    will_retry: bool


class JobCompleted(JobEvent):
    """Emitted after a verified conversion, before the source is deleted."""

    output_bytes: int
    stats: RunStatsSnapshot

    @property
    def percent_saved(self) -> float:
        original = self.candidate.size_bytes
        if original <= 0:
            return 0.0
        return (original - self.output_bytes) / original * 100.0


class JobFailed(JobEvent):
    error_message: str
    outcome: TaskOutcome = TaskOutcome.FAILED


class SourceDeleted(Event):
    path: Path


class RunFinished(Event):
    stats: RunStatsSnapshot
    interrupted: bool = False
    error_message: Optional[str] = None
