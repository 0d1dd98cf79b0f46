import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional
from hbc.config.models import GeneralConfig
from hbc.domain.errors import EncodeFailure
from hbc.domain.events import AttemptFailed
from hbc.domain.models import (
    AttemptStatus,
    ConversionDecision,
    EncodeAttempt,
    EncodeResult,
    FileCandidate,
)
from hbc.infrastructure.event_bus import EventBus
from hbc.infrastructure.ffmpeg import FFmpegAdapter


class EncoderSupervisor:
    """Retries ffmpeg for one file and verifies what it produced.

    Success means ffmpeg exited cleanly AND a non-empty output file exists.
    After the last failed attempt any partial output is removed. The source
    file is never touched here.
    """

    def __init__(
        self,
        config: GeneralConfig,
        event_bus: EventBus,
        ffmpeg_adapter: FFmpegAdapter,
        shutdown_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.event_bus = event_bus
        self.ffmpeg_adapter = ffmpeg_adapter
        self.shutdown_event = shutdown_event
        self._sleep = sleep
        self.logger = logging.getLogger(__name__)

    def convert(self, candidate: FileCandidate, decision: ConversionDecision) -> EncodeResult:
        if decision.output_path is None:
            raise ValueError(f"No output path decided for {candidate.path}")
        output_path = decision.output_path
        filename = candidate.path.name
        max_attempts = self.config.max_attempts
        attempts: List[EncodeAttempt] = []

        if output_path.exists():
            # Never overwrite, and later remove, a file this conversion did not create
            message = f"output {output_path} already exists"
            self.logger.error(f"OUTPUT_EXISTS: {filename} - {message}")
            attempts.append(EncodeAttempt(index=0, status=AttemptStatus.FAILED, error_message=message))
            return EncodeResult(success=False, attempts=attempts)

        for index in range(max_attempts):
            if index > 0:
                self.logger.info(f"RETRY: {filename} (attempt {index + 1}/{max_attempts})")
            try:
                attempt = self.ffmpeg_adapter.encode(
                    candidate, decision, attempt=index, shutdown_event=self.shutdown_event
                )
                if attempt.status == AttemptStatus.SUCCESS:
                    output_bytes = self._verified_size(output_path)
                    attempts.append(attempt)
                    return EncodeResult(success=True, output_bytes=output_bytes, attempts=attempts)
            except Exception as e:
                attempt = EncodeAttempt(index=index, status=AttemptStatus.FAILED, error_message=str(e))

            attempts.append(attempt)
            if attempt.status == AttemptStatus.INTERRUPTED:
                break

            will_retry = index + 1 < max_attempts and not self._shutdown_requested()
            self.logger.warning(
                f"ENCODE_FAIL: {filename} attempt {index + 1}/{max_attempts}: {attempt.error_message}"
            )
            self.event_bus.publish(AttemptFailed(
                candidate=candidate,
                decision=decision,
                attempt=index,
                error_message=attempt.error_message or "unknown error",
                will_retry=will_retry,
            ))
            if not will_retry:
                break
            self._sleep(self.config.retry_backoff_s)

        self._remove_partial_output(output_path)
        return EncodeResult(success=False, attempts=attempts)

    def _shutdown_requested(self) -> bool:
        return bool(self.shutdown_event and self.shutdown_event.is_set())

    @staticmethod
    def _verified_size(output_path: Path) -> int:
        try:
            size = output_path.stat().st_size
        except OSError:
            raise EncodeFailure(f"ffmpeg reported success but {output_path} is missing")
        if size <= 0:
            raise EncodeFailure(f"ffmpeg reported success but {output_path} is empty")
        return size

    def _remove_partial_output(self, output_path: Path) -> None:
        try:
            output_path.unlink()
            self.logger.info(f"PARTIAL_OUTPUT_REMOVED: {output_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Failed to remove partial output {output_path}: {e}")
