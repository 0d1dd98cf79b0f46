"""Per-file conversion policy: decide, lock, convert, verify, delete or clean up.

The source file is deleted only after the supervisor has verified a
non-empty output. The lock sentinel is released on every exit path.
"""

import itertools
import logging
import time
from typing import Tuple
from hbc.config.models import GeneralConfig
from hbc.domain.errors import LockContention, UnsafeOutputPath
from hbc.domain.events import (
    FileSkipped,
    JobCompleted,
    JobFailed,
    JobStarted,
    SourceDeleted,
)
from hbc.domain.models import ConversionDecision, FileCandidate, LockToken, TaskOutcome
from hbc.infrastructure.event_bus import EventBus
from hbc.infrastructure.lock import LockManager
from hbc.pipeline.classifier import MediaClassifier
from hbc.pipeline.naming import distinct_output_candidates
from hbc.pipeline.stats import RunStatistics
from hbc.pipeline.supervisor import EncoderSupervisor


class FileTask:
    def __init__(
        self,
        config: GeneralConfig,
        event_bus: EventBus,
        classifier: MediaClassifier,
        lock_manager: LockManager,
        supervisor: EncoderSupervisor,
        stats: RunStatistics,
    ):
        self.config = config
        self.event_bus = event_bus
        self.classifier = classifier
        self.lock_manager = lock_manager
        self.supervisor = supervisor
        self.stats = stats
        self.logger = logging.getLogger(__name__)

    def process(self, candidate: FileCandidate) -> TaskOutcome:
        """Runs the whole policy for one file. Never raises for per-file problems."""
        try:
            return self._process(candidate)
        except Exception as e:
            self.logger.error(f"Exception processing {candidate.path.name}: {e}")
            self._skip(candidate, TaskOutcome.ERROR, f"unexpected error: {e}")
            return TaskOutcome.ERROR

    def _process(self, candidate: FileCandidate) -> TaskOutcome:
        path = candidate.path
        filename = path.name

        try:
            decision = self.classifier.classify(candidate)
        except UnsafeOutputPath as e:
            self.logger.error(f"UNSAFE_OUTPUT: {filename} - {e}")
            return self._skip(candidate, TaskOutcome.ABORTED_UNSAFE, str(e))

        if not decision.should_convert:
            self.logger.info(f"SKIP: {filename} ({decision.reason})")
            return self._skip(candidate, decision.skip_outcome or TaskOutcome.SKIPPED_UNKNOWN, decision.reason)

        try:
            token = self.lock_manager.acquire(path)
        except LockContention as e:
            self.logger.info(f"LOCK_BUSY: {filename} ({e.lock_path} exists)")
            return self._skip(candidate, TaskOutcome.SKIPPED_LOCKED, "locked by another worker")

        try:
            try:
                decision, output_token = self._claim_output(candidate, decision)
            except UnsafeOutputPath as e:
                self.logger.error(f"UNSAFE_OUTPUT: {filename} - {e}")
                return self._skip(candidate, TaskOutcome.ABORTED_UNSAFE, str(e))
            try:
                return self._convert(candidate, decision)
            finally:
                self.lock_manager.release(output_token)
        finally:
            self.lock_manager.release(token)

    def _claim_output(
        self, candidate: FileCandidate, decision: ConversionDecision
    ) -> Tuple[ConversionDecision, LockToken]:
        """Claims the first output name that is neither on disk nor claimed by another task.

        The claim is a `<output>.lock` sentinel held for the whole conversion, so
        sibling sources sharing a stem (movie.avi, movie.mkv) never share an output.
        """
        preferred = [decision.output_path] if decision.output_path else []
        fallbacks = distinct_output_candidates(candidate.path, self.config.output_extension)
        for output_path in itertools.chain(preferred, fallbacks):
            if output_path.exists():
                continue
            try:
                output_token = self.lock_manager.acquire(output_path, track=False)
            except LockContention:
                continue
            if output_path.exists():
                self.lock_manager.release(output_token)
                continue
            if output_path != decision.output_path:
                self.logger.info(f"OUTPUT_RENAMED: {candidate.path.name} -> {output_path.name}")
                decision = decision.model_copy(update={"output_path": output_path})
            return decision, output_token
        raise UnsafeOutputPath(candidate.path)

    def _convert(self, candidate: FileCandidate, decision: ConversionDecision) -> TaskOutcome:
        path = candidate.path
        media = candidate.media
        self.logger.info(
            f"PROCESS: {path.name} codec={media.codec if media else 'unknown'} "
            f"size={media.width if media else -1}x{media.height if media else -1} "
            f"audio={decision.audio_mode.value} output={decision.output_path}"
        )
        self.event_bus.publish(JobStarted(candidate=candidate, decision=decision))
        start_time = time.monotonic()

        result = self.supervisor.convert(candidate, decision)

        if not result.success:
            last = result.attempts[-1] if result.attempts else None
            message = (last.error_message if last else None) or "conversion failed"
            outcome = TaskOutcome.INTERRUPTED if result.interrupted else TaskOutcome.FAILED
            self.logger.error(f"CONVERT_FAIL: {path.name} after {len(result.attempts)} attempt(s): {message}")
            self.event_bus.publish(JobFailed(
                candidate=candidate, decision=decision, error_message=message, outcome=outcome
            ))
            return outcome

        stats = self.stats.record_success(candidate.size_bytes, result.output_bytes)
        elapsed = time.monotonic() - start_time
        self.logger.info(
            f"CONVERT_DONE: {path.name} {candidate.size_bytes} -> {result.output_bytes} bytes "
            f"elapsed={elapsed:.2f}s total_saved={stats.percent_saved:.1f}%"
        )
        self.event_bus.publish(JobCompleted(
            candidate=candidate, decision=decision, output_bytes=result.output_bytes, stats=stats
        ))

        try:
            path.unlink()
        except OSError as e:
            # Output is verified, so this is not a conversion failure
            self.logger.error(f"DELETE_FAIL: {path} - {e}")
            return TaskOutcome.CONVERTED
        self.logger.info(f"DELETED_SOURCE: {path}")
        self.event_bus.publish(SourceDeleted(path=path))
        return TaskOutcome.CONVERTED

    def _skip(self, candidate: FileCandidate, outcome: TaskOutcome, reason: str) -> TaskOutcome:
        self.event_bus.publish(FileSkipped(path=candidate.path, outcome=outcome, reason=reason))
        return outcome
