"""Run orchestrator for HBC.

Wires the per-run components together (statistics, lock manager,
classifier, encoder supervisor, file task, directory walker) and owns the
interrupt path: on Ctrl+C the shutdown event stops scheduling and
terminates running ffmpeg processes, and the most recent lock sentinel is
released before the interrupt propagates.
"""

import logging
import threading
from collections import Counter
from pathlib import Path
from typing import Dict, Optional
from hbc.config.models import AppConfig
from hbc.domain.events import RunFinished
from hbc.domain.models import RunStatsSnapshot, TaskOutcome
from hbc.infrastructure.event_bus import EventBus
from hbc.infrastructure.ffmpeg import FFmpegAdapter
from hbc.infrastructure.ffprobe import FFprobeAdapter
from hbc.infrastructure.lock import LockManager
from hbc.pipeline.classifier import MediaClassifier
from hbc.pipeline.stats import RunStatistics
from hbc.pipeline.supervisor import EncoderSupervisor
from hbc.pipeline.task import FileTask
from hbc.pipeline.walker import DirectoryWalker


class Orchestrator:
    """Converts every eligible video under a root directory.

    Args:
        config: AppConfig with the general conversion settings.
        event_bus: EventBus for publishing pipeline events.
        ffprobe_adapter: FFprobeAdapter used by the classifier.
        ffmpeg_adapter: FFmpegAdapter running single attempts.
        lock_manager: Optional shared LockManager (a fresh one by default).
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        ffprobe_adapter: FFprobeAdapter,
        ffmpeg_adapter: FFmpegAdapter,
        lock_manager: Optional[LockManager] = None,
    ):
        self.config = config
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)
        self.shutdown_event = threading.Event()
        self.stats = RunStatistics()
        self.lock_manager = lock_manager or LockManager()

        general = config.general
        self.classifier = MediaClassifier(general, ffprobe_adapter)
        self.supervisor = EncoderSupervisor(
            general, event_bus, ffmpeg_adapter, shutdown_event=self.shutdown_event
        )
        self.task = FileTask(
            general, event_bus, self.classifier, self.lock_manager, self.supervisor, self.stats
        )
        self.outcome_counts: Dict[TaskOutcome, int] = {}

    def run(self, root: Path) -> RunStatsSnapshot:
        walker = DirectoryWalker(
            self.config.general, self.event_bus, self.task.process, shutdown_event=self.shutdown_event
        )
        self.logger.info(f"Run started: root={root}, threads={self.config.general.threads}")
        try:
            outcomes = walker.walk(root)
        except KeyboardInterrupt:
            self.logger.info("Ctrl+C detected - stopping new tasks and interrupting active jobs...")
            self.interrupt()
            self.outcome_counts = dict(Counter(walker.outcomes))
            self.event_bus.publish(RunFinished(stats=self.stats.snapshot(), interrupted=True))
            raise

        self.outcome_counts = dict(Counter(outcomes))
        stats = self.stats.snapshot()
        summary = ", ".join(f"{k.value.lower()}={v}" for k, v in sorted(self.outcome_counts.items()))
        self.logger.info(
            f"Run finished: {summary or 'no files'}; input={stats.total_input} "
            f"output={stats.total_output} saved={stats.percent_saved:.1f}%"
        )
        self.event_bus.publish(RunFinished(stats=stats))
        return stats

    def interrupt(self) -> None:
        """Stops scheduling, signals running encoders and releases the most recent lock."""
        self.shutdown_event.set()
        self.lock_manager.release_last()
