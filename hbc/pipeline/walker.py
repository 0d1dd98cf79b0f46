import os
import logging
import stat
import threading
from pathlib import Path
from typing import Callable, List, Optional
from hbc.config.models import GeneralConfig
from hbc.domain.errors import RootPathError
from hbc.domain.events import DirectoryEntered, DirectoryLeft
from hbc.domain.models import FileCandidate, TaskOutcome
from hbc.infrastructure.event_bus import EventBus
from hbc.pipeline.scheduler import run_bounded


class DirectoryWalker:
    """Depth-first traversal feeding video files to the scheduler.

    Within a directory, entries are visited in sorted (or reverse-sorted)
    order. Consecutive files form a batch; reaching a subdirectory first runs
    and awaits the pending batch, then recurses. So directory recursion is
    sequential while sibling files convert in parallel.
    """

    def __init__(
        self,
        config: GeneralConfig,
        event_bus: EventBus,
        process_file: Callable[[FileCandidate], TaskOutcome],
        shutdown_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.event_bus = event_bus
        self.process_file = process_file
        self.shutdown_event = shutdown_event or threading.Event()
        self.extensions = {ext.lower() for ext in config.extensions}
        self.logger = logging.getLogger(__name__)
        self.outcomes: List[TaskOutcome] = []

    def walk(self, root: Path) -> List[TaskOutcome]:
        """Walks ``root``; raises RootPathError if it cannot be listed."""
        root = Path(root).resolve()
        try:
            if not root.is_dir():
                raise RootPathError(root, "not a directory")
            entries = self._list(root)
        except OSError as e:
            raise RootPathError(root, str(e))
        self._walk_directory(root, entries)
        return self.outcomes

    def _list(self, directory: Path) -> List[Path]:
        entries = sorted(str(directory / name) for name in os.listdir(directory))
        if self.config.reverse:
            entries.reverse()
        return [Path(entry) for entry in entries]

    def _walk_directory(self, directory: Path, entries: List[Path]) -> None:
        self.logger.info(f"DIR_ENTER: {directory}")
        self.event_bus.publish(DirectoryEntered(directory=directory))
        batch: List[FileCandidate] = []

        for entry in entries:
            if self.shutdown_event.is_set():
                break
            try:
                st = entry.stat()
            except OSError as e:
                self.logger.debug(f"STAT_FAIL: {entry} - {e}")
                continue

            if stat.S_ISDIR(st.st_mode):
                self._run_batch(batch)
                batch = []
                try:
                    children = self._list(entry)
                except OSError as e:
                    self.logger.warning(f"LIST_FAIL: {entry} - {e}")
                    continue
                self._walk_directory(entry, children)
            elif stat.S_ISREG(st.st_mode) and entry.suffix.lower() in self.extensions:
                batch.append(FileCandidate(path=entry, size_bytes=st.st_size))

        self._run_batch(batch)
        self.logger.info(f"DIR_LEAVE: {directory}")
        self.event_bus.publish(DirectoryLeft(directory=directory))

    def _run_batch(self, batch: List[FileCandidate]) -> None:
        if not batch:
            return
        results = run_bounded(batch, self.process_file, self.config.threads, self.shutdown_event)
        self.outcomes.extend(outcome for outcome in results if outcome is not None)
