import threading
from hbc.domain.models import RunStatsSnapshot


class RunStatistics:
    """Run-wide byte counters, folded in once per successful conversion.

    Shared by all concurrent file tasks; every update happens under one lock.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._total_input = 0
        self._total_output = 0
        self._files_converted = 0

    def record_success(self, original_bytes: int, output_bytes: int) -> RunStatsSnapshot:
        with self._lock:
            self._total_input += original_bytes
            self._total_output += output_bytes
            self._files_converted += 1
            return self._snapshot_locked()

    def snapshot(self) -> RunStatsSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def _snapshot_locked(self) -> RunStatsSnapshot:
        return RunStatsSnapshot(
            total_input=self._total_input,
            total_output=self._total_output,
            files_converted=self._files_converted,
        )
