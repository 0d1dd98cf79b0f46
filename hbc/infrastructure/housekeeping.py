import os
import logging
from pathlib import Path
from hbc.infrastructure.lock import LOCK_SUFFIX

class HousekeepingService:
    """Service for cleaning up sentinels left behind by crashed runs."""

    def cleanup_stale_locks(self, directory: Path) -> int:
        """Recursively removes all .lock files in the directory. Returns how many were removed."""
        logger = logging.getLogger(__name__)
        removed = 0
        for root, dirs, files in os.walk(directory):
            for file in files:
                if file.endswith(LOCK_SUFFIX):
                    try:
                        (Path(root) / file).unlink()
                        removed += 1
                    except OSError:
                        pass
        if removed:
            logger.info(f"Removed {removed} stale lock file(s) under {directory}")
        return removed
