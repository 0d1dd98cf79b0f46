import os
import logging
import threading
from pathlib import Path
from typing import Optional
from hbc.domain.errors import LockContention
from hbc.domain.models import LockToken

LOCK_SUFFIX = ".lock"


def lock_path_for(path: Path) -> Path:
    return path.with_name(path.name + LOCK_SUFFIX)


def is_claimed(path: Path) -> bool:
    return lock_path_for(path).exists()


class LockManager:
    """Per-file exclusive claims backed by ``<file>.lock`` sentinels.

    The sentinel is created with O_CREAT | O_EXCL, which is atomic on local
    POSIX filesystems and on NTFS, so two HBC processes (or two tasks in one
    process) can never both own the same file. A sentinel left behind by a
    crashed run keeps the file skipped until it is removed by hand or with
    ``--clean-locks``.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._last_token: Optional[LockToken] = None

    def acquire(self, path: Path, track: bool = True) -> LockToken:
        """Creates the sentinel for ``path``; raises LockContention if it exists.

        Untracked claims (output names) are never returned by ``release_last``.
        """
        lock_path = lock_path_for(path)
        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            raise LockContention(path, lock_path)
        os.close(fd)

        token = LockToken(path=path, lock_path=lock_path)
        if track:
            with self._lock:
                self._last_token = token
        self.logger.debug(f"LOCK_ACQUIRED: {lock_path}")
        return token

    def release(self, token: LockToken) -> None:
        try:
            token.lock_path.unlink()
            self.logger.debug(f"LOCK_RELEASED: {token.lock_path}")
        except OSError:
            pass
        with self._lock:
            if self._last_token == token:
                self._last_token = None

    @property
    def last_token(self) -> Optional[LockToken]:
        with self._lock:
            return self._last_token

    def release_last(self) -> Optional[LockToken]:
        """Releases the most recently acquired lock that is still held (interrupt path)."""
        token = self.last_token
        if token is not None:
            self.release(token)
            self.logger.info(f"LOCK_RELEASED_ON_INTERRUPT: {token.lock_path}")
        return token
