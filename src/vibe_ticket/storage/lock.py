"""Advisory locking for the storage root."""

from __future__ import annotations

import fcntl
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from ..errors import StorageIOError, StorageLockedError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10.0
INITIAL_BACKOFF = 0.01
MAX_BACKOFF = 0.2


class StorageLock:
    """fcntl-based lock on a single lock file.

    Writers take an exclusive lock, readers a shared one. Acquisition polls
    with exponential backoff and gives up after ``timeout`` seconds.

    Each acquisition opens its own file description, so two acquisitions in
    the same process exclude each other too. Do not nest them.
    """

    def __init__(self, lock_path: Path, timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.lock_path = lock_path
        self.timeout = timeout

    @contextmanager
    def exclusive(self) -> Generator[None, None, None]:
        with self._acquire(fcntl.LOCK_EX):
            yield

    @contextmanager
    def shared(self) -> Generator[None, None, None]:
        with self._acquire(fcntl.LOCK_SH):
            yield

    @contextmanager
    def _acquire(self, mode: int) -> Generator[None, None, None]:
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            # Append mode so opening never truncates a lock file held by someone else
            lock_fd = open(self.lock_path, "a")
        except OSError as e:
            raise StorageIOError.wrap("open lock file", self.lock_path, e) from e

        with lock_fd:
            self._wait_for_lock(lock_fd, mode)
            try:
                yield
            finally:
                fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)

    def _wait_for_lock(self, lock_fd, mode: int) -> None:
        deadline = time.monotonic() + self.timeout
        delay = INITIAL_BACKOFF
        while True:
            try:
                fcntl.flock(lock_fd.fileno(), mode | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                pass
            except OSError as e:
                raise StorageIOError.wrap("lock", self.lock_path, e) from e

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise StorageLockedError(self.lock_path, self.timeout)
            logger.debug("Waiting for storage lock %s (%.3fs)", self.lock_path, delay)
            time.sleep(min(delay, remaining))
            delay = min(delay * 2, MAX_BACKOFF)
