"""Cross-process lock guarding a bundle staging directory.

Builders running in separate processes may target the same bundle name and
version. Ownership of ``<staging dir>.lock`` is established only by creating
the file exclusively; its contents are never inspected.
"""

from __future__ import annotations

import logging
import os
import random
import time
from pathlib import Path
from typing import Callable, Optional, Union

from ..errors import FilesystemError, LockTimeoutError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
MAX_ATTEMPTS = 100
BACKOFF_MIN = 0.5
BACKOFF_MAX = 2.5


def lock_path_for(path: Union[str, Path]) -> Path:
    """Return the sentinel path used to lock ``path``."""

    path = Path(path)
    return path.with_name(path.name + LOCK_SUFFIX)


class FileLock:
    """Exclusive lock backed by an atomically created sentinel file."""

    def __init__(
        self,
        path: Union[str, Path],
        *,
        max_attempts: int = MAX_ATTEMPTS,
        backoff: tuple[float, float] = (BACKOFF_MIN, BACKOFF_MAX),
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.path = lock_path_for(path)
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> "FileLock":
        attempts = 0
        while not self._try_create():
            attempts += 1
            if attempts > self.max_attempts:
                raise LockTimeoutError(str(self.path), self.max_attempts)
            delay = self._rng.uniform(*self.backoff)
            logger.debug("Lock %s is busy, retrying in %.2fs (attempt %d)", self.path, delay, attempts)
            self._sleep(delay)
        self._held = True
        logger.debug("Acquired lock %s", self.path)
        return self

    def release(self) -> None:
        """Delete the sentinel. Safe to call more than once; errors are logged only."""

        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except OSError as exc:
            logger.debug("Failed to remove lock file %s: %s", self.path, exc)
        else:
            logger.debug("Released lock %s", self.path)

    def _try_create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except PermissionError as exc:
            # Windows reports a pending delete of the sentinel as access denied.
            if os.name == "nt" or self.path.exists():
                return False
            raise FilesystemError(f"Cannot create lock file {self.path}: {exc}") from exc
        except OSError as exc:
            raise FilesystemError(f"Cannot create lock file {self.path}: {exc}") from exc
        os.close(fd)
        return True

    def __enter__(self) -> "FileLock":
        if not self._held:
            self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


def acquire(path: Union[str, Path], **kwargs: object) -> FileLock:
    """Acquire the lock for ``path`` and return the held handle."""

    return FileLock(path, **kwargs).acquire()  # type: ignore[arg-type]
