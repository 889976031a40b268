"""
Advisory file lock for the ledger's read-modify-write cycle.

The lock is an exclusive ``flock`` on a sidecar ``<ledger>.lock`` file.
Git replaces the ledger file itself on checkout/reset, which would leave
a lock held on a stale inode, so the sidecar is what gets locked.

It only serialises cooperating processes on the same filesystem;
concurrent writers on other machines are arbitrated by the git push.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import IO

from build_ledger.core.errors import LockAcquisitionError

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
_POLL_INTERVAL = 0.05


def lock_path_for(path: Path) -> Path:
    """Return the sidecar lock path for a ledger file."""
    return path.with_name(path.name + LOCK_SUFFIX)


class LedgerLock:
    """Exclusive advisory lock keyed by a ledger file path.

    Usable as a context manager::

        with LedgerLock(path, timeout=30):
            ...

    ``release()`` is idempotent, so callers can release in a ``finally``
    regardless of whether ``acquire()`` succeeded.
    """

    def __init__(self, path: Path, *, timeout: float = 60.0):
        self.path = path
        self.lock_path = lock_path_for(path)
        self.timeout = timeout
        self._handle: IO[bytes] | None = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    def acquire(self) -> None:
        """Block until the lock is held or ``timeout`` seconds pass.

        Raises:
            LockAcquisitionError: On timeout or filesystem error.
        """
        if self._handle is not None:
            return

        if not self.path.exists():
            raise LockAcquisitionError(f"Cannot lock missing file: {self.path}")

        try:
            handle = open(self.lock_path, "a+b")
        except OSError as e:
            raise LockAcquisitionError(f"Cannot open lock file {self.lock_path}: {e}") from e

        deadline = time.monotonic() + self.timeout
        while True:
            try:
                _try_lock(handle)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    handle.close()
                    raise LockAcquisitionError(
                        f"Timed out after {self.timeout:g}s waiting for lock on {self.path}"
                    ) from None
                time.sleep(_POLL_INTERVAL)
            except OSError as e:
                handle.close()
                raise LockAcquisitionError(f"Cannot lock {self.path}: {e}") from e

        self._handle = handle
        logger.debug("Acquired lock %s", self.lock_path)

    def release(self) -> None:
        """Release the lock if held."""
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        try:
            _unlock(handle)
        finally:
            handle.close()
        logger.debug("Released lock %s", self.lock_path)

    def __enter__(self) -> LedgerLock:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


def _try_lock(handle: IO[bytes]) -> None:
    """Non-blocking exclusive lock. Raises BlockingIOError when contended."""
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError as e:
            raise BlockingIOError(str(e)) from e
    else:
        import fcntl

        fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(handle: IO[bytes]) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle, fcntl.LOCK_UN)
