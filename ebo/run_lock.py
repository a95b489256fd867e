#!/usr/bin/env python3
"""
Single-run enforcement for the orchestrator.

Two orchestrator runs on one machine would allocate the same ports and
kill each other's components, so ``ebo run`` holds an exclusive
portalocker lock on a PID file for its whole lifetime.
"""

from __future__ import annotations

import atexit
import logging
import os
from typing import Optional

import portalocker

logger = logging.getLogger(__name__)


def _read_pid(path: str) -> Optional[int]:
    try:
        with open(path, "r") as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return None


class RunLock:
    """
    Exclusive lock held for the duration of an orchestrator run.

    Usage:
        lock = RunLock("/tmp/ebo-run.lock")
        if not lock.acquire():
            print(f"Another run is active (PID {lock.holder_pid()})")
            sys.exit(1)
        try:
            ...
        finally:
            lock.release()
    """

    def __init__(self, path: str):
        self._path = path
        self._fd: Optional[int] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def held(self) -> bool:
        return self._fd is not None

    def holder_pid(self) -> Optional[int]:
        """PID recorded by the current holder, if any."""
        return _read_pid(self._path)

    def acquire(self) -> bool:
        """Try to take the lock without blocking. Returns True on success."""
        if self._fd is not None:
            return True

        parent = os.path.dirname(self._path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        fd = os.open(self._path, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            portalocker.lock(fd, portalocker.LOCK_EX | portalocker.LOCK_NB)
        except (portalocker.LockException, OSError) as e:
            os.close(fd)
            logger.error("Could not acquire run lock %s (held by PID %s): %s", self._path, self.holder_pid(), e)
            return False

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        os.fsync(fd)
        self._fd = fd
        atexit.register(self.release)
        logger.debug("Acquired run lock %s (PID %d)", self._path, os.getpid())
        return True

    def release(self) -> None:
        """Release the lock (idempotent)."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.ftruncate(fd, 0)
            portalocker.unlock(fd)
        except OSError as e:
            logger.warning("Error releasing run lock %s: %s", self._path, e)
        finally:
            os.close(fd)
        logger.debug("Released run lock %s", self._path)

    def __enter__(self) -> "RunLock":
        if not self.acquire():
            raise RuntimeError(f"Could not acquire run lock {self._path}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False
