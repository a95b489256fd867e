"""Shared process-management utilities for ebo.

Used by the service launcher (stopping component process groups) and the
port inspectors (killing whatever holds a port).
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal

import psutil

logger = logging.getLogger(__name__)


def kill_pid(pid: int) -> bool:
    """SIGKILL *pid* via psutil.

    Returns ``True`` if a signal was delivered, ``False`` if the process was
    already gone or is this process. ``psutil.AccessDenied`` propagates.
    """
    if pid == os.getpid():
        logger.warning("Refusing to kill own process (PID %d)", pid)
        return False
    try:
        psutil.Process(pid).kill()
    except psutil.NoSuchProcess:
        logger.debug("PID %d already exited", pid)
        return False
    return True


def signal_process_group(pid: int, sig: int) -> bool:
    """Send *sig* to the process group led by *pid*.

    Components are started in their own session, so the group holds the
    shell wrapper and every tool it spawned. Falls back to signalling the
    single PID when the group is gone.
    """
    try:
        os.killpg(pid, sig)
        return True
    except ProcessLookupError:
        pass
    except PermissionError:
        logger.warning("Not permitted to signal process group %d", pid)
    try:
        os.kill(pid, sig)
        return True
    except ProcessLookupError:
        return False


async def stop_process(process: asyncio.subprocess.Process, timeout_s: float = 5.0, force: bool = False) -> None:
    """Stop an asyncio subprocess and its group.

    Sends SIGTERM (or SIGKILL when *force*), waits up to *timeout_s*, then
    force-kills if the process is still alive.
    """
    if process.returncode is not None:
        return

    signal_process_group(process.pid, signal.SIGKILL if force else signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), timeout=timeout_s)
        return
    except asyncio.TimeoutError:
        pass

    logger.warning("PID %d did not exit after %.1fs, sending SIGKILL", process.pid, timeout_s)
    signal_process_group(process.pid, signal.SIGKILL)
    await process.wait()
