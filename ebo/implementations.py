"""
Real implementations of interfaces for production use.

These classes wrap actual system resources (OS port tables, processes,
the event loop clock) and implement the abstract interfaces.
"""

from typing import List
import asyncio
import logging
import re
import subprocess
import time

from .interfaces import ClockInterface, PortInspectorInterface
from .process_utils import kill_pid

logger = logging.getLogger(__name__)

_PID_RE = re.compile(r"pid=(\d+)")


class RealClock(ClockInterface):
    """
    Real clock implementation.
    """

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def _run(args: List[str], timeout: float = 10.0) -> subprocess.CompletedProcess:
    return subprocess.run(args, capture_output=True, text=True, timeout=timeout)


def _local_port(address: str) -> str:
    # 0.0.0.0:8081, [::]:8081, *:8081, 127.0.0.1%lo:8081
    return address.rsplit(":", 1)[-1]


def parse_ss_listeners(output: str, port: int) -> List[List[int]]:
    """Return one PID list per ``ss -tulnp`` row whose local port is *port*.

    Rows are kept even when no ``pid=`` is visible (unprivileged ``ss``
    hides other users' processes), so callers can still tell the port
    is bound.
    """
    rows = []
    wanted = str(port)
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 5 or parts[0] == "Netid":
            continue
        if _local_port(parts[4]) != wanted:
            continue
        rows.append([int(p) for p in _PID_RE.findall(line)])
    return rows


class _KillingInspector(PortInspectorInterface):
    def kill(self, pid: int) -> None:
        kill_pid(pid)


class SsPortInspector(_KillingInspector):
    """
    Port lookup via ``ss -tulnp``, available on CI Linux images.
    """

    def _listeners(self, port: int) -> List[List[int]]:
        result = _run(["ss", "-tulnp"])
        if result.returncode != 0:
            raise OSError(f"ss exited with {result.returncode}: {result.stderr.strip()}")
        return parse_ss_listeners(result.stdout, port)

    def list_pids(self, port: int) -> List[int]:
        pids: List[int] = []
        for row in self._listeners(port):
            for pid in row:
                if pid not in pids:
                    pids.append(pid)
        return pids

    def is_bound(self, port: int) -> bool:
        return bool(self._listeners(port))


class LsofPortInspector(_KillingInspector):
    """
    Port lookup via ``lsof``, the usual tool on developer machines.
    """

    def list_pids(self, port: int) -> List[int]:
        # lsof exits 1 when nothing matches; that is not an error here.
        result = _run(["lsof", "-ti", f":{port}"])
        pids: List[int] = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if line.isdigit() and int(line) not in pids:
                pids.append(int(line))
        return pids

    def is_bound(self, port: int) -> bool:
        result = _run(["lsof", "-i", f":{port}"])
        return bool(result.stdout.strip())


def make_port_inspector(ci: bool) -> PortInspectorInterface:
    """Select the lookup strategy for the current environment."""
    return SsPortInspector() if ci else LsofPortInspector()
