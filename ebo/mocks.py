"""
Mock implementations for testing.

These classes implement the abstract interfaces (and stand in for the
launcher, prober and executor) with in-memory behavior suitable for unit
testing without real processes, sockets or browsers.
"""

from typing import Dict, Iterable, List, Optional, Set

from .errors import OrchestratorError
from .executor import ExecutorOutcome
from .interfaces import ClockInterface, LaunchState, PortInspectorInterface
from .topology import Batch


class MockClock(ClockInterface):
    """
    Mock clock: sleeping only advances virtual time.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now += seconds


class MockPortInspector(PortInspectorInterface):
    """
    Mock port table.

    Test code binds PIDs to ports with bind(); kill() frees every port the
    PID held unless the port was made sticky with stick().
    """

    def __init__(self):
        self._owners: Dict[int, List[int]] = {}
        self._sticky: Set[int] = set()
        self._unkillable: Set[int] = set()
        self.lookups: List[int] = []
        self.bound_checks: List[int] = []
        self.killed: List[int] = []

    # Test helper methods

    def bind(self, port: int, *pids: int) -> None:
        self._owners.setdefault(port, []).extend(pids)

    def stick(self, port: int) -> None:
        """Keep *port* reported as bound even after its owners die."""
        self._sticky.add(port)

    def make_unkillable(self, pid: int) -> None:
        self._unkillable.add(pid)

    # Interface

    def list_pids(self, port: int) -> List[int]:
        self.lookups.append(port)
        return list(self._owners.get(port, []))

    def is_bound(self, port: int) -> bool:
        self.bound_checks.append(port)
        return port in self._sticky or bool(self._owners.get(port))

    def kill(self, pid: int) -> None:
        if pid in self._unkillable:
            raise PermissionError(f"Operation not permitted: {pid}")
        self.killed.append(pid)
        for pids in self._owners.values():
            while pid in pids:
                pids.remove(pid)


class FakeHandle:
    """Stands in for :class:`ebo.launcher.ComponentHandle`."""

    def __init__(self, component: str, port: int, pid: int = 0):
        self.component = component
        self.port = port
        self.pid = pid
        self.state = LaunchState.READY
        self.terminated = False

    async def terminate(self, force: bool = False, timeout_s: float = 5.0) -> None:
        self.terminated = True


class FakeLauncher:
    """Launcher double: components listed in *failures* raise their error."""

    def __init__(self, failures: Optional[Dict[str, BaseException]] = None):
        self._failures = failures or {}
        self.launched: List[tuple] = []
        self.handles: List[FakeHandle] = []

    async def launch(self, component: str, port: int) -> FakeHandle:
        self.launched.append((component, port))
        if component in self._failures:
            raise self._failures[component]
        handle = FakeHandle(component, port, pid=10000 + len(self.handles))
        self.handles.append(handle)
        return handle


class FakeProber:
    def __init__(self, error: Optional[BaseException] = None):
        self._error = error
        self.probed: List[List[int]] = []

    async def wait_all(self, ports: Iterable[int], host: str = "localhost") -> None:
        self.probed.append(list(ports))
        if self._error is not None:
            raise self._error


class FakeExecutor:
    """Executor double returning canned outcomes per batch name."""

    def __init__(self, errors: Optional[Dict[str, OrchestratorError]] = None, raises: Optional[BaseException] = None):
        self._errors = errors or {}
        self._raises = raises
        self.ran: List[str] = []

    async def run(self, batch: Batch) -> ExecutorOutcome:
        self.ran.append(batch.name)
        if self._raises is not None:
            raise self._raises
        error = self._errors.get(batch.name)
        return ExecutorOutcome(
            batch=batch.name,
            exit_code=1 if error else 0,
            unexpected=getattr(error, "unexpected", 0),
            error=error,
        )
