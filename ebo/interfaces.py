"""
Interfaces for the E2E Batch Orchestrator

Abstract base classes for the pluggable, OS-facing parts of the core.
This enables dependency injection and mock-based testing without real
processes or sockets.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List


class LaunchState(Enum):
    """Lifecycle of a single component launch."""
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    TIMED_OUT = "timed_out"
    EXITED = "exited"


class BatchState(Enum):
    """Batch runner states."""
    IDLE = "idle"
    LAUNCHING = "launching"
    PROBING = "probing"
    TESTING = "testing"
    RECLAIMING = "reclaiming"
    DONE = "done"
    FAILED = "failed"


class PortInspectorInterface(ABC):
    """
    Abstract interface for finding and killing processes bound to TCP ports.

    Implementations:
    - SsPortInspector: ``ss -tulnp`` based lookup (CI)
    - LsofPortInspector: ``lsof`` based lookup (local machines)
    - MockPortInspector: In-memory for testing
    """

    @abstractmethod
    def list_pids(self, port: int) -> List[int]:
        """Return PIDs currently bound to *port* (empty when free)."""
        pass

    @abstractmethod
    def is_bound(self, port: int) -> bool:
        """Check whether anything still listens on *port*."""
        pass

    @abstractmethod
    def kill(self, pid: int) -> None:
        """Forcefully terminate *pid*. Raises on failure."""
        pass


class ClockInterface(ABC):
    """
    Abstract interface for time operations.

    Enables deterministic testing of retry and cooldown loops.
    """

    @abstractmethod
    def monotonic(self) -> float:
        """Get a monotonic timestamp in seconds."""
        pass

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend for the specified duration."""
        pass
