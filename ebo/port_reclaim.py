"""Port reclamation: free TCP ports by killing whatever holds them.

Reclaiming a set of ports:

1. skip ports already in the run's :class:`PortRegistry`;
2. look up owning PIDs and SIGKILL them (failures are warnings);
3. poll until none of the ports is bound, or the budget runs out;
4. mark the ports reclaimed and cool down before anyone reuses them.

When the poll budget runs out the ports are still marked reclaimed
(``mark_degraded_as_reclaimed``), so a stuck socket cannot cause every
later batch to repeat the same kill/poll cycle.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from ebo.errors import PortReclaimDegraded
from ebo.interfaces import ClockInterface, PortInspectorInterface

logger = logging.getLogger(__name__)


class PortRegistry:
    """Append-only set of ports reclaimed during this run.

    Owned by the scheduler and shared with the reclaimer. Only touched from
    the scheduler's task, so it needs no locking while batches stay
    sequential.
    """

    def __init__(self) -> None:
        self._ports: set[int] = set()

    def __contains__(self, port: object) -> bool:
        return port in self._ports

    def __len__(self) -> int:
        return len(self._ports)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._ports))

    def add(self, port: int) -> None:
        self._ports.add(port)

    def pending(self, ports: Iterable[int]) -> list[int]:
        """Ports from *ports* not yet reclaimed, de-duplicated, order kept."""
        out: list[int] = []
        for port in ports:
            if port not in self._ports and port not in out:
                out.append(port)
        return out


@dataclass
class ReclaimResult:
    requested: list[int]
    skipped: list[int] = field(default_factory=list)
    killed: dict[int, list[int]] = field(default_factory=dict)
    still_bound: list[int] = field(default_factory=list)
    degraded: Optional[PortReclaimDegraded] = None

    @property
    def noop(self) -> bool:
        """True when every requested port had already been reclaimed."""
        return not self.requested or set(self.skipped) >= set(self.requested)


class PortReclaimer:
    """Find-and-kill-by-port with bounded wait-for-release."""

    def __init__(
        self,
        inspector: PortInspectorInterface,
        registry: PortRegistry,
        clock: Optional[ClockInterface] = None,
        release_attempts: int = 10,
        release_interval_s: float = 1.0,
        cooldown_s: float = 5.0,
        mark_degraded_as_reclaimed: bool = True,
    ):
        if clock is None:
            from ebo.implementations import RealClock
            clock = RealClock()
        self._inspector = inspector
        self._registry = registry
        self._clock = clock
        self._release_attempts = max(1, release_attempts)
        self._release_interval_s = release_interval_s
        self._cooldown_s = cooldown_s
        self.mark_degraded_as_reclaimed = mark_degraded_as_reclaimed

    @property
    def registry(self) -> PortRegistry:
        return self._registry

    async def reclaim(self, ports: Iterable[int]) -> ReclaimResult:
        requested = list(ports)
        pending = self._registry.pending(requested)
        result = ReclaimResult(
            requested=requested,
            skipped=[p for p in requested if p not in pending],
        )
        if not pending:
            logger.info("All specified ports already stopped. Skipping cleanup.")
            return result

        logger.info("Stopping processes on ports: %s...", ", ".join(str(p) for p in pending))
        for port in pending:
            result.killed[port] = await self._kill_port_owners(port)

        result.still_bound = await self._wait_for_release(pending)
        if result.still_bound:
            result.degraded = PortReclaimDegraded(result.still_bound, self._release_attempts)
            logger.warning("%s", result.degraded)

        for port in pending:
            if port in result.still_bound and not self.mark_degraded_as_reclaimed:
                continue
            self._registry.add(port)

        logger.info("Waiting %gs before reusing ports to ensure full cleanup...", self._cooldown_s)
        await self._clock.sleep(self._cooldown_s)
        return result

    async def _kill_port_owners(self, port: int) -> list[int]:
        logger.info("Checking if port %d is in use...", port)
        try:
            pids = await asyncio.to_thread(self._inspector.list_pids, port)
        except Exception as e:
            logger.warning("Failed to check processes on port %d: %s", port, e)
            return []

        if not pids:
            logger.info("No processes found on port %d.", port)
            return []

        logger.info("Found processes on port %d: %s", port, ", ".join(str(p) for p in pids))
        killed = []
        for pid in pids:
            try:
                await asyncio.to_thread(self._inspector.kill, pid)
                killed.append(pid)
            except Exception as e:
                logger.warning("Failed to kill PID %d on port %d: %s", pid, port, e)
        return killed

    async def _is_bound(self, port: int) -> bool:
        try:
            return await asyncio.to_thread(self._inspector.is_bound, port)
        except Exception as e:
            logger.warning("Could not check port %d, assuming free: %s", port, e)
            return False

    async def _wait_for_release(self, ports: list[int]) -> list[int]:
        """Poll until *ports* are free; return those still bound at the end."""
        logger.info("Waiting for ports to be completely released...")
        in_use = list(ports)
        for attempt in range(1, self._release_attempts + 1):
            in_use = [p for p in ports if await self._is_bound(p)]
            if not in_use:
                logger.info("All ports are now fully free.")
                return []
            if attempt < self._release_attempts:
                logger.info(
                    "Ports still in use: %s... retrying in %gs.",
                    ", ".join(str(p) for p in in_use),
                    self._release_interval_s,
                )
                await self._clock.sleep(self._release_interval_s)
        return in_use
