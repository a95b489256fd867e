"""Batch runner: one batch end to end.

    IDLE -> LAUNCHING -> PROBING -> TESTING -> RECLAIMING -> DONE | FAILED

A failed launch or probe skips straight to RECLAIMING. Reclamation sits in
a ``finally`` block: whatever happens before it, every process this runner
started is stopped and every port the batch was allocated is reclaimed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from ebo.config import DEFAULT_BASE_PORT
from ebo.errors import OrchestratorError
from ebo.executor import ExecutorOutcome, PlaywrightExecutor
from ebo.interfaces import BatchState
from ebo.launcher import ComponentHandle, ServiceLauncher
from ebo.port_reclaim import PortReclaimer, ReclaimResult
from ebo.ports import assign_ports
from ebo.readiness import ReadinessProber
from ebo.topology import Batch

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    batch: str
    ports: dict[str, int]
    state: BatchState = BatchState.IDLE
    history: list[BatchState] = field(default_factory=lambda: [BatchState.IDLE])
    failed_stage: Optional[BatchState] = None
    error: Optional[BaseException] = None
    outcome: Optional[ExecutorOutcome] = None
    reclaim: Optional[ReclaimResult] = None

    @property
    def failed(self) -> bool:
        """Stage failure OR the executor reported a failure."""
        if self.failed_stage is not None:
            return True
        return self.outcome is not None and self.outcome.failed

    def to_dict(self) -> dict:
        return {
            "batch": self.batch,
            "ports": self.ports,
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "failed": self.failed,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": str(self.error) if self.error else None,
            "unexpected": self.outcome.unexpected if self.outcome else None,
        }


class BatchRunner:
    def __init__(
        self,
        launcher: ServiceLauncher,
        prober: ReadinessProber,
        executor: PlaywrightExecutor,
        reclaimer: PortReclaimer,
        base_port: int = DEFAULT_BASE_PORT,
    ):
        self._launcher = launcher
        self._prober = prober
        self._executor = executor
        self._reclaimer = reclaimer
        self._base_port = base_port

    @staticmethod
    def _enter(result: BatchResult, state: BatchState) -> None:
        result.state = state
        result.history.append(state)
        logger.debug("[%s] -> %s", result.batch, state.value)

    async def run(self, batch: Batch) -> BatchResult:
        ports = assign_ports(batch.components, self._base_port)
        result = BatchResult(batch=batch.name, ports=ports)
        handles: list[ComponentHandle] = []
        logger.info(
            "Starting batch: %s - Components: %s",
            batch.name,
            ", ".join(f"{c}:{p}" for c, p in ports.items()),
        )

        try:
            self._enter(result, BatchState.LAUNCHING)
            await self._launch_all(ports, handles)

            self._enter(result, BatchState.PROBING)
            await self._prober.wait_all(ports.values())

            self._enter(result, BatchState.TESTING)
            result.outcome = await self._executor.run(batch)
        except OrchestratorError as e:
            result.failed_stage = result.state
            result.error = e
            logger.error("Batch %s failed during %s: %s", batch.name, result.state.value, e)
        except Exception as e:
            result.failed_stage = result.state
            result.error = e
            if result.state is not BatchState.TESTING:
                # Launch and probe failures of any kind fail only this batch.
                logger.error("Batch %s failed during %s: %r", batch.name, result.state.value, e)
            else:
                logger.error("Batch %s aborted during %s: %r", batch.name, result.state.value, e)
                raise
        except BaseException as e:
            result.failed_stage = result.state
            result.error = e
            logger.error("Batch %s aborted during %s: %r", batch.name, result.state.value, e)
            raise
        finally:
            self._enter(result, BatchState.RECLAIMING)
            await self._stop_handles(handles)
            result.reclaim = await self._reclaimer.reclaim(ports.values())
            self._enter(result, BatchState.FAILED if result.failed else BatchState.DONE)

        logger.info("Batch %s finished: %s", batch.name, result.state.value)
        return result

    async def _launch_all(self, ports: dict[str, int], handles: list[ComponentHandle]) -> None:
        """Launch every component concurrently; raise the first failure.

        Successful handles are appended to *handles* before anything is
        raised so the caller can stop them.
        """
        outcomes = await asyncio.gather(
            *(self._launcher.launch(component, port) for component, port in ports.items()),
            return_exceptions=True,
        )
        errors: list[BaseException] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                errors.append(outcome)
            else:
                handles.append(outcome)
        for e in errors[1:]:
            logger.error("Additional launch failure: %s", e)
        if errors:
            raise errors[0]

    async def _stop_handles(self, handles: list[ComponentHandle]) -> None:
        if not handles:
            return
        results = await asyncio.gather(*(h.terminate() for h in handles), return_exceptions=True)
        for handle, outcome in zip(handles, results):
            if isinstance(outcome, BaseException):
                logger.warning("Failed to stop %s (PID %d): %s", handle.component, handle.pid, outcome)
