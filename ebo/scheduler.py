"""Batch scheduler: run batches one after another, then clean up and merge.

Two modes:

* all batches, in sorted name order, strictly sequential;
* a single batch selected by number (``2`` -> ``batch2``).

Whatever happens, the scheduler finishes by reclaiming the ports of
*every* batch in the topology (not just the ones it ran), merging the
per-batch reports and printing the summary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Union

from ebo.batch_runner import BatchResult, BatchRunner
from ebo.config import OrchestratorConfig
from ebo.executor import PlaywrightExecutor
from ebo.implementations import RealClock, make_port_inspector
from ebo.interfaces import ClockInterface, PortInspectorInterface
from ebo.launcher import ServiceLauncher
from ebo.merger import MergeResult, merge_results
from ebo.port_reclaim import PortReclaimer, PortRegistry
from ebo.ports import all_ports
from ebo.readiness import ReadinessProber
from ebo.summary import summarize_results
from ebo.topology import Batch, Topology, resolve_batch

logger = logging.getLogger(__name__)


class BatchScheduler:
    def __init__(
        self,
        topology: Topology,
        runner: BatchRunner,
        reclaimer: PortReclaimer,
        base_port: int,
        results_dir: Union[str, Path] = ".",
        merged_file: str = "final_results.json",
        emit: Optional[Callable[[str], None]] = None,
    ):
        self._topology = topology
        self._runner = runner
        self._reclaimer = reclaimer
        self._base_port = base_port
        self._results_dir = results_dir
        self._merged_file = merged_file
        self._emit = emit or logger.info
        self.results: list[BatchResult] = []
        self.merge: Optional[MergeResult] = None

    def select(self, batch_number: Optional[Union[int, str]] = None) -> list[Batch]:
        """Batches to run; raises ``UnknownBatch`` for a bad number."""
        if batch_number is None:
            return list(self._topology.values())
        return [resolve_batch(self._topology, batch_number)]

    async def run(self, batch_number: Optional[Union[int, str]] = None) -> bool:
        """Run the selected batches. Returns True if anything failed.

        Raises:
            UnknownBatch: Before starting anything, for a bad *batch_number*.
        """
        batches = self.select(batch_number)
        failed = False

        try:
            for batch in batches:
                logger.info("Starting %s components...", batch.name)
                result = await self._runner.run(batch)
                self.results.append(result)
                if result.failed:
                    failed = True
        except Exception:
            logger.exception("Critical error encountered")
            failed = True
        finally:
            if not await self._reclaim_everything():
                failed = True
            if not self._finalize_reports():
                failed = True

        if failed:
            logger.error("Some tests failed.")
        else:
            logger.info("All tests passed.")
        return failed

    async def _reclaim_everything(self) -> bool:
        try:
            await self._reclaimer.reclaim(all_ports(self._topology, self._base_port))
        except Exception:
            logger.exception("Final port cleanup failed")
            return False
        return True

    def _finalize_reports(self) -> bool:
        """Merge and summarize. A skipped merge is not a failure."""
        try:
            self.merge = merge_results(self._results_dir, self._merged_file)
            if self.merge is not None:
                for line in summarize_results(self.merge.path):
                    self._emit(line)
        except Exception:
            logger.exception("Failed to merge or summarize test results")
            return False
        return True


def create_scheduler(
    config: OrchestratorConfig,
    topology: Topology,
    inspector: Optional[PortInspectorInterface] = None,
    clock: Optional[ClockInterface] = None,
    emit: Optional[Callable[[str], None]] = None,
) -> BatchScheduler:
    """Wire the real launcher, prober, executor and reclaimer from *config*.

    One :class:`PortRegistry` is created here and shared by every
    reclamation in the run.
    """
    clock = clock or RealClock()
    reclaimer = PortReclaimer(
        inspector or make_port_inspector(config.ci),
        PortRegistry(),
        clock=clock,
        release_attempts=config.release_attempts,
        release_interval_s=config.release_interval_s,
        cooldown_s=config.cooldown_s,
    )
    runner = BatchRunner(
        launcher=ServiceLauncher(config),
        prober=ReadinessProber(
            attempts=config.probe_attempts,
            delay_s=config.probe_delay_s,
            request_timeout_s=config.probe_request_timeout_s,
            clock=clock,
        ),
        executor=PlaywrightExecutor(config),
        reclaimer=reclaimer,
        base_port=config.base_port,
    )
    return BatchScheduler(
        topology,
        runner,
        reclaimer,
        base_port=config.base_port,
        results_dir=config.results_dir,
        merged_file=config.merged_file,
        emit=emit,
    )
