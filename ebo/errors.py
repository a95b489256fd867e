"""Error taxonomy for the batch orchestrator.

Stage errors (``StartupTimeout``, ``PrematureExit``, ``ServiceUnavailable``)
fail only the batch they occur in. ``PortReclaimDegraded`` and
``ReportMergeSkipped`` are soft conditions: they are built so they can be
logged and recorded, but callers never let them escape as run failures.
"""

from __future__ import annotations

from typing import Optional, Sequence


class OrchestratorError(Exception):
    """Base class for every error raised by ``ebo``."""


class ConfigError(OrchestratorError):
    """Invalid configuration file or environment override."""


class BatchStageError(OrchestratorError):
    """A launch or readiness stage failed for one component of a batch."""

    def __init__(self, component: str, message: str):
        super().__init__(message)
        self.component = component


class StartupTimeout(BatchStageError):
    def __init__(self, component: str, timeout_s: float):
        super().__init__(component, f"{component} timed out after {timeout_s:g} seconds and was killed")
        self.timeout_s = timeout_s


class PrematureExit(BatchStageError):
    def __init__(self, component: str, exit_code: Optional[int]):
        super().__init__(
            component,
            f"{component} exited unexpectedly with code {exit_code} before it was ready",
        )
        self.exit_code = exit_code


class ServiceUnavailable(BatchStageError):
    def __init__(self, url: str, attempts: int, component: str = ""):
        super().__init__(component or url, f"Service at {url} did not become available after {attempts} attempts")
        self.url = url
        self.attempts = attempts


class TestExecutorError(OrchestratorError):
    """The test executor crashed or produced no parseable report."""

    __test__ = False

    def __init__(self, batch: str, exit_code: Optional[int], detail: str = ""):
        msg = f"Test executor failed for {batch} (exit code {exit_code})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.batch = batch
        self.exit_code = exit_code


class TestFailure(OrchestratorError):
    """The executor ran and its report contains unexpected results."""

    __test__ = False

    def __init__(self, batch: str, unexpected: int):
        super().__init__(f"{batch}: {unexpected} unexpected test result(s)")
        self.batch = batch
        self.unexpected = unexpected


class UnknownBatch(OrchestratorError):
    def __init__(self, requested: str, available: Sequence[str]):
        names = ", ".join(available) if available else "(none)"
        super().__init__(f"Batch {requested} not found in batch definitions. Available batches: {names}")
        self.requested = requested
        self.available = list(available)


class PortReclaimDegraded(OrchestratorError):
    """Ports still appear bound after the release-polling budget ran out."""

    def __init__(self, ports: Sequence[int], attempts: int):
        listed = ", ".join(str(p) for p in ports)
        super().__init__(f"Ports still in use after {attempts} checks: {listed}. This may cause issues.")
        self.ports = list(ports)
        self.attempts = attempts


class ReportMergeSkipped(OrchestratorError):
    """No valid per-batch report was found, so nothing was merged."""

    def __init__(self, directory: str, skipped: Sequence[str] = ()):
        msg = f"No valid test result files found in {directory}. Skipping merged report generation."
        if skipped:
            msg = f"{msg} Skipped: {', '.join(skipped)}"
        super().__init__(msg)
        self.directory = directory
        self.skipped = list(skipped)
