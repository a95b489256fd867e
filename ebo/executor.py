"""Test executor: run the Playwright suite for one batch.

The executor is an external process; all the core needs is its exit code
and the JSON report on stdout. A non-zero exit is *not* by itself a test
failure (Playwright also exits non-zero for flaky-only runs and config
warnings): only ``stats.unexpected >= 1`` is. A non-zero exit without a
parseable report is a hard executor error.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ebo.config import OrchestratorConfig
from ebo.errors import OrchestratorError, TestExecutorError, TestFailure
from ebo.file_utils import write_text_atomic
from ebo.topology import Batch

logger = logging.getLogger(__name__)


@dataclass
class ExecutorOutcome:
    batch: str
    exit_code: Optional[int]
    results_path: Optional[Path] = None
    unexpected: Optional[int] = None
    error: Optional[OrchestratorError] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def _unexpected_count(stdout: str) -> Optional[int]:
    """``stats.unexpected`` from a JSON report, or ``None`` if unparseable."""
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    stats = data.get("stats")
    if not isinstance(stats, dict):
        return 0
    value = stats.get("unexpected", 0)
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


class PlaywrightExecutor:
    """Runs ``npx playwright test`` filtered to a batch's tag."""

    def __init__(self, config: OrchestratorConfig, cwd: Optional[Union[str, Path]] = None):
        self._config = config
        self._cwd = str(cwd) if cwd is not None else None

    def results_path(self, batch: Batch) -> Path:
        return Path(self._config.results_dir) / batch.results_file

    def build_command(self, batch: Batch) -> list[str]:
        cmd: list[str] = []
        if self._config.ci:
            cmd += ["xvfb-run", "--auto-servernum"]
        cmd += ["npx", "playwright", "test", "--grep", batch.tag]
        cmd += [f"--project={p}" for p in self._config.projects]
        if not self._config.ci:
            cmd.append("--headed")
        cmd += [
            f"--workers={self._config.workers}",
            "--reporter=json",
            f"--output={self._config.output_dir}/{batch.name}",
        ]
        return cmd

    async def run(self, batch: Batch) -> ExecutorOutcome:
        cmd = self.build_command(batch)
        stale = self.results_path(batch)
        if stale.exists():
            # A report left by an earlier run must not be merged into this one.
            logger.debug("Removing previous report %s", stale)
            stale.unlink()
        logger.info("Running Playwright tests for %s across all browsers...", batch.tag)
        logger.info("Running command: %s", " ".join(cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
        except OSError as e:
            error = TestExecutorError(batch.name, None, str(e))
            logger.error("%s", error)
            return ExecutorOutcome(batch=batch.name, exit_code=None, error=error)

        stdout, stderr = await process.communicate()
        if stderr:
            logger.debug("Playwright stderr for %s:\n%s", batch.name, stderr.decode("utf-8", errors="replace"))
        return self.classify(batch, process.returncode, stdout.decode("utf-8", errors="replace"))

    def classify(self, batch: Batch, exit_code: Optional[int], stdout: str) -> ExecutorOutcome:
        """Turn an exit code plus stdout into an outcome, saving the report."""
        path = self.results_path(batch)
        outcome = ExecutorOutcome(batch=batch.name, exit_code=exit_code)
        text = stdout.strip()

        if exit_code == 0:
            write_text_atomic(path, stdout)
            outcome.results_path = path
            logger.info("Test results saved to %s", path)
            outcome.unexpected = _unexpected_count(text)
            if outcome.unexpected is None:
                logger.warning("Report for %s is not valid JSON; merge will skip it", batch.name)
            elif outcome.unexpected > 0:
                outcome.error = TestFailure(batch.name, outcome.unexpected)
                logger.error("%s", outcome.error)
            return outcome

        logger.error("Test execution failed for %s (exit code %s)", batch.tag, exit_code)
        if not text:
            outcome.error = TestExecutorError(batch.name, exit_code, "no output from Playwright, possible hard failure")
            logger.error("%s", outcome.error)
            return outcome

        logger.info("Full Playwright output (stdout):\n%s", text)
        if text.startswith("{"):
            write_text_atomic(path, stdout)
            outcome.results_path = path
            logger.warning("Partial test results saved to %s despite failure.", path)
        else:
            logger.warning("stdout is not valid JSON. Skipping write.")

        outcome.unexpected = _unexpected_count(text)
        if outcome.unexpected is None:
            outcome.error = TestExecutorError(batch.name, exit_code, "unparseable report")
            logger.error("%s", outcome.error)
        elif outcome.unexpected > 0:
            outcome.error = TestFailure(batch.name, outcome.unexpected)
            logger.error("Actual test failure detected: %s", outcome.error)
        else:
            logger.warning("No actual test failures detected. Likely a non-test error, continuing...")
        return outcome
