"""Tests for ebo/executor.py."""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace

from ebo.errors import TestExecutorError, TestFailure
from ebo.executor import PlaywrightExecutor
from ebo.merger import merge_results
from ebo.topology import Batch

BATCH = Batch("batch2", ("gamma",))


def _report(unexpected):
    return json.dumps({"config": {}, "suites": [], "stats": {"expected": 4, "unexpected": unexpected}})


class TestBuildCommand:
    def test_local(self, config):
        cmd = PlaywrightExecutor(config).build_command(BATCH)
        assert cmd[:5] == ["npx", "playwright", "test", "--grep", "@batch2"]
        assert "--project=chromium" in cmd
        assert "--project=firefox" in cmd
        assert "--project=webkit" in cmd
        assert "--headed" in cmd
        assert "--workers=3" in cmd
        assert "--reporter=json" in cmd
        assert cmd[-1] == "--output=test-results/batch2"

    def test_ci_is_headless_under_xvfb(self, config):
        cmd = PlaywrightExecutor(replace(config, ci=True)).build_command(BATCH)
        assert cmd[:2] == ["xvfb-run", "--auto-servernum"]
        assert "--headed" not in cmd


class TestClassify:
    def test_clean_pass(self, config, tmp_path):
        outcome = PlaywrightExecutor(config).classify(BATCH, 0, _report(0))
        assert not outcome.failed
        assert outcome.unexpected == 0
        assert outcome.results_path == tmp_path / "results_batch2.json"
        assert json.loads(outcome.results_path.read_text())["stats"]["expected"] == 4

    def test_exit_zero_with_unexpected(self, config):
        outcome = PlaywrightExecutor(config).classify(BATCH, 0, _report(2))
        assert isinstance(outcome.error, TestFailure)
        assert outcome.error.unexpected == 2

    def test_nonzero_without_unexpected_is_not_a_failure(self, config, tmp_path):
        # flaky-only runs exit non-zero
        outcome = PlaywrightExecutor(config).classify(BATCH, 1, _report(0))
        assert not outcome.failed
        assert (tmp_path / "results_batch2.json").exists()

    def test_nonzero_with_unexpected(self, config, tmp_path):
        outcome = PlaywrightExecutor(config).classify(BATCH, 1, _report(3))
        assert isinstance(outcome.error, TestFailure)
        assert (tmp_path / "results_batch2.json").exists()

    def test_nonzero_without_output(self, config, tmp_path):
        outcome = PlaywrightExecutor(config).classify(BATCH, 1, "  \n")
        assert isinstance(outcome.error, TestExecutorError)
        assert outcome.error.exit_code == 1
        assert not (tmp_path / "results_batch2.json").exists()

    def test_nonzero_with_garbage(self, config, tmp_path):
        outcome = PlaywrightExecutor(config).classify(BATCH, 2, "Error: no tests found")
        assert isinstance(outcome.error, TestExecutorError)
        assert outcome.results_path is None
        assert not (tmp_path / "results_batch2.json").exists()

    def test_nonzero_with_truncated_json(self, config, tmp_path):
        outcome = PlaywrightExecutor(config).classify(BATCH, 1, '{"suites": [')
        # written as a partial report, but still a hard error
        assert (tmp_path / "results_batch2.json").exists()
        assert isinstance(outcome.error, TestExecutorError)


class TestRun:
    def test_runs_process_and_saves_report(self, config, tmp_path, monkeypatch):
        executor = PlaywrightExecutor(config)
        payload = _report(0)
        monkeypatch.setattr(executor, "build_command", lambda batch: ["printf", "%s", payload])

        outcome = asyncio.run(executor.run(BATCH))

        assert outcome.exit_code == 0
        assert not outcome.failed
        assert json.loads((tmp_path / "results_batch2.json").read_text())["stats"]["unexpected"] == 0

    def test_spawn_failure(self, config, monkeypatch):
        executor = PlaywrightExecutor(config)
        monkeypatch.setattr(executor, "build_command", lambda batch: ["/nonexistent/playwright"])

        outcome = asyncio.run(executor.run(BATCH))

        assert outcome.exit_code is None
        assert isinstance(outcome.error, TestExecutorError)

    def test_stale_report_removed_when_run_produces_none(self, config, tmp_path, monkeypatch):
        stale = tmp_path / "results_batch2.json"
        stale.write_text(_report(0))
        executor = PlaywrightExecutor(config)
        monkeypatch.setattr(executor, "build_command", lambda batch: ["sh", "-c", "exit 1"])

        outcome = asyncio.run(executor.run(BATCH))

        assert isinstance(outcome.error, TestExecutorError)
        assert not stale.exists()
        assert merge_results(tmp_path) is None
