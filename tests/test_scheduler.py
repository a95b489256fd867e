"""Tests for ebo/scheduler.py."""

from __future__ import annotations

import asyncio
import json

import pytest

from ebo.batch_runner import BatchRunner
from ebo.errors import StartupTimeout, TestFailure, UnknownBatch
from ebo.mocks import FakeExecutor, FakeLauncher, FakeProber, MockClock, MockPortInspector
from ebo.port_reclaim import PortReclaimer, PortRegistry
from ebo.scheduler import BatchScheduler, create_scheduler
from ebo.topology import build_topology

TOPOLOGY = build_topology({"batch1": ["alpha", "beta"], "batch2": ["gamma"]})


@pytest.fixture
def harness(tmp_path):
    class Harness:
        pass

    h = Harness()
    h.inspector = MockPortInspector()
    h.launcher = FakeLauncher()
    h.executor = FakeExecutor()
    h.lines = []
    h.tmp_path = tmp_path

    def build(launcher=None, executor=None):
        h.launcher = launcher or h.launcher
        h.executor = executor or h.executor
        reclaimer = PortReclaimer(h.inspector, PortRegistry(), clock=MockClock(), cooldown_s=0)
        runner = BatchRunner(h.launcher, FakeProber(), h.executor, reclaimer, base_port=8081)
        h.reclaimer = reclaimer
        return BatchScheduler(
            TOPOLOGY, runner, reclaimer, base_port=8081, results_dir=tmp_path, emit=h.lines.append
        )

    h.build = build
    return h


class TestSelect:
    def test_all_in_order(self, harness):
        assert [b.name for b in harness.build().select()] == ["batch1", "batch2"]

    def test_single(self, harness):
        assert [b.name for b in harness.build().select("2")] == ["batch2"]


class TestRun:
    def test_sequential_all_batches(self, harness):
        scheduler = harness.build()

        failed = asyncio.run(scheduler.run())

        assert failed is False
        assert harness.launcher.launched == [("alpha", 8081), ("beta", 8082), ("gamma", 8081)]
        assert harness.executor.ran == ["batch1", "batch2"]
        assert [r.batch for r in scheduler.results] == ["batch1", "batch2"]

    def test_unknown_batch_before_anything_starts(self, harness):
        scheduler = harness.build()

        with pytest.raises(UnknownBatch):
            asyncio.run(scheduler.run("9"))

        assert harness.launcher.launched == []
        assert harness.inspector.lookups == []

    def test_single_batch_then_cleans_every_port(self, harness):
        scheduler = harness.build()

        failed = asyncio.run(scheduler.run(2))

        assert failed is False
        assert harness.executor.ran == ["batch2"]
        # batch2 only uses 8081; the final sweep covers batch1's 8082 too
        assert harness.inspector.lookups == [8081, 8082]
        assert list(harness.reclaimer.registry) == [8081, 8082]

    def test_batch_failure_does_not_stop_later_batches(self, harness):
        launcher = FakeLauncher(failures={"alpha": StartupTimeout("alpha", 90)})
        scheduler = harness.build(launcher=launcher)

        failed = asyncio.run(scheduler.run())

        assert failed is True
        assert harness.executor.ran == ["batch2"]
        assert [r.failed for r in scheduler.results] == [True, False]

    def test_spawn_error_does_not_stop_later_batches(self, harness):
        launcher = FakeLauncher(failures={"beta": OSError("spawn failed")})
        scheduler = harness.build(launcher=launcher)

        failed = asyncio.run(scheduler.run())

        assert failed is True
        assert harness.executor.ran == ["batch2"]
        assert [r.failed for r in scheduler.results] == [True, False]

    def test_test_failure_marks_run_failed(self, harness):
        executor = FakeExecutor(errors={"batch2": TestFailure("batch2", 1)})
        scheduler = harness.build(executor=executor)
        assert asyncio.run(scheduler.run()) is True

    def test_critical_error_still_cleans_up(self, harness):
        executor = FakeExecutor(raises=RuntimeError("boom"))
        scheduler = harness.build(executor=executor)

        failed = asyncio.run(scheduler.run())

        assert failed is True
        assert harness.executor.ran == ["batch1"]
        assert list(harness.reclaimer.registry) == [8081, 8082]


class TestReports:
    def test_merges_and_emits_summary(self, harness, report):
        suites = [{"title": "button.spec.ts", "specs": [
            {"title": "renders", "tests": [{"projectName": "chromium", "results": [{"status": "passed"}]}]},
        ]}]
        (harness.tmp_path / "results_batch1.json").write_text(json.dumps(report(suites=suites)))
        scheduler = harness.build()

        failed = asyncio.run(scheduler.run())

        assert failed is False
        assert scheduler.merge is not None
        assert (harness.tmp_path / "final_results.json").exists()
        assert "TEST SUMMARY" in harness.lines
        assert "[PASS] button.spec.ts" in harness.lines

    def test_nothing_to_merge_is_not_a_failure(self, harness):
        scheduler = harness.build()
        assert asyncio.run(scheduler.run()) is False
        assert scheduler.merge is None
        assert harness.lines == []


class TestCreateScheduler:
    def test_wires_shared_registry(self, config):
        scheduler = create_scheduler(config, TOPOLOGY, inspector=MockPortInspector(), clock=MockClock())
        assert isinstance(scheduler, BatchScheduler)
        assert scheduler._runner._reclaimer is scheduler._reclaimer
