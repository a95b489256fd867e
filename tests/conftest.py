"""Shared pytest fixtures for ebo tests."""

from __future__ import annotations

import json

import pytest

from ebo.config import OrchestratorConfig


@pytest.fixture
def config(tmp_path):
    """Config pointing every path at *tmp_path*, with no real waits."""
    return OrchestratorConfig(
        components_dir=str(tmp_path / "components"),
        results_dir=str(tmp_path),
        lock_file=str(tmp_path / "ebo-run.lock"),
        startup_timeout_s=5.0,
        probe_attempts=3,
        probe_delay_s=0.01,
        release_attempts=3,
        release_interval_s=0.0,
        cooldown_s=0.0,
    )


@pytest.fixture
def components_dir(tmp_path):
    """Two batches laid out on disk: batch1={alpha,beta}, batch2={gamma}."""
    root = tmp_path / "components"
    for batch, comps in {"batch1": ["beta", "alpha"], "batch2": ["gamma"]}.items():
        for comp in comps:
            (root / batch / comp).mkdir(parents=True)
    (root / "shared").mkdir()
    (root / "batch1" / "README.md").write_text("not a component")
    return root


def make_report(suites=None, unexpected=0, expected=1, start_time=None, **stats):
    """Minimal Playwright-style JSON report."""
    s = {"expected": expected, "skipped": 0, "unexpected": unexpected, "flaky": 0, "duration": 100}
    s.update(stats)
    if start_time is not None:
        s["startTime"] = start_time
    return {"config": {"workers": 3}, "suites": suites or [], "stats": s}


@pytest.fixture
def write_report(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_text(data if isinstance(data, str) else json.dumps(data))
        return path
    return _write


@pytest.fixture
def report():
    return make_report
