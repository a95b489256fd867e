"""Per-suite console summary of a merged report.

Tests are grouped by the title of the suite that directly contains them,
and classified by the status of their final attempt. Tests with more than
one attempt are listed as retries.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from ebo.report_model import Spec, Suite, SuiteVisitor, TestCase, parse_suites


@dataclass
class SuiteStats:
    passed: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0
    passed_tests: list[str] = field(default_factory=list)
    skipped_tests: list[str] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)
    retries: list[dict] = field(default_factory=list)
    other_statuses: list[dict] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0 or self.timed_out > 0

    @property
    def is_empty(self) -> bool:
        return not (self.passed or self.has_failures or self.skipped or self.retries or self.other_statuses)


class SuiteStatsCollector(SuiteVisitor):
    """Accumulates :class:`SuiteStats` keyed by suite title."""

    def __init__(self) -> None:
        self.stats: dict[str, SuiteStats] = {}

    def enter_suite(self, suite: Suite, depth: int) -> None:
        self.stats.setdefault(suite.title, SuiteStats())

    def visit_test(self, suite: Suite, spec: Spec, test: TestCase) -> None:
        stats = self.stats.setdefault(suite.title, SuiteStats())
        final = test.final
        status = test.final_status
        error = final.error_message if final else None

        if status == "passed":
            stats.passed += 1
            stats.passed_tests.append(spec.title)
        elif status == "timedOut":
            stats.failed += 1
            stats.timed_out += 1
            stats.failures.append({
                "project": test.project_name,
                "status": status,
                "error": error or "Unknown timeout error",
            })
        elif status == "failed":
            stats.failed += 1
            stats.failures.append({
                "project": test.project_name,
                "status": status,
                "error": error or "Unknown failure",
            })
        elif status == "skipped":
            stats.skipped += 1
            stats.skipped_tests.append(spec.title)
        else:
            stats.other_statuses.append({"test": spec.title, "status": status})

        if test.attempts > 1:
            stats.retries.append({
                "project": test.project_name,
                "attempts": test.attempts,
                "final_status": status,
            })


def collect_suite_stats(report: dict) -> dict[str, SuiteStats]:
    collector = SuiteStatsCollector()
    collector.visit_all(parse_suites(report.get("suites")))
    return collector.stats


def format_summary(stats: dict[str, SuiteStats]) -> list[str]:
    lines = ["", "TEST SUMMARY", "-----------------------------"]
    for name, s in stats.items():
        if s.is_empty:
            continue
        if s.has_failures:
            marker = "FAIL"
        elif s.passed and not s.skipped:
            marker = "PASS"
        elif s.skipped:
            marker = "SKIP"
        else:
            marker = "OTHER"
        lines.append(f"[{marker}] {name}")

        for failure in s.failures:
            kind = "timeout" if failure["status"] == "timedOut" else "failed"
            lines.append(f"    -> {kind} [{failure['project']}] {failure['error']}")
        for retry in s.retries:
            lines.append(
                f"    -> retried [{retry['project']}] {retry['attempts']} attempts "
                f"(final status: {retry['final_status']})"
            )
        for test_name in s.skipped_tests:
            lines.append(f"    -> skipped {test_name}")
        for other in s.other_statuses:
            lines.append(f"    -> [{other['status']}] {other['test']}")
    lines.append("-----------------------------")
    return lines


def summarize_results(path: Union[str, Path] = "final_results.json") -> list[str]:
    """Read a merged report and return the summary lines.

    Raises:
        FileNotFoundError: If *path* does not exist.
        json.JSONDecodeError: If it is not valid JSON.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Results file not found at {p}")
    report = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(report, dict):
        raise ValueError(f"Invalid results file (expected object): {p}")
    return format_summary(collect_suite_stats(report))
