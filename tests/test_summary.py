"""Tests for ebo/report_model.py and ebo/summary.py."""

from __future__ import annotations

import json

import pytest

from ebo.report_model import UNNAMED_SUITE, SuiteVisitor, parse_suites
from ebo.summary import collect_suite_stats, format_summary, summarize_results


def _test(project, *statuses, error=None):
    results = [{"status": s, "duration": 10} for s in statuses]
    if error:
        results[-1]["error"] = {"message": error}
    return {"projectName": project, "results": results}


REPORT = {
    "suites": [
        {
            "title": "button.spec.ts",
            "specs": [
                {"title": "renders", "tests": [_test("chromium", "passed"), _test("firefox", "passed")]},
            ],
            "suites": [
                {
                    "title": "Button interactions",
                    "specs": [
                        {"title": "click", "tests": [_test("webkit", "failed", error="expected 1 got 2")]},
                        {"title": "hover", "tests": [_test("chromium", "timedOut")]},
                        {"title": "focus", "tests": [_test("firefox", "failed", "passed")]},
                    ],
                },
            ],
        },
        {
            "specs": [
                {"title": "later", "tests": [_test("chromium", "skipped")]},
                {"title": "odd", "tests": [_test("chromium", "interrupted")]},
            ],
        },
    ],
}


class TestParse:
    def test_defaults_for_missing_keys(self):
        suites = parse_suites([{"specs": [{"title": "t", "tests": [{"results": [{}]}]}]}])
        suite = suites[0]
        assert suite.title == UNNAMED_SUITE
        test = suite.specs[0].tests[0]
        assert test.project_name == "Unknown"
        assert test.final_status == "unknown"

    def test_error_from_errors_list(self):
        suites = parse_suites([{"title": "s", "specs": [{"title": "t", "tests": [
            {"projectName": "p", "results": [{"status": "failed", "errors": [{"message": "boom"}]}]},
        ]}]}])
        assert suites[0].specs[0].tests[0].final.error_message == "boom"

    def test_non_list_is_empty(self):
        assert parse_suites(None) == []
        assert parse_suites({"title": "x"}) == []

    def test_visitor_depth_first(self):
        seen = []

        class Recorder(SuiteVisitor):
            def enter_suite(self, suite, depth):
                seen.append((suite.title, depth))

        Recorder().visit_all(parse_suites(REPORT["suites"]))
        assert seen == [("button.spec.ts", 0), ("Button interactions", 1), (UNNAMED_SUITE, 0)]


class TestCollectSuiteStats:
    def test_grouped_by_direct_parent(self):
        stats = collect_suite_stats(REPORT)

        root = stats["button.spec.ts"]
        assert root.passed == 2
        assert root.passed_tests == ["renders", "renders"]
        assert not root.has_failures

        inner = stats["Button interactions"]
        assert inner.failed == 2
        assert inner.timed_out == 1
        assert inner.passed == 1
        assert [f["error"] for f in inner.failures] == ["expected 1 got 2", "Unknown timeout error"]

    def test_final_attempt_decides_and_retries_recorded(self):
        inner = collect_suite_stats(REPORT)["Button interactions"]
        assert inner.retries == [{"project": "firefox", "attempts": 2, "final_status": "passed"}]

    def test_skipped_and_other(self):
        unnamed = collect_suite_stats(REPORT)[UNNAMED_SUITE]
        assert unnamed.skipped == 1
        assert unnamed.skipped_tests == ["later"]
        assert unnamed.other_statuses == [{"test": "odd", "status": "interrupted"}]


class TestFormatSummary:
    def test_lines(self):
        lines = format_summary(collect_suite_stats(REPORT))
        assert lines[1] == "TEST SUMMARY"
        assert "[PASS] button.spec.ts" in lines
        assert "[FAIL] Button interactions" in lines
        assert "    -> failed [webkit] expected 1 got 2" in lines
        assert "    -> timeout [chromium] Unknown timeout error" in lines
        assert "    -> retried [firefox] 2 attempts (final status: passed)" in lines
        assert f"[SKIP] {UNNAMED_SUITE}" in lines
        assert "    -> skipped later" in lines
        assert "    -> [interrupted] odd" in lines

    def test_empty_suites_omitted(self):
        lines = format_summary(collect_suite_stats({"suites": [{"title": "nothing"}]}))
        assert not any("nothing" in line for line in lines)


class TestSummarizeResults:
    def test_reads_file(self, tmp_path):
        p = tmp_path / "final_results.json"
        p.write_text(json.dumps(REPORT))
        assert "[FAIL] Button interactions" in summarize_results(p)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            summarize_results(tmp_path / "final_results.json")
